"""
Principal resolution middleware.

Attaches `principal: Principal` and `is_admin: bool` to handler data for all
updates. Must run after DatabaseMiddleware (it reads the session).
The IsAdmin / IsCountry filters (below) can be used as router-level filters.
"""
from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject

from bot.config import settings
from bot.services.identity_service import ANONYMOUS, resolve_principal


class PrincipalMiddleware(BaseMiddleware):
    """
    Resolves the role of the sender once per update.
    Applied globally — individual routers restrict access via filters.
    """

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        user = data.get("event_from_user")
        session = data.get("session")
        if user is None or session is None:
            principal = ANONYMOUS
        else:
            principal = await resolve_principal(session, user.id, settings.admin_ids_list)
        data["principal"] = principal
        data["is_admin"] = principal.is_admin
        return await handler(event, data)


# ── Reusable filters ─────────────────────────────────────────────────────────

from aiogram.filters import BaseFilter
from aiogram.types import Message, CallbackQuery

from bot.services.identity_service import Principal


class IsAdmin(BaseFilter):
    """Use on individual routers/handlers to restrict access to admins."""

    async def __call__(self, event: Message | CallbackQuery, is_admin: bool = False) -> bool:
        if not is_admin:
            if isinstance(event, Message):
                await event.answer("⛔️ Access denied.")
            elif isinstance(event, CallbackQuery):
                await event.answer("⛔️ Access denied.", show_alert=True)
        return is_admin


class IsCountry(BaseFilter):
    """Restricts the payment workflow to country operators."""

    async def __call__(
        self,
        event: Message | CallbackQuery,
        principal: Principal = ANONYMOUS,
    ) -> bool:
        if not principal.is_country:
            if isinstance(event, Message):
                await event.answer("⛔️ No country is assigned to your account.")
            elif isinstance(event, CallbackQuery):
                await event.answer("⛔️ No country is assigned to your account.", show_alert=True)
        return principal.is_country
