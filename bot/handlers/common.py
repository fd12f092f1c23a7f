"""
Common handlers: /start, main menu routing.
"""
import logging

from aiogram import F, Router
from aiogram.filters import CommandStart
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, InlineKeyboardMarkup, Message
from aiogram.enums import ParseMode
from sqlalchemy.ext.asyncio import AsyncSession

from bot.config import settings
from bot.keyboards import MainMenuCb, country_main_menu, admin_main_menu
from bot.services import Principal, upsert_user

logger = logging.getLogger(__name__)
router = Router(name="common")


def main_menu_for(principal: Principal) -> tuple[str, InlineKeyboardMarkup | None]:
    """Home screen text + keyboard for the sender's role."""
    if principal.is_admin:
        return (
            f"⚡ *{settings.EVENT_NAME}* — Admin panel\n\nChoose a section:",
            admin_main_menu(),
        )
    if principal.is_country:
        return (
            f"🌍 *{settings.EVENT_NAME}* — `{principal.country_key}`\n\nChoose an action:",
            country_main_menu(),
        )
    return (
        f"👋 *{settings.EVENT_NAME}*\n\n"
        f"No country is assigned to your account yet.\n"
        f"Ask the organisers to assign one, quoting your Telegram ID.",
        None,
    )


# ── /start ────────────────────────────────────────────────────────────────────

@router.message(CommandStart())
async def cmd_start(
    message: Message,
    session: AsyncSession,
    principal: Principal,
    state: FSMContext,
) -> None:
    tg = message.from_user
    await upsert_user(
        session,
        telegram_id=tg.id,
        first_name=tg.first_name,
        last_name=tg.last_name,
        username=tg.username,
    )
    await state.clear()

    text, kb = main_menu_for(principal)
    if not principal.is_authenticated:
        text += f"\n\nYour Telegram ID: `{tg.id}`"
    await message.answer(text, parse_mode=ParseMode.MARKDOWN, reply_markup=kb)


# ── Main menu callback ────────────────────────────────────────────────────────

@router.callback_query(MainMenuCb.filter(F.action == "main"))
async def cq_main_menu(callback: CallbackQuery, principal: Principal, state: FSMContext) -> None:
    await state.clear()
    text, kb = main_menu_for(principal)
    await callback.message.edit_text(text, parse_mode=ParseMode.MARKDOWN, reply_markup=kb)
    await callback.answer()


@router.callback_query(F.data == "noop")
async def cq_noop(callback: CallbackQuery) -> None:
    await callback.answer()
