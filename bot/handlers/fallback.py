"""
Global fallback handler — included LAST in the dispatcher.

Catches any callback query that no other router handled, e.g. stale
keyboards after a restart wiped the MemoryStorage.
"""
import logging

from aiogram import Router
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramBadRequest
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery

from bot.handlers.common import main_menu_for
from bot.services import ANONYMOUS, Principal

logger = logging.getLogger(__name__)
router = Router(name="fallback")


@router.callback_query()
async def cq_fallback(
    callback: CallbackQuery,
    state: FSMContext,
    principal: Principal = ANONYMOUS,
) -> None:
    await callback.answer("⚠️ This button is outdated. Please start again.", show_alert=True)
    await state.clear()
    text, kb = main_menu_for(principal)
    try:
        await callback.message.edit_text(
            "🔄 *Session reset.*\n\n" + text,
            parse_mode=ParseMode.MARKDOWN,
            reply_markup=kb,
        )
    except TelegramBadRequest as exc:
        logger.debug("Fallback edit skipped: %s", exc)
