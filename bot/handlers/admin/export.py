"""
Admin export handler — payments overview to Google Sheets.
"""
import logging

from aiogram import F, Router
from aiogram.enums import ParseMode
from aiogram.types import CallbackQuery
from sqlalchemy.ext.asyncio import AsyncSession

from bot.keyboards import AdminPanelCb
from bot.middlewares import IsAdmin
from bot.services import PaymentStore, export_payments_to_sheets

logger = logging.getLogger(__name__)
router = Router(name="admin_export")
router.callback_query.filter(AdminPanelCb.filter(F.action == "export"), IsAdmin())


@router.callback_query(AdminPanelCb.filter(F.action == "export"))
async def cq_export_sheets(callback: CallbackQuery, session: AsyncSession) -> None:
    await callback.answer("⏳ Exporting…")
    records = await PaymentStore(session).list_all()

    try:
        url = await export_payments_to_sheets(records)
    except Exception as e:
        logger.exception("Sheets export failed: %s", e)
        await callback.message.answer(
            f"❌ Export failed: `{e}`",
            parse_mode=ParseMode.MARKDOWN,
        )
        return

    if url:
        await callback.message.answer(
            f"✅ *Export complete!* `{len(records)}` countries.\n\n📊 [Open spreadsheet]({url})",
            parse_mode=ParseMode.MARKDOWN,
        )
    else:
        await callback.message.answer(
            "⚠️ Google Sheets is not configured. Set `GOOGLE_CREDENTIALS_JSON` and `GOOGLE_SPREADSHEET_ID`."
        )
