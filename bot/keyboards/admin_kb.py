"""
Keyboards for the admin panel: payments overview and reconciliation.
"""
from typing import List

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from bot.keyboards.callbacks import AdminPanelCb, CountryPaymentCb
from bot.models.models import CountryPayment


def payments_list_kb(records: List[CountryPayment]) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    for r in records:
        total = (r.pricing or {}).get("totalBank")
        total_str = f"  {total:,.2f}" if total is not None else ""
        builder.row(
            InlineKeyboardButton(
                text=f"{r.step_emoji} {r.country_key}{total_str}",
                callback_data=CountryPaymentCb(action="view", country=r.country_key).pack(),
            )
        )
    builder.row(
        InlineKeyboardButton(text="🔙 Back", callback_data=AdminPanelCb(action="back").pack()),
    )
    return builder.as_markup()


def country_payment_admin_kb(country_key: str) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(
            text="💵 Set amount paid before",
            callback_data=CountryPaymentCb(action="paid_before", country=country_key).pack(),
        )
    )
    builder.row(
        InlineKeyboardButton(text="🔙 Back", callback_data=AdminPanelCb(action="payments").pack()),
    )
    return builder.as_markup()


def admin_cancel_kb(country_key: str) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(
            text="❌ Cancel",
            callback_data=CountryPaymentCb(action="view", country=country_key).pack(),
        )
    )
    return builder.as_markup()


def admin_back_kb() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(text="🔙 Back", callback_data=AdminPanelCb(action="back").pack()),
    )
    return builder.as_markup()
