"""
Main menu keyboards — context-aware (country operator vs. admin).
"""
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from bot.keyboards.callbacks import MainMenuCb, AdminPanelCb


def country_main_menu() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(text="💳 Registration & payment", callback_data=MainMenuCb(action="payment").pack()),
    )
    return builder.as_markup()


def admin_main_menu() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(text="💰 Payments",                callback_data=AdminPanelCb(action="payments").pack()),
    )
    builder.row(
        InlineKeyboardButton(text="👥 Country operators",       callback_data=AdminPanelCb(action="operators").pack()),
    )
    builder.row(
        InlineKeyboardButton(text="📤 Export to Google Sheets", callback_data=AdminPanelCb(action="export").pack()),
    )
    return builder.as_markup()


def back_to_main() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(InlineKeyboardButton(text="🔙 Main menu", callback_data=MainMenuCb(action="main").pack()))
    return builder.as_markup()
