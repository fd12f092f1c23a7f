from bot.keyboards.callbacks import (
    MainMenuCb,
    PaymentCb,
    AdminPanelCb,
    CountryPaymentCb,
)
from bot.keyboards.main_menu import country_main_menu, admin_main_menu, back_to_main
from bot.keyboards.payment_kb import (
    registration_detail_kb,
    confirm_registration_kb,
    payment_confirmation_kb,
    waiting_kb,
    completed_kb,
    cancel_input_kb,
    step_kb,
)
from bot.keyboards.admin_kb import (
    payments_list_kb,
    country_payment_admin_kb,
    admin_cancel_kb,
    admin_back_kb,
)

__all__ = [
    # callbacks
    "MainMenuCb", "PaymentCb", "AdminPanelCb", "CountryPaymentCb",
    # main menu
    "country_main_menu", "admin_main_menu", "back_to_main",
    # payment flow
    "registration_detail_kb", "confirm_registration_kb", "payment_confirmation_kb",
    "waiting_kb", "completed_kb", "cancel_input_kb", "step_kb",
    # admin
    "payments_list_kb", "country_payment_admin_kb", "admin_cancel_kb", "admin_back_kb",
]
