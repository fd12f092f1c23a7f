"""
Centralized CallbackData factories.
Telegram limits callback_data to 64 bytes — all prefixes are kept short.
"""
from aiogram.filters.callback_data import CallbackData


class MainMenuCb(CallbackData, prefix="mm"):
    action: str           # main | payment


class PaymentCb(CallbackData, prefix="pay"):
    action: str           # inc | dec | teams | save | confirm | cancel | ack |
                          # txn | order | invoice | proof | submit | finish |
                          # prev | next | refresh
    field: str = ""       # form field for inc / dec
    value: int = 0


class AdminPanelCb(CallbackData, prefix="adm"):
    action: str           # back | payments | operators | export


class CountryPaymentCb(CallbackData, prefix="cpay"):
    action: str           # view | paid_before
    country: str = ""     # country key
