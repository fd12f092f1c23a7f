from bot.models.base import Base, engine, AsyncSessionFactory
from bot.models.models import (
    User,
    CountryPayment,
    PaymentStep,
)

__all__ = [
    "Base",
    "engine",
    "AsyncSessionFactory",
    "User",
    "CountryPayment",
    "PaymentStep",
]
