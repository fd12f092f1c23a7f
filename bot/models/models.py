"""
ORM models for the IOL registration bot.

Domain overview
---------------
User            — Telegram user; admins are configured, country operators
                  carry the key of the country they register for
CountryPayment  — the country's "payment" sub-record: registration detail,
                  payment confirmation, pricing snapshot and workflow step
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from bot.models.base import Base

# ─────────────────────────── Constants ────────────────────────────────────────

class PaymentStep:
    REGISTRATION_DETAIL      = 0  # Fill in registration detail
    PAYMENT_CONFIRMATION     = 1  # Transfer money + upload proof
    WAITING_FOR_VERIFICATION = 2  # Organisers check the transfer
    PAYMENT_COMPLETED        = 3  # Terminal

    ALL = (0, 1, 2, 3)

    LABELS = {
        REGISTRATION_DETAIL:      "Fill in registration detail",
        PAYMENT_CONFIRMATION:     "Proceed to payment",
        WAITING_FOR_VERIFICATION: "Wait for confirmation",
        PAYMENT_COMPLETED:        "Payment complete",
    }

    EMOJI = {
        REGISTRATION_DETAIL:      "📝",
        PAYMENT_CONFIRMATION:     "💳",
        WAITING_FOR_VERIFICATION: "⏳",
        PAYMENT_COMPLETED:        "✅",
    }


# ─────────────────────────── Models ───────────────────────────────────────────

class User(Base):
    """Telegram user: admin, country operator or not yet assigned."""
    __tablename__ = "users"

    id:          Mapped[int]           = mapped_column(Integer, primary_key=True, autoincrement=True)
    telegram_id: Mapped[int]           = mapped_column(BigInteger, unique=True, index=True)
    username:    Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    first_name:  Mapped[str]           = mapped_column(String(255))
    last_name:   Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    country_key: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    created_at:  Mapped[datetime]      = mapped_column(DateTime, default=func.now())

    @property
    def display_name(self) -> str:
        parts = [self.first_name]
        if self.last_name:
            parts.append(self.last_name)
        return " ".join(parts)


class CountryPayment(Base):
    """
    One record per country. Each workflow step overwrites its own fields
    wholesale; the other fields are carried over by read-modify-write.
    """
    __tablename__ = "country_payments"

    id:           Mapped[int]                      = mapped_column(Integer, primary_key=True, autoincrement=True)
    country_key:  Mapped[str]                      = mapped_column(String(64), unique=True, index=True)
    step:         Mapped[int]                      = mapped_column(Integer, default=PaymentStep.REGISTRATION_DETAIL)
    registration: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    confirmation: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    pricing:      Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    updated_at:   Mapped[datetime]                 = mapped_column(DateTime, default=func.now())

    @property
    def step_emoji(self) -> str:
        return PaymentStep.EMOJI.get(self.step, "❓")

    def as_document(self) -> dict[str, Any]:
        return {
            "registration": self.registration,
            "confirmation": self.confirmation,
            "pricing":      self.pricing,
            "step":         self.step,
            "updated_at":   self.updated_at,
        }
