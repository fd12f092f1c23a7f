"""
Input validation for the payment workflow — Pydantic v2 models.

Used to validate form values before anything is written to the database.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ValidationError, field_validator, model_validator


class RegistrationDetailData(BaseModel):
    """
    Registration detail saved at step 0.

    Attributes
    ----------
    plan                 : derived from the calendar, never edited by the user
    country_status       : derived from the country key, never edited by the user
    number_of_teams      : 1 or 2 (2 only for accredited countries)
    additional_observers : >= 0 (>= 1 for the future host)
    single_room_requests : >= 0
    paid_before          : >= 0, maintained by the organisers
    """

    plan: Literal["early bird", "regular", "late"]
    country_status: Literal[
        "Previous Host", "Future Host", "Not a Previous Host", "Not accredited",
    ]
    number_of_teams: int
    additional_observers: int
    single_room_requests: int
    paid_before: Decimal = Decimal("0")

    @field_validator("number_of_teams")
    @classmethod
    def validate_number_of_teams(cls, v: int) -> int:
        if v not in (1, 2):
            raise ValueError("Number of teams must be 1 or 2")
        return v

    @field_validator("additional_observers", "single_room_requests")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Value must be 0 or more")
        return v

    @field_validator("paid_before")
    @classmethod
    def validate_paid_before(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Paid amount must be 0 or more")
        return v

    @model_validator(mode="after")
    def validate_tier_limits(self) -> "RegistrationDetailData":
        if self.country_status == "Not accredited" and self.number_of_teams == 2:
            raise ValueError("Countries that are not accredited may register one team only")
        if self.country_status == "Future Host" and self.additional_observers < 1:
            raise ValueError("The future host registers at least one observer")
        return self


def clean_transaction_number(v: Optional[str]) -> str:
    v = (v or "").strip()
    if not v:
        raise ValueError("Transaction number is required")
    if len(v) > 100:
        raise ValueError("Transaction number is too long")
    return v


def clean_order_number(v: Optional[str]) -> Optional[str]:
    v = (v or "").strip()
    if len(v) > 100:
        raise ValueError("Order number is too long")
    return v or None


class PaymentConfirmationData(BaseModel):
    """
    Payment evidence submitted at step 1.

    Attributes
    ----------
    transaction_number  : bank transaction / reference number (required)
    order_number        : optional order number
    need_invoice        : the country asked for an invoice
    proof_of_payment_url: URL of the uploaded proof (required)
    """

    transaction_number: str
    order_number: Optional[str] = None
    need_invoice: bool = False
    proof_of_payment_url: str

    @field_validator("transaction_number")
    @classmethod
    def validate_transaction_number(cls, v: str) -> str:
        return clean_transaction_number(v)

    @field_validator("order_number")
    @classmethod
    def validate_order_number(cls, v: Optional[str]) -> Optional[str]:
        return clean_order_number(v)

    @field_validator("proof_of_payment_url")
    @classmethod
    def validate_proof(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Proof of payment is required")
        return v.strip()


class PaidBeforeData(BaseModel):
    """Amount already paid in a previous cycle, entered by an admin."""

    amount: Decimal

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Amount must be 0 or more")
        if v > Decimal("10000000"):
            raise ValueError("Amount is unrealistically large")
        return v.quantize(Decimal("0.01"))


class CountryKeyData(BaseModel):
    """Country key assigned to an operator (lower-case latin, digits, '-', '_')."""

    country_key: str

    @field_validator("country_key")
    @classmethod
    def validate_country_key(cls, v: str) -> str:
        v = v.strip().lower()
        if not v or len(v) > 32:
            raise ValueError("Country key must contain 1–32 characters")
        if not all(ch.isascii() and (ch.isalnum() or ch in "-_") for ch in v):
            raise ValueError("Country key may contain latin letters, digits, '-' and '_' only")
        return v


def error_messages(exc: ValidationError) -> list[str]:
    """Human-readable messages of a pydantic ValidationError."""
    messages = []
    for err in exc.errors():
        msg = err.get("msg", "")
        # pydantic prefixes messages raised from validators
        messages.append(msg.removeprefix("Value error, "))
    return messages
