"""
Country payment record store.

Each country owns one "payment" document:

    payment: {
      registration: {...},
      confirmation: {...},
      pricing:      {subtotal, totalBank, ...},
      step:         0..3,
      updated_at:   time of the last write (UTC)
    }

Writes are read-modify-write on the whole document and committed as one
unit. Two sessions writing the same country race; the later write wins.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bot.models.models import CountryPayment, PaymentStep

logger = logging.getLogger(__name__)

DOCUMENT_FIELDS = ("registration", "confirmation", "pricing", "step")


class PaymentStore:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _row(self, country_key: str) -> Optional[CountryPayment]:
        result = await self._session.execute(
            select(CountryPayment).where(CountryPayment.country_key == country_key)
        )
        return result.scalar_one_or_none()

    async def get(self, country_key: str) -> Optional[dict[str, Any]]:
        row = await self._row(country_key)
        return row.as_document() if row else None

    async def set(
        self,
        country_key: str,
        partial: dict[str, Any],
        merge: bool = True,
    ) -> None:
        """
        Write `partial` into the country's document.

        merge=True replaces only the top-level fields present in `partial`;
        merge=False starts from an empty document.
        """
        unknown = set(partial) - set(DOCUMENT_FIELDS)
        if unknown:
            raise ValueError(f"Unknown payment fields: {', '.join(sorted(unknown))}")

        try:
            row = await self._row(country_key)
            if row is None:
                row = CountryPayment(
                    country_key=country_key,
                    step=PaymentStep.REGISTRATION_DETAIL,
                )
                self._session.add(row)
            elif not merge:
                row.registration = None
                row.confirmation = None
                row.pricing = None
                row.step = PaymentStep.REGISTRATION_DETAIL

            for name in DOCUMENT_FIELDS:
                if name in partial:
                    # JSON columns only track reassignment, never copy in place
                    value = partial[name]
                    setattr(row, name, dict(value) if isinstance(value, dict) else value)

            row.updated_at = datetime.now(timezone.utc).replace(tzinfo=None)
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise

        logger.info(
            "Payment record for %s updated (%s)", country_key, ", ".join(sorted(partial))
        )

    async def list_all(self) -> List[CountryPayment]:
        result = await self._session.execute(
            select(CountryPayment).order_by(CountryPayment.country_key)
        )
        return list(result.scalars().all())
