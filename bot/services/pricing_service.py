"""
Pricing engine for the IOL registration fee.

Maps a registration detail (teams, observers, single rooms, amount already
paid) to a fee breakdown, given:
  - the pricing plan, decided by the calendar (early bird / regular / late)
  - the country tier, decided by the country key (accreditation, hosting)

The engine depends on nothing but the standard library and the injected
PricingConfig; the clock is passed in by the caller.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Mapping, Optional

Clock = Callable[[], datetime]

CENT = Decimal("0.01")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ─────────────────────────── Constants ────────────────────────────────────────

class Plan:
    EARLY_BIRD = "early bird"
    REGULAR    = "regular"
    LATE       = "late"

    ALL = (EARLY_BIRD, REGULAR, LATE)

    LABELS = {
        EARLY_BIRD: "Early bird",
        REGULAR:    "Regular",
        LATE:       "Late",
    }


class CountryStatus:
    NOT_ACCREDITED    = "Not accredited"
    NOT_PREVIOUS_HOST = "Not a Previous Host"
    PREVIOUS_HOST     = "Previous Host"
    FUTURE_HOST       = "Future Host"

    ALL = (NOT_ACCREDITED, NOT_PREVIOUS_HOST, PREVIOUS_HOST, FUTURE_HOST)


# Absolute first-team fee per case: plan x country status.
# Late has no entry: it is derived from the regular fee plus a surcharge.
DEFAULT_FIRST_TEAM_FEES: dict[str, dict[str, Decimal]] = {
    Plan.EARLY_BIRD: {
        CountryStatus.NOT_ACCREDITED:    Decimal("83500"),
        CountryStatus.NOT_PREVIOUS_HOST: Decimal("83500"),
        CountryStatus.PREVIOUS_HOST:     Decimal("75500"),
        CountryStatus.FUTURE_HOST:       Decimal("75500"),
    },
    Plan.REGULAR: {
        CountryStatus.NOT_ACCREDITED:    Decimal("95500"),
        CountryStatus.NOT_PREVIOUS_HOST: Decimal("95500"),
        CountryStatus.PREVIOUS_HOST:     Decimal("91500"),
        CountryStatus.FUTURE_HOST:       Decimal("91500"),
    },
}

# Price of the first team for a general (non-previous-host) country, shown
# as the "original plan price".
DEFAULT_PLAN_BASE_FEES: dict[str, Decimal] = {
    Plan.EARLY_BIRD: Decimal("83500"),
    Plan.REGULAR:    Decimal("95500"),
    Plan.LATE:       Decimal("95500"),
}


@dataclass(frozen=True)
class PricingConfig:
    early_bird_end: datetime = datetime(2026, 3, 31, 23, 59, 59, tzinfo=timezone.utc)
    regular_end:    datetime = datetime(2026, 4, 30, 23, 59, 59, tzinfo=timezone.utc)

    first_team_fees: Mapping[str, Mapping[str, Decimal]] = field(
        default_factory=lambda: DEFAULT_FIRST_TEAM_FEES
    )
    plan_base_fees: Mapping[str, Decimal] = field(
        default_factory=lambda: DEFAULT_PLAN_BASE_FEES
    )

    observer_fee:                  Decimal = Decimal("24000")
    single_room_fee:               Decimal = Decimal("16000")
    late_surcharge_per_team_month: Decimal = Decimal("1000")
    # Approximate month used to count how late a registration is
    month_length: timedelta = timedelta(days=31)

    accredited_countries: frozenset[str] = frozenset()
    previous_hosts:       frozenset[str] = frozenset()
    future_host:          Optional[str]  = None

    currency: str = "lei"


def load_pricing_config(settings: Any) -> PricingConfig:
    """Build the pricing tables from the environment-backed settings."""
    return PricingConfig(
        early_bird_end=_as_utc(settings.EARLY_BIRD_END),
        regular_end=_as_utc(settings.REGULAR_END),
        observer_fee=Decimal(settings.OBSERVER_FEE),
        single_room_fee=Decimal(settings.SINGLE_ROOM_FEE),
        late_surcharge_per_team_month=Decimal(settings.LATE_SURCHARGE_PER_TEAM_MONTH),
        accredited_countries=settings.accredited_countries,
        previous_hosts=settings.previous_hosts,
        future_host=settings.future_host,
        currency=settings.CURRENCY,
    )


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def round2(value: Decimal | int | float) -> Decimal:
    """Round to the cent, halves away from zero."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


# ─────────────────────────── Plan / tier ──────────────────────────────────────

def decide_plan(now: datetime, config: PricingConfig) -> str:
    now = _as_utc(now)
    if now <= config.early_bird_end:
        return Plan.EARLY_BIRD
    if now <= config.regular_end:
        return Plan.REGULAR
    return Plan.LATE


def decide_country_status(country_key: Optional[str], config: PricingConfig) -> str:
    """FutureHost wins over everything, then accreditation, then hosting history."""
    if country_key and config.future_host and country_key == config.future_host:
        return CountryStatus.FUTURE_HOST
    if not country_key or country_key not in config.accredited_countries:
        return CountryStatus.NOT_ACCREDITED
    if country_key in config.previous_hosts:
        return CountryStatus.PREVIOUS_HOST
    return CountryStatus.NOT_PREVIOUS_HOST


def months_late(now: datetime, config: PricingConfig) -> int:
    """
    Whole months past the regular deadline, rounded to the nearest month.
    At least 1 as soon as the deadline has passed.
    """
    now = _as_utc(now)
    if now <= config.regular_end:
        return 0
    raw = (now - config.regular_end) / config.month_length
    return max(1, math.floor(raw + 0.5))


def first_team_fee(
    plan: str,
    country_status: str,
    now: datetime,
    config: PricingConfig,
) -> Decimal:
    if plan == Plan.LATE:
        base = config.first_team_fees[Plan.REGULAR][country_status]
        surcharge = config.late_surcharge_per_team_month * months_late(now, config)
        return round2(base + surcharge)
    return round2(config.first_team_fees[plan][country_status])


# ─────────────────────────── Breakdown ────────────────────────────────────────

@dataclass(frozen=True)
class PriceBreakdown:
    plan_base_first_team:         Decimal
    first_team_after_adjustments: Decimal
    teams_cost:                   Decimal
    observers_cost:               Decimal
    single_rooms_cost:            Decimal
    subtotal:                     Decimal
    paid_before:                  Decimal
    total_bank:                   Decimal

    def as_record(self) -> dict[str, float]:
        """JSON-friendly snapshot stored next to the workflow step."""
        return {
            "planBaseFirstTeam":         float(self.plan_base_first_team),
            "firstTeamAfterAdjustments": float(self.first_team_after_adjustments),
            "teamsCost":                 float(self.teams_cost),
            "observersCost":             float(self.observers_cost),
            "singleRoomsCost":           float(self.single_rooms_cost),
            "subtotal":                  float(self.subtotal),
            "paid_before":               float(self.paid_before),
            "totalBank":                 float(self.total_bank),
        }


def calculate_pricing(
    detail: Mapping[str, Any],
    config: PricingConfig,
    now: Optional[datetime] = None,
) -> PriceBreakdown:
    """
    Fee breakdown for a registration detail.

    `detail` must already be schema-valid (number_of_teams is 1 or 2,
    counts are non-negative); nothing is re-checked here.
    """
    now = now or utc_now()
    plan = detail["plan"]
    status = detail["country_status"]
    teams = int(detail["number_of_teams"])
    observers = int(detail["additional_observers"])
    rooms = int(detail["single_room_requests"])
    paid_before = round2(detail.get("paid_before") or 0)

    first_team = first_team_fee(plan, status, now, config)

    # Two teams cost three first-team fees; in the late plan that counts the
    # monthly surcharge once too often, so it is taken back out.
    teams_cost = first_team * (3 if teams == 2 else 1)
    if plan == Plan.LATE and teams == 2:
        teams_cost -= config.late_surcharge_per_team_month * months_late(now, config)
    teams_cost = round2(teams_cost)

    # One observer is included for the future host
    free_observers = 1 if status == CountryStatus.FUTURE_HOST else 0
    observers_cost = round2((observers - free_observers) * config.observer_fee)
    single_rooms_cost = round2(rooms * config.single_room_fee)

    subtotal = round2(teams_cost + observers_cost + single_rooms_cost)

    return PriceBreakdown(
        plan_base_first_team=round2(config.plan_base_fees[plan]),
        first_team_after_adjustments=first_team,
        teams_cost=teams_cost,
        observers_cost=observers_cost,
        single_rooms_cost=single_rooms_cost,
        subtotal=subtotal,
        paid_before=paid_before,
        total_bank=round2(subtotal - paid_before),
    )


def with_paid_before(record: Mapping[str, Any], paid_before: Decimal | float) -> dict[str, float]:
    """
    Stored pricing record with a new amount already paid.

    Line items and the subtotal stay as they were saved; only `paid_before`
    and `totalBank` change.
    """
    subtotal = round2(record.get("subtotal") or 0)
    paid = round2(paid_before)
    return {
        **record,
        "paid_before": float(paid),
        "totalBank":   float(round2(subtotal - paid)),
    }


def format_money(value: Decimal | float, currency: str = "lei") -> str:
    return f"{Decimal(str(value)):,.2f} {currency}"
