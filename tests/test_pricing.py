"""
Unit tests — Pricing engine (pricing_service.py).

Covers plan / tier decisions, the late surcharge, the future-host observer
discount and the scenarios from the fee sheet. No database required.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from bot.config import Settings
from bot.services.pricing_service import (
    DEFAULT_FIRST_TEAM_FEES,
    CountryStatus,
    Plan,
    PricingConfig,
    calculate_pricing,
    decide_country_status,
    decide_plan,
    first_team_fee,
    format_money,
    load_pricing_config,
    months_late,
    round2,
    with_paid_before,
)
from bot.validators import CountryKeyData
from tests.conftest import EARLY_BIRD_NOW, REGULAR_NOW


def _detail(plan, status, teams=1, observers=0, rooms=0, paid_before="0") -> dict:
    return {
        "plan": plan,
        "country_status": status,
        "number_of_teams": teams,
        "additional_observers": observers,
        "single_room_requests": rooms,
        "paid_before": paid_before,
    }


# ─────────────────────────── Plan / tier ──────────────────────────────────────

class TestDecidePlan:
    def test_early_bird_until_deadline_inclusive(self, pricing_config) -> None:
        assert decide_plan(pricing_config.early_bird_end, pricing_config) == Plan.EARLY_BIRD

    def test_regular_just_after_early_bird(self, pricing_config) -> None:
        now = pricing_config.early_bird_end + timedelta(seconds=1)
        assert decide_plan(now, pricing_config) == Plan.REGULAR

    def test_late_after_regular_deadline(self, pricing_config) -> None:
        now = pricing_config.regular_end + timedelta(seconds=1)
        assert decide_plan(now, pricing_config) == Plan.LATE

    def test_naive_datetime_treated_as_utc(self, pricing_config) -> None:
        assert decide_plan(datetime(2026, 4, 10), pricing_config) == Plan.REGULAR


class TestDecideCountryStatus:
    def test_future_host_wins(self, pricing_config) -> None:
        assert decide_country_status("brazil", pricing_config) == CountryStatus.FUTURE_HOST

    def test_not_accredited(self, pricing_config) -> None:
        assert decide_country_status("atlantis", pricing_config) == CountryStatus.NOT_ACCREDITED

    def test_missing_key_not_accredited(self, pricing_config) -> None:
        assert decide_country_status(None, pricing_config) == CountryStatus.NOT_ACCREDITED

    def test_previous_host(self, pricing_config) -> None:
        assert decide_country_status("usa", pricing_config) == CountryStatus.PREVIOUS_HOST

    def test_accredited_not_previous_host(self, pricing_config) -> None:
        assert decide_country_status("romania", pricing_config) == CountryStatus.NOT_PREVIOUS_HOST

    def test_previous_host_must_be_accredited(self) -> None:
        config = PricingConfig(previous_hosts=frozenset({"usa"}))
        assert decide_country_status("usa", config) == CountryStatus.NOT_ACCREDITED


# ─────────────────────────── Late surcharge ───────────────────────────────────

class TestMonthsLate:
    def test_zero_before_deadline(self, pricing_config) -> None:
        assert months_late(REGULAR_NOW, pricing_config) == 0

    def test_at_least_one_right_after_deadline(self, pricing_config) -> None:
        now = pricing_config.regular_end + timedelta(hours=1)
        assert months_late(now, pricing_config) == 1

    def test_rounds_to_nearest_month(self, pricing_config) -> None:
        end = pricing_config.regular_end
        assert months_late(end + timedelta(days=46), pricing_config) == 1
        assert months_late(end + timedelta(days=47), pricing_config) == 2
        assert months_late(end + timedelta(days=93), pricing_config) == 3


@pytest.mark.parametrize("status", CountryStatus.ALL)
@pytest.mark.parametrize("days", [1, 20, 40, 75, 200])
def test_late_first_team_fee_adds_monthly_surcharge(pricing_config, status, days) -> None:
    now = pricing_config.regular_end + timedelta(days=days)
    m = months_late(now, pricing_config)
    assert m >= 1
    expected = DEFAULT_FIRST_TEAM_FEES[Plan.REGULAR][status] + Decimal(1000) * m
    assert first_team_fee(Plan.LATE, status, now, pricing_config) == expected


@pytest.mark.parametrize("plan", [Plan.EARLY_BIRD, Plan.REGULAR])
@pytest.mark.parametrize("status", CountryStatus.ALL)
def test_first_team_fee_is_matrix_lookup(pricing_config, plan, status) -> None:
    breakdown = calculate_pricing(_detail(plan, status, observers=1), pricing_config, REGULAR_NOW)
    assert breakdown.first_team_after_adjustments == DEFAULT_FIRST_TEAM_FEES[plan][status]


# ─────────────────────────── Breakdown ────────────────────────────────────────

def test_early_bird_single_team_scenario(pricing_config) -> None:
    b = calculate_pricing(
        _detail(Plan.EARLY_BIRD, CountryStatus.NOT_PREVIOUS_HOST), pricing_config, EARLY_BIRD_NOW
    )
    fee = DEFAULT_FIRST_TEAM_FEES[Plan.EARLY_BIRD][CountryStatus.NOT_PREVIOUS_HOST]
    assert b.teams_cost == fee
    assert b.observers_cost == 0
    assert b.single_rooms_cost == 0
    assert b.total_bank == fee


def test_regular_previous_host_two_teams_scenario(pricing_config) -> None:
    b = calculate_pricing(
        _detail(Plan.REGULAR, CountryStatus.PREVIOUS_HOST, teams=2, observers=1, rooms=1),
        pricing_config,
        REGULAR_NOW,
    )
    assert b.teams_cost == DEFAULT_FIRST_TEAM_FEES[Plan.REGULAR][CountryStatus.PREVIOUS_HOST] * 3
    assert b.observers_cost == pricing_config.observer_fee
    assert b.single_rooms_cost == pricing_config.single_room_fee
    assert b.subtotal == b.teams_cost + b.observers_cost + b.single_rooms_cost
    assert b.total_bank == b.subtotal


def test_late_two_teams_surcharge_counted_twice(pricing_config) -> None:
    now = pricing_config.regular_end + timedelta(days=62)
    m = months_late(now, pricing_config)
    b = calculate_pricing(_detail(Plan.LATE, CountryStatus.NOT_PREVIOUS_HOST, teams=2), pricing_config, now)
    regular = DEFAULT_FIRST_TEAM_FEES[Plan.REGULAR][CountryStatus.NOT_PREVIOUS_HOST]
    assert b.teams_cost == 3 * regular + 2 * 1000 * m


class TestFutureHostObserverDiscount:
    def test_first_observer_free(self, pricing_config) -> None:
        b = calculate_pricing(_detail(Plan.REGULAR, CountryStatus.FUTURE_HOST, observers=1), pricing_config)
        assert b.observers_cost == 0

    def test_second_observer_charged(self, pricing_config) -> None:
        b = calculate_pricing(_detail(Plan.REGULAR, CountryStatus.FUTURE_HOST, observers=2), pricing_config)
        assert b.observers_cost == pricing_config.observer_fee

    def test_no_discount_for_other_tiers(self, pricing_config) -> None:
        b = calculate_pricing(_detail(Plan.REGULAR, CountryStatus.PREVIOUS_HOST, observers=1), pricing_config)
        assert b.observers_cost == pricing_config.observer_fee


def test_paid_before_is_deducted_without_clamping(pricing_config) -> None:
    b = calculate_pricing(
        _detail(Plan.REGULAR, CountryStatus.NOT_PREVIOUS_HOST, paid_before="100000.50"),
        pricing_config,
        REGULAR_NOW,
    )
    assert b.paid_before == Decimal("100000.50")
    assert b.total_bank == Decimal("95500") - Decimal("100000.50")
    assert b.total_bank < 0


def test_pricing_is_deterministic_for_a_fixed_clock(pricing_config) -> None:
    detail = _detail(Plan.REGULAR, CountryStatus.PREVIOUS_HOST, teams=2, observers=3, rooms=2)
    assert calculate_pricing(detail, pricing_config, REGULAR_NOW) == calculate_pricing(
        detail, pricing_config, REGULAR_NOW
    )


def test_every_field_has_at_most_two_decimals(pricing_config) -> None:
    config = PricingConfig(observer_fee=Decimal("33.333"), single_room_fee=Decimal("0.005"))
    b = calculate_pricing(
        _detail(Plan.EARLY_BIRD, CountryStatus.NOT_ACCREDITED, observers=3, rooms=3, paid_before="1.239"),
        config,
        EARLY_BIRD_NOW,
    )
    for value in b.as_record().values():
        assert round(value, 2) == value
    assert b.observers_cost == Decimal("100.00")
    assert b.single_rooms_cost == Decimal("0.02")


def test_as_record_keys(pricing_config) -> None:
    record = calculate_pricing(_detail(Plan.REGULAR, CountryStatus.PREVIOUS_HOST), pricing_config).as_record()
    assert set(record) == {
        "planBaseFirstTeam", "firstTeamAfterAdjustments", "teamsCost", "observersCost",
        "singleRoomsCost", "subtotal", "paid_before", "totalBank",
    }


def test_round2_halves_away_from_zero() -> None:
    assert round2(Decimal("0.125")) == Decimal("0.13")
    assert round2(2.675) == Decimal("2.68")


def test_format_money() -> None:
    assert format_money(Decimal("95500"), "lei") == "95,500.00 lei"


# ─────────────────────────── Reconciliation ───────────────────────────────────

def test_with_paid_before_keeps_saved_line_items(pricing_config) -> None:
    saved_at = pricing_config.regular_end + timedelta(days=1)
    record = calculate_pricing(
        _detail(Plan.LATE, CountryStatus.NOT_PREVIOUS_HOST), pricing_config, saved_at
    ).as_record()

    updated = with_paid_before(record, Decimal("1500.505"))

    assert updated["subtotal"] == record["subtotal"] == 96500.0
    assert updated["teamsCost"] == record["teamsCost"]
    assert updated["paid_before"] == 1500.51
    assert updated["totalBank"] == 94999.49
    # the saved record itself is left alone
    assert record["paid_before"] == 0.0


def test_with_paid_before_allows_negative_total() -> None:
    updated = with_paid_before({"subtotal": 1000.0, "paid_before": 0.0, "totalBank": 1000.0}, 1200)
    assert updated["totalBank"] == -200.0


# ─────────────────────────── Config loading ───────────────────────────────────

class TestLoadPricingConfig:
    def _config(self, **overrides) -> PricingConfig:
        return load_pricing_config(Settings(_env_file=None, BOT_TOKEN="t", **overrides))

    def test_mixed_case_keys_match_assigned_countries(self) -> None:
        config = self._config(
            ACCREDITED_COUNTRIES="USA, Romania",
            PREVIOUS_HOSTS="USA",
            FUTURE_HOST=" Brazil ",
        )
        assert config.accredited_countries == frozenset({"usa", "romania"})
        assert config.future_host == "brazil"

        assigned = CountryKeyData(country_key="USA").country_key
        assert decide_country_status(assigned, config) == CountryStatus.PREVIOUS_HOST
        assert decide_country_status("romania", config) == CountryStatus.NOT_PREVIOUS_HOST
        assert decide_country_status("brazil", config) == CountryStatus.FUTURE_HOST

    def test_empty_future_host(self) -> None:
        assert self._config(FUTURE_HOST="  ").future_host is None

    def test_fees_and_deadlines(self) -> None:
        config = self._config(
            OBSERVER_FEE="25000",
            REGULAR_END="2026-05-01T00:00:00",
            CURRENCY="EUR",
        )
        assert config.observer_fee == Decimal("25000")
        assert config.regular_end == datetime(2026, 5, 1, tzinfo=timezone.utc)
        assert config.currency == "EUR"
