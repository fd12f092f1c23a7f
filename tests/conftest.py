"""
Shared pytest fixtures for the registration bot tests.

Sets required environment variables BEFORE any bot module is imported so that
pydantic-settings and SQLAlchemy engine initialisation use safe test values.
"""
from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Optional

# ── Set env vars before any bot import ────────────────────────────────────────
os.environ.setdefault("BOT_TOKEN", "test-token-for-pytest")
os.environ.setdefault("ADMIN_IDS", "123456789")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

# ── Third-party ───────────────────────────────────────────────────────────────
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# ── Bot imports (safe after env vars are set) ──────────────────────────────────
from bot.models.base import Base
from bot.services.identity_service import ANONYMOUS, Principal, Role
from bot.services.pricing_service import PricingConfig
from bot.services.upload_service import ProofFile

EARLY_BIRD_NOW = datetime(2026, 2, 1, 12, 0, tzinfo=timezone.utc)
REGULAR_NOW    = datetime(2026, 4, 15, 12, 0, tzinfo=timezone.utc)


# ── DB fixtures ───────────────────────────────────────────────────────────────

@pytest.fixture
async def async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a fresh AsyncSession backed by an isolated in-memory SQLite database.
    Schema is created fresh for every test function; engine is always disposed
    on teardown, even if the test raises an exception.
    """
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with factory() as session:
            yield session
    finally:
        await engine.dispose()


# ── Pricing / identity fixtures ───────────────────────────────────────────────

@pytest.fixture
def pricing_config() -> PricingConfig:
    return PricingConfig(
        accredited_countries=frozenset({"usa", "romania", "germany", "brazil"}),
        previous_hosts=frozenset({"usa"}),
        future_host="brazil",
    )


def frozen_clock(moment: datetime):
    return lambda: moment


def country(country_key: str, telegram_id: int = 5001) -> Principal:
    return Principal(principal_id=telegram_id, role=Role.COUNTRY, country_key=country_key)


@pytest.fixture
def make_country():
    """Factory fixture — returns a callable that builds a country Principal."""
    return country


@pytest.fixture
def anonymous() -> Principal:
    return ANONYMOUS


# ── Fakes ─────────────────────────────────────────────────────────────────────

class MemoryStore:
    """In-memory document store with the same merge semantics as PaymentStore."""

    def __init__(self, documents: Optional[dict[str, dict[str, Any]]] = None) -> None:
        self.documents: dict[str, dict[str, Any]] = documents or {}
        self.writes: list[tuple[str, dict[str, Any]]] = []

    async def get(self, country_key: str) -> Optional[dict[str, Any]]:
        doc = self.documents.get(country_key)
        return dict(doc) if doc is not None else None

    async def set(self, country_key: str, partial: dict[str, Any], merge: bool = True) -> None:
        base = self.documents.get(country_key, {}) if merge else {}
        self.documents[country_key] = {**base, **partial}
        self.writes.append((country_key, partial))


class FailingStore(MemoryStore):
    """Reads succeed, every write raises."""

    async def set(self, country_key: str, partial: dict[str, Any], merge: bool = True) -> None:
        raise ConnectionError("store unavailable")


class FakeUploader:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.paths: list[str] = []

    async def upload(self, file: ProofFile, path_hint: str) -> str:
        if self.fail:
            raise OSError("disk full")
        self.paths.append(path_hint)
        return f"https://files.example.org/{path_hint}"


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def proof_file() -> ProofFile:
    return ProofFile(
        file_id="AgACAgIAAxkBAAIB",
        file_name="receipt.pdf",
        mime_type="application/pdf",
        file_size=120_000,
    )
