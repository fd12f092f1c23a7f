"""
Identity service — who is talking to the bot and what they may do.

A principal is resolved once per update from the configured admin list and
the user's assigned country key. Resolution fails closed: any error while
reading the store yields an anonymous principal.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bot.models.models import User

logger = logging.getLogger(__name__)


class Role:
    ADMIN     = "admin"
    COUNTRY   = "country"
    ANONYMOUS = "anonymous"


@dataclass(frozen=True)
class Principal:
    principal_id: Optional[int]
    role: str = Role.ANONYMOUS
    country_key: Optional[str] = None
    display_name: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_country(self) -> bool:
        return self.role == Role.COUNTRY and bool(self.country_key)

    @property
    def is_authenticated(self) -> bool:
        return self.principal_id is not None and self.role != Role.ANONYMOUS


ANONYMOUS = Principal(principal_id=None)


# ── User ──────────────────────────────────────────────────────────────────────

async def upsert_user(
    session: AsyncSession,
    telegram_id: int,
    first_name: str,
    last_name: Optional[str],
    username: Optional[str],
) -> User:
    """Create or update a Telegram user record."""
    result = await session.execute(
        select(User).where(User.telegram_id == telegram_id)
    )
    user = result.scalar_one_or_none()
    if user is None:
        user = User(
            telegram_id=telegram_id,
            first_name=first_name,
            last_name=last_name,
            username=username,
        )
        session.add(user)
        await session.flush()
    else:
        user.first_name = first_name
        user.last_name  = last_name
        user.username   = username
    return user


async def get_user(session: AsyncSession, telegram_id: int) -> Optional[User]:
    result = await session.execute(
        select(User).where(User.telegram_id == telegram_id)
    )
    return result.scalar_one_or_none()


async def assign_country(
    session: AsyncSession,
    telegram_id: int,
    country_key: Optional[str],
) -> bool:
    """Bind (or unbind with None) a user to a country. False if the user is unknown."""
    result = await session.execute(
        update(User)
        .where(User.telegram_id == telegram_id)
        .values(country_key=country_key)
    )
    return result.rowcount > 0


async def list_country_operators(session: AsyncSession) -> List[User]:
    result = await session.execute(
        select(User)
        .where(User.country_key.is_not(None))
        .order_by(User.country_key, User.first_name)
    )
    return list(result.scalars().all())


# ── Principal ─────────────────────────────────────────────────────────────────

async def resolve_principal(
    session: AsyncSession,
    telegram_id: Optional[int],
    admin_ids: Iterable[int],
) -> Principal:
    if telegram_id is None:
        return ANONYMOUS

    if telegram_id in set(admin_ids):
        return Principal(principal_id=telegram_id, role=Role.ADMIN)

    try:
        user = await get_user(session, telegram_id)
    except Exception as exc:
        logger.warning("Could not resolve role of telegram_id=%d: %s", telegram_id, exc)
        return ANONYMOUS

    if user is None or not user.country_key:
        return ANONYMOUS

    return Principal(
        principal_id=telegram_id,
        role=Role.COUNTRY,
        country_key=user.country_key,
        display_name=user.display_name,
    )
