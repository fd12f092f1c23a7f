"""
Rate-limiting middleware for the registration bot.

Protects the bot against button mashing and floods by limiting how many
updates a single Telegram user can send within a rolling time window.

Default: 30 requests per 60 seconds per user.
Users who exceed the limit receive a throttle alert and are ignored for the
remainder of the window.
"""
from __future__ import annotations

import logging
import time
from collections import defaultdict, deque
from typing import Any, Awaitable, Callable, Deque, Dict

from aiogram import BaseMiddleware
from aiogram.exceptions import TelegramBadRequest
from aiogram.types import TelegramObject

logger = logging.getLogger(__name__)

THROTTLE_TEXT = "⏳ Too many requests. Please wait a moment and try again."


class RateLimitMiddleware(BaseMiddleware):
    """
    Sliding-window rate limiter.

    Parameters
    ----------
    rate   : maximum number of requests allowed per user per window
    period : window size in seconds
    """

    def __init__(self, rate: int = 30, period: float = 60.0) -> None:
        self._rate   = rate
        self._period = period
        # user_id → deque of timestamps (most recent first)
        self._history: Dict[int, Deque[float]] = defaultdict(deque)

    def is_allowed(self, user_id: int, now: float) -> bool:
        window = self._history[user_id]

        # Evict timestamps outside the current window
        while window and now - window[-1] > self._period:
            window.pop()

        if len(window) >= self._rate:
            return False

        window.appendleft(now)
        return True

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        user = data.get("event_from_user")
        if user is None:
            return await handler(event, data)

        if not self.is_allowed(user.id, time.monotonic()):
            logger.info("Throttled telegram_id=%d", user.id)
            await self._throttle_response(data)
            return None

        return await handler(event, data)

    async def _throttle_response(self, data: Dict[str, Any]) -> None:
        """Send a throttle alert and acknowledge callbacks to clear spinners."""
        update = data.get("event_update")
        if update is None:
            return

        try:
            if update.callback_query:
                await update.callback_query.answer(THROTTLE_TEXT, show_alert=True)
            elif update.message:
                await update.message.answer(THROTTLE_TEXT)
        except TelegramBadRequest as exc:
            logger.debug("Throttle alert not delivered: %s", exc)
