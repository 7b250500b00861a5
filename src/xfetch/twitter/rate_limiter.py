"""Per-endpoint throttling driven by server-reported quota headers."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from xfetch.core import get_logger
from xfetch.core.config import LOW_QUOTA_THRESHOLD
from xfetch.twitter.models import EndpointRateState


logger = get_logger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass
class EndpointRateLimiter:
    """Advisory rate limiter keyed by endpoint (GraphQL operation name).

    Records the latest ``x-rate-limit-*`` values per endpoint and delays
    calls as the remaining quota approaches zero. It never rejects a call.
    """

    low_quota_threshold: int = LOW_QUOTA_THRESHOLD
    backoff_seconds: float = 60.0
    reset_buffer_seconds: float = 1.0
    clock: Callable[[], float] = time.time
    sleep: SleepFunc = asyncio.sleep
    _limits: dict[str, EndpointRateState] = field(default_factory=dict)

    def update(self, endpoint: str, state: EndpointRateState) -> None:
        """Record the latest quota for an endpoint, replacing any prior state."""
        self._limits[endpoint] = state

    async def wait_if_needed(self, endpoint: str) -> float:
        """Delay the caller if the endpoint's quota is nearly used up.

        Returns:
            Seconds slept (0.0 when no wait was needed).
        """
        state = self._limits.get(endpoint)
        if state is None or state.remaining > self.low_quota_threshold:
            return 0.0

        now = self.clock()
        if state.is_stale(now):
            del self._limits[endpoint]
            return 0.0

        if state.remaining <= 0:
            wait_seconds = state.reset - now + self.reset_buffer_seconds
            logger.warning(
                "rate_limiter.exhausted",
                endpoint=endpoint,
                wait_seconds=round(wait_seconds, 1),
            )
        else:
            wait_seconds = self.backoff_seconds / state.remaining
            logger.debug(
                "rate_limiter.low_quota",
                endpoint=endpoint,
                remaining=state.remaining,
                wait_seconds=round(wait_seconds, 1),
            )

        await self.sleep(wait_seconds)
        return wait_seconds

    def remaining_for(self, endpoint: str) -> int | None:
        state = self._limits.get(endpoint)
        return state.remaining if state else None

    def reset_time_for(self, endpoint: str) -> datetime | None:
        state = self._limits.get(endpoint)
        if state is None:
            return None
        return datetime.fromtimestamp(state.reset, tz=timezone.utc)

    def is_limited(self, endpoint: str) -> bool:
        """True while the endpoint has no quota left and its window is open."""
        state = self._limits.get(endpoint)
        if state is None:
            return False
        return state.remaining <= 0 and not state.is_stale(self.clock())

    def get_stats(self) -> dict[str, Any]:
        """Get rate limiter statistics."""
        return {
            endpoint: {
                "limit": state.limit,
                "remaining": state.remaining,
                "reset": state.reset,
            }
            for endpoint, state in self._limits.items()
        }

    def reset_all(self) -> None:
        self._limits.clear()
