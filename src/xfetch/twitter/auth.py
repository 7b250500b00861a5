"""Credential pool management with rotation and lockout awareness."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from xfetch.core import AuthenticationError, Credential, get_logger
from xfetch.core.config import CREDENTIAL_LOCKOUT_MS
from xfetch.twitter.models import EndpointRateState


logger = get_logger(__name__)

# Ordinary per-endpoint windows are 15 minutes; a 429 whose reset lies
# further out than this is an account-level lockout.
HARD_LOCKOUT_RESET_SECONDS = 60 * 60
LOCKED_ACCOUNT_ERROR_CODES = frozenset({326})


def is_hard_lockout(
    status: int | None,
    headers: Mapping[str, str] | None = None,
    payload: Any = None,
    now: float | None = None,
) -> bool:
    """Decide whether a failed response means the credential is locked out.

    True for HTTP 429 with an ``x-rate-limit-reset`` more than an hour away,
    or for any response carrying error code 326 (account temporarily locked).
    """
    if isinstance(payload, dict):
        for error in payload.get("errors") or []:
            if isinstance(error, dict) and error.get("code") in LOCKED_ACCOUNT_ERROR_CODES:
                return True

    if status != 429 or headers is None:
        return False
    reset = headers.get("x-rate-limit-reset")
    if not reset:
        return False
    try:
        reset_at = float(reset)
    except ValueError:
        return False
    current = time.time() if now is None else now
    return reset_at - current > HARD_LOCKOUT_RESET_SECONDS


@dataclass
class PooledCredential:
    """A credential under pool management."""

    credential: Credential
    rate_limits: dict[str, EndpointRateState] = field(default_factory=dict)
    last_used_at: float = 0.0
    cooldown_until: float | None = None

    def is_available(self, now: float) -> bool:
        """Check availability, clearing an expired cooldown."""
        if self.cooldown_until is None:
            return True
        if self.cooldown_until <= now:
            self.cooldown_until = None
            logger.info("credential_pool.cooldown_elapsed", credential=self.credential.masked())
            return True
        return False


@dataclass
class CredentialPool:
    """Round-robins requests across several authenticated sessions.

    A credential reported through ``mark_limited`` is taken out of rotation
    for the fixed lockout period. When every credential is cooling down the
    one that recovers soonest is returned instead of failing.
    """

    lockout_seconds: float = CREDENTIAL_LOCKOUT_MS / 1000
    clock: Callable[[], float] = time.time
    credentials: list[PooledCredential] = field(default_factory=list)
    current_index: int = 0
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @classmethod
    def from_credentials(cls, credentials: Iterable[Credential]) -> "CredentialPool":
        """Create a pool from a list of Credential objects."""
        pool = cls()
        for credential in credentials:
            pool.add(credential)
        logger.info("credential_pool.initialized", credential_count=len(pool))
        return pool

    def __len__(self) -> int:
        """Return number of credentials in pool."""
        return len(self.credentials)

    def add(self, credential: Credential) -> None:
        self.credentials.append(PooledCredential(credential=credential))

    def remove(self, index: int) -> Credential:
        """Remove and return the credential at ``index``.

        Raises:
            IndexError: If the index is out of range.
        """
        return self.credentials.pop(index).credential

    def _find(self, credential: Credential) -> PooledCredential | None:
        for pooled in self.credentials:
            if pooled.credential.auth_token == credential.auth_token:
                return pooled
        return None

    async def next(self) -> Credential:
        """Get the next credential using round-robin rotation.

        Raises:
            AuthenticationError: If the pool is empty.
        """
        async with self._lock:
            if not self.credentials:
                raise AuthenticationError("No credentials configured in pool")

            now = self.clock()
            available = [c for c in self.credentials if c.is_available(now)]

            if not available:
                soonest = min(self.credentials, key=lambda c: c.cooldown_until or 0.0)
                logger.warning(
                    "credential_pool.all_in_cooldown",
                    credential=soonest.credential.masked(),
                    cooldown_remaining_seconds=round((soonest.cooldown_until or now) - now),
                )
                soonest.last_used_at = now
                return soonest.credential

            pooled = available[self.current_index % len(available)]
            self.current_index += 1
            pooled.last_used_at = now
            return pooled.credential

    def mark_limited(self, credential: Credential, endpoint: str, reset_time: float) -> None:
        """Record a hard lockout and cool the credential down.

        Args:
            credential: The credential that was locked out.
            endpoint: Endpoint on which the lockout was observed.
            reset_time: Server-reported reset time (epoch seconds).
        """
        pooled = self._find(credential)
        if pooled is None:
            return
        pooled.rate_limits[endpoint] = EndpointRateState(limit=0, remaining=0, reset=reset_time)
        pooled.cooldown_until = self.clock() + self.lockout_seconds
        logger.warning(
            "credential_pool.credential_locked_out",
            credential=credential.masked(),
            endpoint=endpoint,
            cooldown_seconds=self.lockout_seconds,
        )

    def available_count(self) -> int:
        """Count of credentials currently eligible for selection."""
        now = self.clock()
        return sum(1 for c in self.credentials if c.is_available(now))

    def get_stats(self) -> dict[str, Any]:
        """Get pool statistics."""
        available = self.available_count()
        return {
            "total": len(self.credentials),
            "available": available,
            "in_cooldown": len(self.credentials) - available,
        }
