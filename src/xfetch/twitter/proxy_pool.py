"""Proxy pool management with rotation and health tracking."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any
from urllib.parse import quote, unquote, urlsplit

from xfetch.core import InvalidProxyError, ProxyFileError, get_logger


logger = get_logger(__name__)


class ProxyProtocol(str, Enum):
    """Supported proxy protocols."""

    HTTP = "http"
    HTTPS = "https"
    SOCKS4 = "socks4"
    SOCKS5 = "socks5"


@dataclass(frozen=True)
class ProxyConfig:
    """One egress route. ``url`` is the normalized spec and identifies it."""

    url: str
    protocol: ProxyProtocol
    host: str
    port: int
    username: str | None = None
    password: str | None = None

    @property
    def uri(self) -> str:
        """Proxy URI including credentials, as passed to the HTTP transport."""
        auth = ""
        if self.username is not None and self.password is not None:
            auth = f"{quote(self.username, safe='')}:{quote(self.password, safe='')}@"
        return f"{self.protocol.value}://{auth}{self.host}:{self.port}"

    @property
    def masked_url(self) -> str:
        """Return masked URL for logging."""
        if self.username is not None:
            return f"{self.protocol.value}://****:****@{self.host}:{self.port}"
        return f"{self.protocol.value}://{self.host}:{self.port}"


@dataclass
class ProxyState:
    """Health tracking for a single proxy."""

    url: str
    failures: int = 0
    disabled: bool = False
    last_failure_at: float | None = None
    last_success_at: float | None = None

    def reset(self) -> None:
        self.failures = 0
        self.disabled = False


def parse_proxy_url(spec: str) -> ProxyConfig:
    """Parse ``[scheme://][user:pass@]host:port`` into a ProxyConfig.

    A missing or unsupported scheme defaults to http. A missing port defaults
    to 443 for https and 8080 otherwise.

    Raises:
        InvalidProxyError: If the spec has no host or an invalid port.
    """
    normalized = spec.strip()
    if not normalized:
        raise InvalidProxyError(spec)
    if "://" not in normalized:
        normalized = f"http://{normalized}"

    try:
        parsed = urlsplit(normalized)
        host = parsed.hostname
        port = parsed.port
    except ValueError as e:
        raise InvalidProxyError(spec) from e
    if not host or " " in normalized:
        raise InvalidProxyError(spec)

    try:
        protocol = ProxyProtocol(parsed.scheme.lower())
    except ValueError:
        protocol = ProxyProtocol.HTTP

    if port is None:
        port = 443 if protocol is ProxyProtocol.HTTPS else 8080

    username = password = None
    if parsed.username and parsed.password:
        username = unquote(parsed.username)
        password = unquote(parsed.password)

    return ProxyConfig(
        url=normalized,
        protocol=protocol,
        host=host,
        port=port,
        username=username,
        password=password,
    )


@dataclass
class ProxyPool:
    """Manages a pool of proxies with round-robin rotation and health tracking.

    A proxy is disabled after ``max_failures`` consecutive failures and comes
    back into rotation once ``cooldown_seconds`` have passed since its last
    failure. If every proxy is disabled the pool grants a full amnesty rather
    than blocking.
    """

    max_failures: int = 3
    cooldown_seconds: float = 300.0
    clock: Callable[[], float] = time.time
    proxies: list[ProxyConfig] = field(default_factory=list)
    current_index: int = 0
    _status: dict[str, ProxyState] = field(default_factory=dict)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @classmethod
    def from_options(
        cls,
        proxy: str | None = None,
        proxy_file: str | Path | None = None,
        *,
        max_failures: int = 3,
        cooldown_seconds: float = 300.0,
    ) -> "ProxyPool":
        """Create a pool from a single proxy spec and/or a proxy list file."""
        pool = cls(max_failures=max_failures, cooldown_seconds=cooldown_seconds)
        if proxy:
            pool.register(proxy)
        if proxy_file:
            pool.load_file(proxy_file)
        if pool.proxies:
            logger.info("proxy_pool.initialized", proxy_count=len(pool.proxies))
        return pool

    def __len__(self) -> int:
        """Return number of proxies in pool."""
        return len(self.proxies)

    @property
    def has_proxies(self) -> bool:
        return bool(self.proxies)

    def register(self, spec: str) -> bool:
        """Add a proxy to the rotation.

        Returns:
            False if a proxy with the same normalized URL is already registered.

        Raises:
            InvalidProxyError: If the spec cannot be parsed.
        """
        config = parse_proxy_url(spec)
        if config.url in self._status:
            logger.debug("proxy_pool.duplicate_skipped", proxy=config.masked_url)
            return False
        self.proxies.append(config)
        self._status[config.url] = ProxyState(url=config.url)
        return True

    def register_many(self, specs: Iterable[str]) -> int:
        """Register specs, skipping blanks, comments and malformed entries."""
        added = 0
        for lineno, line in enumerate(specs, start=1):
            trimmed = line.strip()
            if not trimmed or trimmed.startswith("#"):
                continue
            try:
                if self.register(trimmed):
                    added += 1
            except InvalidProxyError:
                logger.warning("proxy_pool.invalid_proxy_skipped", line=lineno)
        return added

    def load_file(self, path: str | Path) -> int:
        """Load proxies from a file, one spec per line.

        Raises:
            ProxyFileError: If the file does not exist or cannot be read.
        """
        resolved = Path(path).expanduser().resolve()
        if not resolved.is_file():
            raise ProxyFileError(str(resolved))
        try:
            content = resolved.read_text(encoding="utf-8")
        except OSError as e:
            raise ProxyFileError(str(resolved), reason=f"Cannot read proxy file ({e})") from e
        return self.register_many(content.splitlines())

    def _is_available(self, proxy: ProxyConfig, now: float) -> bool:
        """Check availability, re-enabling the proxy once its cooldown elapsed."""
        state = self._status[proxy.url]
        if state.disabled and state.last_failure_at is not None:
            if now - state.last_failure_at >= self.cooldown_seconds:
                state.reset()
                logger.info("proxy_pool.cooldown_elapsed", proxy=proxy.masked_url)
        return not state.disabled

    def available(self) -> list[ProxyConfig]:
        """Get all proxies currently eligible for rotation."""
        now = self.clock()
        return [p for p in self.proxies if self._is_available(p, now)]

    def _peek(self) -> tuple[ProxyConfig, int] | None:
        """Find the next eligible proxy and the index following it."""
        now = self.clock()
        count = len(self.proxies)
        for offset in range(count):
            index = (self.current_index + offset) % count
            proxy = self.proxies[index]
            if self._is_available(proxy, now):
                return proxy, (index + 1) % count
        return None

    async def next(self) -> ProxyConfig | None:
        """Get the next available proxy using round-robin rotation.

        Returns:
            The proxy to dispatch through, or None when no proxies are configured.
        """
        async with self._lock:
            if not self.proxies:
                return None

            found = self._peek()
            if found is None:
                logger.warning(
                    "proxy_pool.all_disabled_resetting",
                    proxy_count=len(self.proxies),
                )
                self.reset_all()
                self.current_index = 1 % len(self.proxies)
                return self.proxies[0]

            proxy, self.current_index = found
            return proxy

    def current(self) -> ProxyConfig | None:
        """Get the proxy the next call to ``next()`` will return, without advancing."""
        if not self.proxies:
            return None
        found = self._peek()
        return found[0] if found else self.proxies[0]

    def mark_success(self, proxy: ProxyConfig | None) -> None:
        """Mark a successful request for a proxy."""
        if proxy is None:
            return
        state = self._status.get(proxy.url)
        if state is None:
            return
        state.reset()
        state.last_success_at = self.clock()

    def mark_failed(self, proxy: ProxyConfig | None) -> None:
        """Mark a failed request; disables the proxy at the failure threshold."""
        if proxy is None:
            return
        state = self._status.get(proxy.url)
        if state is None:
            return
        state.failures += 1
        state.last_failure_at = self.clock()
        if state.failures >= self.max_failures and not state.disabled:
            state.disabled = True
            logger.warning(
                "proxy_pool.proxy_disabled",
                proxy=proxy.masked_url,
                failures=state.failures,
                cooldown_seconds=self.cooldown_seconds,
            )

    def status_of(self, proxy: ProxyConfig) -> ProxyState | None:
        return self._status.get(proxy.url)

    def statuses(self) -> list[ProxyState]:
        return [self._status[p.url] for p in self.proxies]

    def reset_all(self) -> None:
        """Re-enable every proxy and clear failure counts."""
        for state in self._status.values():
            state.reset()
        logger.info("proxy_pool.reset_all")

    def get_stats(self) -> dict[str, Any]:
        """Get pool statistics."""
        available = len(self.available())
        return {
            "total": len(self.proxies),
            "available": available,
            "disabled": len(self.proxies) - available,
        }
