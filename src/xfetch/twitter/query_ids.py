"""GraphQL query id resolution with a TTL cache and a shipped fallback table."""

from __future__ import annotations

import re
import time
from collections.abc import Callable

import httpx

from xfetch.core import CheckpointIOError, UnknownOperationError, get_logger
from xfetch.storage import RecordStore
from xfetch.twitter.endpoints import (
    BUNDLE_URL_PATTERN,
    FALLBACK_QUERY_IDS,
    HOME_PAGE_URL,
    QUERY_ID_PAIR_PATTERN,
    USER_AGENT,
)
from xfetch.twitter.models import QueryIdCache


logger = get_logger(__name__)

DEFAULT_TTL_MS = 24 * 60 * 60 * 1000


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def extract_bundle_urls(html: str) -> list[str]:
    """Return the unique client bundle URLs referenced by the home page."""
    return list(dict.fromkeys(re.findall(BUNDLE_URL_PATTERN, html)))


def extract_query_ids(source: str) -> dict[str, str]:
    """Scan bundle JavaScript for ``queryId``/``operationName`` pairs."""
    return {name: query_id for query_id, name in re.findall(QUERY_ID_PAIR_PATTERN, source)}


class QueryIdResolver:
    """Maps GraphQL operation names to the query ids X currently expects.

    Resolution order: cached ids while younger than the TTL, then the
    shipped fallback table. ``refresh()`` scrapes fresh ids from the web
    client bundle; it never raises, degrading to the fallback table.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        ttl_ms: int = DEFAULT_TTL_MS,
        fallback: dict[str, str] | None = None,
        clock_ms: Callable[[], int] = _now_ms,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._store = store
        self._ttl_ms = ttl_ms
        self._fallback = dict(fallback if fallback is not None else FALLBACK_QUERY_IDS)
        self._clock_ms = clock_ms
        self._transport = transport
        self._timeout = timeout
        self._cache = self._load_cache()

    def _load_cache(self) -> QueryIdCache | None:
        try:
            record = self._store.read()
        except CheckpointIOError as e:
            logger.warning("query_ids.cache_unreadable", error=str(e))
            return None
        if record is None:
            return None
        try:
            return QueryIdCache.model_validate(record)
        except ValueError as e:
            logger.warning("query_ids.cache_invalid", error=str(e))
            return None

    @property
    def is_cache_fresh(self) -> bool:
        if self._cache is None:
            return False
        return self._clock_ms() - self._cache.fetched_at < self._ttl_ms

    @property
    def cache_age_seconds(self) -> float | None:
        if self._cache is None:
            return None
        return (self._clock_ms() - self._cache.fetched_at) / 1000

    def resolve(self, operation: str) -> str:
        """Return the query id for ``operation``.

        Raises:
            UnknownOperationError: If neither the fresh cache nor the fallback
                table knows the operation.
        """
        if self._cache is not None and self.is_cache_fresh:
            query_id = self._cache.ids.get(operation)
            if query_id:
                return query_id
        query_id = self._fallback.get(operation)
        if query_id:
            return query_id
        raise UnknownOperationError(operation)

    def list(self) -> dict[str, str]:
        """Return cached ids if any were ever fetched, else the fallback table."""
        if self._cache is not None and self._cache.ids:
            return dict(self._cache.ids)
        return dict(self._fallback)

    async def refresh(self) -> dict[str, str]:
        """Fetch current query ids from the X web client and persist them."""
        try:
            async with httpx.AsyncClient(
                headers={"User-Agent": USER_AGENT},
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                response = await client.get(HOME_PAGE_URL)
                response.raise_for_status()
                bundle_urls = extract_bundle_urls(response.text)
                if not bundle_urls:
                    logger.warning("query_ids.bundle_not_found")
                    return dict(self._fallback)

                ids = dict(self._fallback)
                for url in bundle_urls:
                    bundle = await client.get(url)
                    bundle.raise_for_status()
                    ids.update(extract_query_ids(bundle.text))
        except httpx.HTTPError as e:
            logger.warning("query_ids.refresh_failed", error=str(e))
            return dict(self._fallback)

        cache = QueryIdCache(ids=ids, fetched_at=self._clock_ms())
        try:
            self._store.write(cache.to_record())
        except CheckpointIOError as e:
            logger.warning("query_ids.cache_write_failed", error=str(e))
        self._cache = cache
        logger.info(
            "query_ids.refreshed",
            operation_count=len(ids),
            bundle_count=len(bundle_urls),
        )
        return dict(ids)
