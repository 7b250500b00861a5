"""Cursor pagination with durable, resumable checkpoints."""

from __future__ import annotations

import asyncio
import math
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Generic, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from xfetch.core import CheckpointIOError, TransportError, get_logger
from xfetch.storage import RecordStore
from xfetch.twitter.models import CursorState, PageResult


logger = get_logger(__name__)

T = TypeVar("T")

# Async callable taking a cursor (None for the first page) and returning one page
FetchPage = Callable[[Optional[str]], Awaitable[PageResult[Any]]]


@dataclass
class PaginationOptions:
    """How many pages to fetch and how fast.

    With neither ``all`` nor ``max_pages`` a single page is fetched.
    """

    all: bool = False
    max_pages: int | None = None
    delay_ms: int = 1000
    query: str | None = None

    @property
    def page_cap(self) -> float:
        if self.max_pages:
            return self.max_pages
        return math.inf if self.all else 1


@dataclass
class PaginationProgress:
    """Progress update emitted after every page."""

    page: int
    items: int
    total: int
    cursor: str | None


@dataclass
class PageBatch(Generic[T]):
    """One page as yielded by ``Paginator.stream``."""

    items: list[T]
    page: int
    cursor: str | None
    has_more: bool


@dataclass
class PaginationResult(Generic[T]):
    """Outcome of ``Paginator.fetch_all``."""

    items: list[T] = field(default_factory=list)
    pages_loaded: int = 0
    complete: bool = False
    checkpoint: str | None = None

    @property
    def total_items(self) -> int:
        return len(self.items)


ProgressCallback = Callable[[PaginationProgress], None]


class Paginator(Generic[T]):
    """Drives a page-fetch function until the collection is exhausted or capped.

    After every page the cursor is checkpointed to ``store``; a later run with
    the same store picks up from that cursor. The checkpoint is deleted when
    the collection is exhausted and kept when an explicit ``max_pages`` cap
    stops the run while more data remains.

    Usage:
        paginator = Paginator(PaginationOptions(all=True), JsonFileStore("cursor.json"))
        result = await paginator.fetch_all(lambda c: client.search("python", cursor=c))
    """

    def __init__(
        self,
        options: PaginationOptions | None = None,
        store: RecordStore | None = None,
        *,
        on_progress: ProgressCallback | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.options = options or PaginationOptions()
        self._store = store
        self._on_progress = on_progress
        self._sleep = sleep
        self.state = CursorState(query=self.options.query)

    @property
    def checkpoint_location(self) -> str | None:
        return self._store.location if self._store is not None else None

    def load_state(self) -> CursorState | None:
        """Load the saved checkpoint; unreadable checkpoints start a fresh run."""
        if self._store is None:
            return None
        try:
            record = self._store.read()
        except CheckpointIOError as e:
            logger.warning("paginator.checkpoint_unreadable", error=str(e))
            return None
        if record is None:
            return None
        try:
            state = CursorState.model_validate(record)
        except ValueError as e:
            logger.warning(
                "paginator.checkpoint_invalid",
                path=self._store.location,
                error=str(e),
            )
            return None
        self.state = state
        return state

    def save_state(self, cursor: str | None) -> None:
        """Persist the checkpoint; write failures are logged and ignored."""
        self.state.cursor = cursor
        self.state.last_updated = datetime.now(timezone.utc)
        if self.options.query is not None:
            self.state.query = self.options.query
        if self._store is None:
            return
        try:
            self._store.write(self.state.to_record())
        except CheckpointIOError as e:
            logger.warning("paginator.checkpoint_write_failed", error=str(e))

    def clear_state(self) -> None:
        """Remove the checkpoint after a terminal run."""
        if self._store is None:
            return
        try:
            self._store.delete()
        except CheckpointIOError as e:
            logger.warning("paginator.checkpoint_delete_failed", error=str(e))

    def _resume_cursor(self) -> tuple[str | None, int, int]:
        saved = self.load_state()
        if saved is not None and saved.cursor:
            logger.info(
                "paginator.resuming",
                page=saved.pages_fetched + 1,
                cursor=saved.cursor[:20],
                path=self.checkpoint_location,
            )
            return saved.cursor, saved.pages_fetched, saved.total_items
        self.state = CursorState(query=self.options.query)
        return None, 0, 0

    def _finish(self, has_more: bool) -> None:
        if not has_more or not self.options.max_pages:
            self.clear_state()

    def _report_failure(self, error: Exception, page: int) -> None:
        logger.error(
            "paginator.page_failed",
            page=page,
            error=str(error),
            resume_from=self.checkpoint_location,
        )
        if isinstance(error, TransportError) and error.is_rate_limited:
            logger.warning(
                "paginator.rate_limited",
                hint=f"resume with --resume {self.checkpoint_location or 'cursor.json'}",
            )

    async def fetch_all(self, fetch: FetchPage) -> PaginationResult[T]:
        """Fetch pages sequentially and return every item.

        Raises:
            Exception: Whatever ``fetch`` raises, after the checkpoint is saved.
        """
        cursor, pages_done, items_done = self._resume_cursor()
        cap = self.options.page_cap
        items: list[T] = []
        pages_this_run = 0
        has_more = True

        try:
            while has_more and pages_this_run < cap:
                page = await fetch(cursor)
                items.extend(page.items)
                pages_this_run += 1
                self.state.pages_fetched = pages_done + pages_this_run
                self.state.total_items = items_done + len(items)

                has_more = page.has_more and bool(page.cursor)
                cursor = page.cursor
                self.save_state(cursor)

                if self._on_progress is not None:
                    self._on_progress(
                        PaginationProgress(
                            page=self.state.pages_fetched,
                            items=len(page.items),
                            total=self.state.total_items,
                            cursor=cursor,
                        )
                    )

                if has_more and pages_this_run < cap and self.options.delay_ms > 0:
                    await self._sleep(self.options.delay_ms / 1000)
        except Exception as e:
            self.save_state(cursor)
            self._report_failure(e, self.state.pages_fetched + 1)
            raise

        self._finish(has_more)
        logger.info(
            "paginator.finished",
            pages=pages_this_run,
            items=len(items),
            complete=not has_more,
        )
        return PaginationResult(
            items=items,
            pages_loaded=pages_this_run,
            complete=not has_more,
            checkpoint=self.checkpoint_location if has_more and self.options.max_pages else None,
        )

    async def stream(self, fetch: FetchPage) -> AsyncIterator[PageBatch[T]]:
        """Yield pages one at a time, checkpointing after each."""
        cursor, pages_done, items_done = self._resume_cursor()
        cap = self.options.page_cap
        pages_this_run = 0
        has_more = True

        while has_more and pages_this_run < cap:
            try:
                page = await fetch(cursor)
            except Exception as e:
                self.save_state(cursor)
                self._report_failure(e, pages_done + pages_this_run + 1)
                raise
            pages_this_run += 1
            self.state.pages_fetched = pages_done + pages_this_run
            items_done += len(page.items)
            self.state.total_items = items_done

            has_more = page.has_more and bool(page.cursor)
            cursor = page.cursor
            # Checkpoint before handing the page out; the consumer may stop here
            self.save_state(cursor)
            if not has_more or pages_this_run >= cap:
                self._finish(has_more)

            yield PageBatch(
                items=list(page.items),
                page=self.state.pages_fetched,
                cursor=page.cursor,
                has_more=has_more,
            )

            if has_more and pages_this_run < cap and self.options.delay_ms > 0:
                await self._sleep(self.options.delay_ms / 1000)


async def fetch_all_pages(
    fetch: FetchPage,
    options: PaginationOptions | None = None,
    store: RecordStore | None = None,
) -> list[T]:
    """Convenience wrapper returning only the items."""
    result = await Paginator[T](options, store).fetch_all(fetch)
    return result.items


def _is_retryable(error: BaseException) -> bool:
    if not isinstance(error, TransportError):
        return False
    return error.status is None or error.status == 429 or error.status >= 500


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "paginator.page_retry",
        attempt=retry_state.attempt_number,
        error=str(error),
    )


def with_retries(
    fetch: FetchPage,
    attempts: int = 3,
    wait_min: float = 1.0,
    wait_max: float = 10.0,
) -> FetchPage:
    """Wrap a page-fetch function so transport failures are retried.

    Each retry goes back through the client, so it picks up the next proxy
    and honours any rate-limit wait recorded by the failed attempt. API
    errors and client errors (4xx other than 429) are not retried.
    """

    async def fetch_with_retries(cursor: str | None) -> PageResult[Any]:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max(1, attempts)),
            wait=wait_exponential(min=wait_min, max=wait_max),
            retry=retry_if_exception(_is_retryable),
            before_sleep=_log_retry,
            reraise=True,
        ):
            with attempt:
                return await fetch(cursor)
        raise AssertionError("unreachable")

    return fetch_with_retries
