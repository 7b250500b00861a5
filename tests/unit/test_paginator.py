"""Unit tests for resumable pagination."""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable

import pytest

from xfetch.core import CheckpointIOError, RemoteAPIError, TransportError
from xfetch.scraper import (
    FetchPage,
    PaginationOptions,
    Paginator,
    fetch_all_pages,
    with_retries,
)
from xfetch.storage import JsonFileStore
from xfetch.twitter.models import PageResult


class FakeCollection:
    """Serves a fixed list of pages keyed by cursor."""

    def __init__(self, pages: list[list[str]], fail_on_call: int | None = None) -> None:
        self.pages = pages
        self.fail_on_call = fail_on_call
        self.cursors_seen: list[str | None] = []

    async def __call__(self, cursor: str | None) -> PageResult[str]:
        self.cursors_seen.append(cursor)
        if self.fail_on_call is not None and len(self.cursors_seen) == self.fail_on_call:
            raise TransportError("HTTP 503 on SearchTimeline", status=503, endpoint="SearchTimeline")
        index = 0 if cursor is None else int(cursor.removeprefix("c"))
        next_cursor = f"c{index + 1}" if index + 1 < len(self.pages) else None
        return PageResult[str](items=self.pages[index], cursor=next_cursor, has_more=next_cursor is not None)


class RecordingStore:
    """In-memory store that counts writes and deletes."""

    def __init__(self) -> None:
        self.record: dict | None = None
        self.writes: list[dict] = []
        self.deletes = 0

    @property
    def location(self) -> str:
        return "memory://cursor"

    def read(self):
        return self.record

    def write(self, record):
        self.record = record
        self.writes.append(record)

    def delete(self):
        self.record = None
        self.deletes += 1


class BrokenStore(RecordingStore):
    def read(self):
        raise CheckpointIOError("unreadable", path="memory://cursor", operation="read")

    def write(self, record):
        raise CheckpointIOError("disk full", path="memory://cursor", operation="write")


PAGES = [["a", "b"], ["c", "d"], ["e"]]


class TestOptions:
    """Test the page cap."""

    def test_default_is_single_page(self):
        assert PaginationOptions().page_cap == 1

    def test_all_is_unbounded(self):
        assert PaginationOptions(all=True).page_cap == float("inf")

    def test_max_pages_wins(self):
        assert PaginationOptions(all=True, max_pages=4).page_cap == 4


class TestFetchAll:
    """Test the main pagination loop."""

    @pytest.mark.asyncio
    async def test_three_page_collection(self, sleep):
        store = RecordingStore()
        fetch = FakeCollection(PAGES)
        paginator = Paginator(PaginationOptions(all=True, delay_ms=1000), store, sleep=sleep)

        result = await paginator.fetch_all(fetch)

        assert result.items == ["a", "b", "c", "d", "e"]
        assert result.pages_loaded == 3
        assert result.complete
        assert result.checkpoint is None
        assert len(store.writes) == 3
        assert store.deletes == 1
        assert store.record is None
        # Delay between pages only, never after the last one
        assert sleep.calls == [1.0, 1.0]
        assert fetch.cursors_seen == [None, "c1", "c2"]

    @pytest.mark.asyncio
    async def test_checkpoint_contents(self, sleep):
        store = RecordingStore()
        paginator = Paginator(
            PaginationOptions(all=True, query="python"), store, sleep=sleep
        )
        await paginator.fetch_all(FakeCollection(PAGES))

        first = store.writes[0]
        assert first["cursor"] == "c1"
        assert first["pagesFetched"] == 1
        assert first["totalItems"] == 2
        assert first["query"] == "python"
        assert "lastUpdated" in first
        assert "cursor" not in store.writes[-1]

    @pytest.mark.asyncio
    async def test_single_page_default(self, sleep):
        store = RecordingStore()
        result = await Paginator(PaginationOptions(), store, sleep=sleep).fetch_all(FakeCollection(PAGES))

        assert result.items == ["a", "b"]
        assert not result.complete
        assert sleep.calls == []
        # An implicit single page is not resumable
        assert store.deletes == 1

    @pytest.mark.asyncio
    async def test_capped_run_keeps_checkpoint(self, sleep):
        store = RecordingStore()
        paginator = Paginator(PaginationOptions(max_pages=2), store, sleep=sleep)

        result = await paginator.fetch_all(FakeCollection(PAGES))

        assert result.items == ["a", "b", "c", "d"]
        assert result.pages_loaded == 2
        assert not result.complete
        assert result.checkpoint == "memory://cursor"
        assert store.deletes == 0
        assert store.record["cursor"] == "c2"

    @pytest.mark.asyncio
    async def test_capped_run_then_resume_finishes(self, sleep):
        store = RecordingStore()
        first = await Paginator(PaginationOptions(max_pages=2), store, sleep=sleep).fetch_all(
            FakeCollection(PAGES)
        )
        second = await Paginator(PaginationOptions(max_pages=2), store, sleep=sleep).fetch_all(
            FakeCollection(PAGES)
        )

        assert first.items + second.items == ["a", "b", "c", "d", "e"]
        assert second.complete
        assert store.record is None

    @pytest.mark.asyncio
    async def test_progress_callback(self, sleep):
        updates = []
        paginator = Paginator(PaginationOptions(all=True), sleep=sleep, on_progress=updates.append)
        await paginator.fetch_all(FakeCollection(PAGES))

        assert [(u.page, u.items, u.total) for u in updates] == [(1, 2, 2), (2, 2, 4), (3, 1, 5)]
        assert updates[-1].cursor is None

    @pytest.mark.asyncio
    async def test_empty_page_with_cursor_stops(self, sleep):
        async def fetch(cursor):
            return PageResult[str](items=[], cursor="again", has_more=False)

        result = await Paginator(PaginationOptions(all=True), sleep=sleep).fetch_all(fetch)
        assert result.pages_loaded == 1
        assert result.complete


class TestFailureAndResume:
    """Test checkpointing across failures."""

    @pytest.mark.asyncio
    async def test_failure_persists_then_reraises(self, sleep):
        store = RecordingStore()
        paginator = Paginator(PaginationOptions(all=True), store, sleep=sleep)

        with pytest.raises(TransportError):
            await paginator.fetch_all(FakeCollection(PAGES, fail_on_call=2))

        assert store.record["cursor"] == "c1"
        assert store.record["pagesFetched"] == 1
        assert store.deletes == 0

    @pytest.mark.asyncio
    async def test_failure_on_first_page_still_raises(self, sleep):
        store = RecordingStore()
        with pytest.raises(TransportError):
            await Paginator(PaginationOptions(all=True), store, sleep=sleep).fetch_all(
                FakeCollection(PAGES, fail_on_call=1)
            )
        assert "cursor" not in store.record

    @pytest.mark.asyncio
    @pytest.mark.parametrize("fail_on_call", [2, 3])
    async def test_resume_is_idempotent(self, sleep, tmp_path, fail_on_call):
        store = JsonFileStore(tmp_path / "cursor.json")

        first = Paginator(PaginationOptions(all=True), store, sleep=sleep)
        with pytest.raises(TransportError):
            await first.fetch_all(FakeCollection(PAGES, fail_on_call=fail_on_call))
        collected_before = sum(PAGES[: fail_on_call - 1], [])

        resumed_fetch = FakeCollection(PAGES)
        second = await Paginator(PaginationOptions(all=True), store, sleep=sleep).fetch_all(resumed_fetch)

        assert collected_before + second.items == ["a", "b", "c", "d", "e"]
        assert resumed_fetch.cursors_seen[0] == f"c{fail_on_call - 1}"
        assert not store.exists()

    @pytest.mark.asyncio
    async def test_resume_continues_page_count(self, sleep, tmp_path):
        path = tmp_path / "cursor.json"
        path.write_text(json.dumps({"cursor": "c2", "pagesFetched": 2, "totalItems": 4, "lastUpdated": "2024-01-01T00:00:00Z"}))
        updates = []

        paginator = Paginator(
            PaginationOptions(all=True), JsonFileStore(path), sleep=sleep, on_progress=updates.append
        )
        result = await paginator.fetch_all(FakeCollection(PAGES))

        assert result.items == ["e"]
        assert (updates[0].page, updates[0].total) == (3, 5)

    @pytest.mark.asyncio
    async def test_unreadable_checkpoint_starts_fresh(self, sleep, tmp_path):
        path = tmp_path / "cursor.json"
        path.write_text("{garbage")
        fetch = FakeCollection(PAGES)

        result = await Paginator(PaginationOptions(all=True), JsonFileStore(path), sleep=sleep).fetch_all(fetch)

        assert fetch.cursors_seen[0] is None
        assert result.items == ["a", "b", "c", "d", "e"]

    @pytest.mark.asyncio
    async def test_checkpoint_write_errors_are_swallowed(self, sleep):
        result = await Paginator(PaginationOptions(all=True), BrokenStore(), sleep=sleep).fetch_all(
            FakeCollection(PAGES)
        )
        assert result.complete
        assert len(result.items) == 5


class TestStream:
    """Test page-by-page streaming."""

    @pytest.mark.asyncio
    async def test_stream_yields_batches(self, sleep):
        store = RecordingStore()
        paginator = Paginator(PaginationOptions(all=True), store, sleep=sleep)

        batches = [batch async for batch in paginator.stream(FakeCollection(PAGES))]

        assert [b.items for b in batches] == PAGES
        assert [b.page for b in batches] == [1, 2, 3]
        assert batches[-1].has_more is False
        assert store.deletes == 1

    @pytest.mark.asyncio
    async def test_stream_failure_keeps_checkpoint(self, sleep):
        store = RecordingStore()
        paginator = Paginator(PaginationOptions(all=True), store, sleep=sleep)
        seen = []

        with pytest.raises(TransportError):
            async for batch in paginator.stream(FakeCollection(PAGES, fail_on_call=3)):
                seen.extend(batch.items)

        assert seen == ["a", "b", "c", "d"]
        assert store.record["cursor"] == "c2"

    @pytest.mark.asyncio
    async def test_consumer_stopping_early_keeps_the_page_checkpoint(self, sleep):
        store = RecordingStore()
        paginator = Paginator(PaginationOptions(all=True), store, sleep=sleep)

        async for batch in paginator.stream(FakeCollection(PAGES)):
            assert store.record["cursor"] == "c1"
            assert store.record["pagesFetched"] == 1
            break

        assert len(store.writes) == 1
        assert store.deletes == 0

    @pytest.mark.asyncio
    async def test_last_page_clears_checkpoint_before_yield(self, sleep):
        store = RecordingStore()
        paginator = Paginator(PaginationOptions(all=True), store, sleep=sleep)
        stream = paginator.stream(FakeCollection([["only"]]))

        batch = await stream.__anext__()

        assert batch.items == ["only"]
        assert batch.has_more is False
        assert store.deletes == 1
        await stream.aclose()


class TestHelpers:
    """Test the convenience wrappers."""

    @pytest.mark.asyncio
    async def test_fetch_all_pages(self):
        items = await fetch_all_pages(FakeCollection(PAGES), PaginationOptions(all=True, delay_ms=0))
        assert items == ["a", "b", "c", "d", "e"]

    @pytest.mark.asyncio
    async def test_with_retries_recovers_from_transport_errors(self):
        fetch = FakeCollection(PAGES, fail_on_call=1)
        page = await with_retries(fetch, attempts=3, wait_min=0, wait_max=0)(None)

        assert page.items == ["a", "b"]
        assert fetch.cursors_seen == [None, None]

    @pytest.mark.asyncio
    async def test_with_retries_gives_up(self):
        calls = []

        async def always_down(cursor):
            calls.append(cursor)
            raise TransportError("connect failed")

        with pytest.raises(TransportError):
            await with_retries(always_down, attempts=2, wait_min=0, wait_max=0)(None)
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_with_retries_does_not_retry_api_errors(self):
        calls = []

        async def broken_query(cursor):
            calls.append(cursor)
            raise RemoteAPIError(["Query: Unspecified"])

        with pytest.raises(RemoteAPIError):
            await with_retries(broken_query, attempts=3, wait_min=0, wait_max=0)(None)
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_with_retries_does_not_retry_client_errors(self):
        calls = []

        async def forbidden(cursor):
            calls.append(cursor)
            raise TransportError("HTTP 403", status=403)

        with pytest.raises(TransportError):
            await with_retries(forbidden, attempts=3, wait_min=0, wait_max=0)(None)
        assert len(calls) == 1


class TestFetchPageAlias:
    """Test the page-fetch type alias composes into other annotations."""

    def test_nests_inside_callable(self):
        factory = Callable[[object], Awaitable[FetchPage]]
        assert factory.__args__[-1] == Awaitable[FetchPage]

    @pytest.mark.asyncio
    async def test_fake_collection_satisfies_alias(self):
        fetch: FetchPage = FakeCollection([["a"]])
        page = await fetch(None)
        assert page.items == ["a"]
