"""Shared fixtures for the xfetch test suite."""

from __future__ import annotations

from pathlib import Path

import pytest

from xfetch.core import Credential, get_settings


START_TIME = 1_700_000_000.0


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, start: float = START_TIME) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records durations and advances a clock."""

    def __init__(self, clock: FakeClock | None = None) -> None:
        self.calls: list[float] = []
        self._clock = clock

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self._clock is not None:
            self._clock.advance(seconds)

    @property
    def total(self) -> float:
        return sum(self.calls)


# ---------------------------------------------------------------------------
# Keep settings away from the real home directory
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Point the config dir at a temp dir and drop cached settings."""
    monkeypatch.setenv("XFETCH_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.delenv("XFETCH_CREDENTIALS", raising=False)
    monkeypatch.delenv("XFETCH_PROXY", raising=False)
    monkeypatch.delenv("XFETCH_PROXY_FILE", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep(clock: FakeClock) -> RecordingSleep:
    return RecordingSleep(clock)


@pytest.fixture
def credential() -> Credential:
    return Credential(auth_token="token-alpha-0001", ct0="csrf-alpha", username="alpha")


@pytest.fixture
def credentials() -> list[Credential]:
    return [
        Credential(auth_token="token-alpha-0001", ct0="csrf-alpha", username="alpha"),
        Credential(auth_token="token-bravo-0002", ct0="csrf-bravo", username="bravo"),
        Credential(auth_token="token-charlie-03", ct0="csrf-charlie", username="charlie"),
    ]


# ---------------------------------------------------------------------------
# GraphQL payload builders
# ---------------------------------------------------------------------------

def build_user_result(rest_id: str, screen_name: str, followers: int = 10) -> dict:
    return {
        "__typename": "User",
        "rest_id": rest_id,
        "is_blue_verified": False,
        "core": {"screen_name": screen_name, "name": screen_name.title()},
        "legacy": {
            "description": f"bio of {screen_name}",
            "followers_count": followers,
            "friends_count": 3,
            "statuses_count": 42,
            "created_at": "Wed Oct 10 20:19:24 +0000 2018",
        },
    }


def build_tweet_result(rest_id: str, text: str = "hello", author: str = "alpha") -> dict:
    return {
        "__typename": "Tweet",
        "rest_id": rest_id,
        "core": {"user_results": {"result": build_user_result(f"u-{author}", author)}},
        "views": {"count": "1500"},
        "legacy": {
            "full_text": text,
            "created_at": "Thu Nov 16 08:00:00 +0000 2023",
            "favorite_count": 7,
            "retweet_count": 2,
            "reply_count": 1,
            "quote_count": 0,
            "conversation_id_str": rest_id,
            "lang": "en",
        },
    }


def build_timeline(entries_results: list[dict], cursor: str | None, kind: str = "tweet") -> dict:
    """Build a timeline ``{"instructions": [...]}`` block."""
    key = "tweet_results" if kind == "tweet" else "user_results"
    entries = [
        {
            "entryId": f"{kind}-{i}",
            "content": {"itemContent": {key: {"result": result}}},
        }
        for i, result in enumerate(entries_results)
    ]
    if cursor is not None:
        entries.append(
            {
                "entryId": f"cursor-bottom-{cursor}",
                "content": {"cursorType": "Bottom", "value": cursor},
            }
        )
    return {"instructions": [{"type": "TimelineAddEntries", "entries": entries}]}


def build_search_data(tweet_ids: list[str], cursor: str | None) -> dict:
    results = [build_tweet_result(tid, text=f"tweet {tid}") for tid in tweet_ids]
    return {
        "search_by_raw_query": {
            "search_timeline": {"timeline": build_timeline(results, cursor)}
        }
    }


@pytest.fixture
def user_result():
    return build_user_result


@pytest.fixture
def tweet_result():
    return build_tweet_result


@pytest.fixture
def timeline():
    return build_timeline


@pytest.fixture
def search_data():
    return build_search_data
