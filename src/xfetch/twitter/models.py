"""Data models for rate state, pagination and X entities."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


T = TypeVar("T")


class EndpointRateState(BaseModel):
    """Server-reported quota for one logical endpoint."""

    model_config = ConfigDict(frozen=True)

    limit: int = Field(default=0, ge=0)
    remaining: int = Field(default=0, ge=0)
    reset: float = Field(default=0.0, description="Epoch seconds")

    @classmethod
    def from_headers(cls, headers: Any) -> EndpointRateState | None:
        """Build from x-rate-limit-* headers, or None when absent."""
        limit = headers.get("x-rate-limit-limit")
        remaining = headers.get("x-rate-limit-remaining")
        reset = headers.get("x-rate-limit-reset")
        if remaining is None or reset is None:
            return None
        try:
            return cls(
                limit=int(limit) if limit else 0,
                remaining=max(0, int(remaining)),
                reset=float(reset),
            )
        except ValueError:
            return None

    def is_stale(self, now: float | None = None) -> bool:
        return (time.time() if now is None else now) > self.reset


class PageResult(BaseModel, Generic[T]):
    """One fetched page of a paginated collection."""

    items: list[T] = Field(default_factory=list)
    cursor: str | None = None
    has_more: bool = False

    @model_validator(mode="after")
    def clear_has_more_without_cursor(self) -> PageResult[T]:
        if not self.cursor and self.has_more:
            self.has_more = False
        return self


class CursorState(BaseModel):
    """Resumable pagination progress, persisted after every page."""

    model_config = ConfigDict(populate_by_name=True)

    cursor: str | None = None
    pages_fetched: int = Field(default=0, alias="pagesFetched", ge=0)
    total_items: int = Field(default=0, alias="totalItems", ge=0)
    last_updated: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        alias="lastUpdated",
    )
    query: str | None = None

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class QueryIdCache(BaseModel):
    """Persisted operation name to query id mapping."""

    model_config = ConfigDict(populate_by_name=True)

    ids: dict[str, str] = Field(default_factory=dict)
    fetched_at: int = Field(default=0, alias="fetchedAt", description="Epoch ms")

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def _parse_twitter_date(v: Any) -> datetime | None:
    if v is None or isinstance(v, datetime):
        return v
    if isinstance(v, str):
        try:
            return datetime.strptime(v, "%a %b %d %H:%M:%S %z %Y")
        except ValueError:
            return None
    return None


class TwitterUser(BaseModel):
    """X user profile data."""

    id: str = Field(..., description="REST id of the user")
    screen_name: str = Field(default="")
    name: str = Field(default="")
    description: str = Field(default="")
    location: str = Field(default="")
    profile_image_url: str = Field(default="")
    followers_count: int = Field(default=0, ge=0)
    following_count: int = Field(default=0, ge=0)
    tweet_count: int = Field(default=0, ge=0)
    created_at: datetime | None = Field(default=None)
    verified: bool = Field(default=False)
    is_blue_verified: bool = Field(default=False)
    is_protected: bool = Field(default=False)

    @field_validator("created_at", mode="before")
    @classmethod
    def parse_created_at(cls, v: Any) -> datetime | None:
        """Parse Twitter date format."""
        return _parse_twitter_date(v)

    @classmethod
    def from_graphql_response(cls, data: dict[str, Any]) -> TwitterUser:
        """Parse a user result object."""
        legacy = data.get("legacy", {})
        core = data.get("core", {})
        return cls(
            id=data.get("rest_id", ""),
            screen_name=core.get("screen_name") or legacy.get("screen_name", ""),
            name=core.get("name") or legacy.get("name", ""),
            description=legacy.get("description", ""),
            location=legacy.get("location", "") or "",
            profile_image_url=legacy.get("profile_image_url_https", ""),
            followers_count=legacy.get("followers_count", 0),
            following_count=legacy.get("friends_count", 0),
            tweet_count=legacy.get("statuses_count", 0),
            created_at=core.get("created_at") or legacy.get("created_at"),
            verified=legacy.get("verified", False),
            is_blue_verified=data.get("is_blue_verified", False),
            is_protected=legacy.get("protected", False),
        )


class Tweet(BaseModel):
    """Tweet data model."""

    id: str = Field(..., description="Tweet ID")
    text: str = Field(default="")
    created_at: datetime | None = Field(default=None)
    author: TwitterUser | None = Field(default=None)
    reply_count: int = Field(default=0, ge=0)
    retweet_count: int = Field(default=0, ge=0)
    like_count: int = Field(default=0, ge=0)
    quote_count: int = Field(default=0, ge=0)
    view_count: int = Field(default=0, ge=0)
    conversation_id: str = Field(default="")
    in_reply_to_tweet_id: str | None = Field(default=None)
    quoted_tweet_id: str | None = Field(default=None)
    language: str = Field(default="")

    @field_validator("created_at", mode="before")
    @classmethod
    def parse_created_at(cls, v: Any) -> datetime | None:
        """Parse Twitter date format."""
        return _parse_twitter_date(v)

    @classmethod
    def from_graphql_response(cls, data: dict[str, Any]) -> Tweet:
        """Parse a tweet result object.

        Tweets wrapped in ``TweetWithVisibilityResults`` are unwrapped first.
        """
        if data.get("__typename") == "TweetWithVisibilityResults":
            data = data.get("tweet", {})
        legacy = data.get("legacy", {})
        user_result = data.get("core", {}).get("user_results", {}).get("result")
        note = (
            data.get("note_tweet", {})
            .get("note_tweet_results", {})
            .get("result", {})
            .get("text")
        )
        views = data.get("views", {}).get("count", "0")
        quoted = data.get("quoted_status_result", {}).get("result", {})
        return cls(
            id=data.get("rest_id", ""),
            text=note or legacy.get("full_text", ""),
            created_at=legacy.get("created_at"),
            author=TwitterUser.from_graphql_response(user_result) if user_result else None,
            reply_count=legacy.get("reply_count", 0),
            retweet_count=legacy.get("retweet_count", 0),
            like_count=legacy.get("favorite_count", 0),
            quote_count=legacy.get("quote_count", 0),
            view_count=int(views) if str(views).isdigit() else 0,
            conversation_id=legacy.get("conversation_id_str", ""),
            in_reply_to_tweet_id=legacy.get("in_reply_to_status_id_str"),
            quoted_tweet_id=quoted.get("rest_id") if quoted else None,
            language=legacy.get("lang", ""),
        )


class TwitterList(BaseModel):
    """A curated list of accounts."""

    id: str = Field(..., description="REST id of the list")
    name: str = Field(default="")
    description: str = Field(default="")
    member_count: int = Field(default=0, ge=0)
    subscriber_count: int = Field(default=0, ge=0)
    is_private: bool = Field(default=False)
    created_at: datetime | None = Field(default=None)
    owner: TwitterUser | None = Field(default=None)

    @field_validator("created_at", mode="before")
    @classmethod
    def parse_created_at(cls, v: Any) -> datetime | None:
        """Lists carry epoch milliseconds instead of the tweet date format."""
        if isinstance(v, (int, float)) or (isinstance(v, str) and v.isdigit()):
            return datetime.fromtimestamp(int(v) / 1000, tz=timezone.utc)
        return _parse_twitter_date(v)

    @classmethod
    def from_graphql_response(cls, data: dict[str, Any]) -> TwitterList:
        owner = data.get("user_results", {}).get("result")
        return cls(
            id=data.get("id_str") or data.get("rest_id", ""),
            name=data.get("name", ""),
            description=data.get("description", "") or "",
            member_count=data.get("member_count", 0) or 0,
            subscriber_count=data.get("subscriber_count", 0) or 0,
            is_private=str(data.get("mode", "")).lower() == "private",
            created_at=data.get("created_at"),
            owner=TwitterUser.from_graphql_response(owner) if owner else None,
        )


class DMParticipant(BaseModel):
    """Member of a direct message conversation."""

    user_id: str
    screen_name: str = ""
    name: str = ""
    profile_image_url: str = ""


class DMMessage(BaseModel):
    """One direct message."""

    id: str
    conversation_id: str = ""
    sender_id: str = ""
    text: str = ""
    time: int = Field(default=0, description="Epoch ms")
    media_urls: list[str] = Field(default_factory=list)
    urls: list[str] = Field(default_factory=list)


class DMConversation(BaseModel):
    """Inbox entry for a direct message conversation."""

    conversation_id: str
    type: str = ""
    name: str | None = None
    sort_timestamp: int = Field(default=0, description="Epoch ms")
    participants: list[DMParticipant] = Field(default_factory=list)
    last_message: DMMessage | None = None
    trusted: bool = False
    muted: bool = False
