"""Parsers mapping raw GraphQL ``data`` payloads to typed pages."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from xfetch.core import get_logger
from xfetch.twitter.models import (
    DMConversation,
    DMMessage,
    DMParticipant,
    PageResult,
    Tweet,
    TwitterList,
    TwitterUser,
)


logger = get_logger(__name__)

ResponseParser = Callable[[dict[str, Any]], Any]


def _dig(data: Any, path: Iterable[str]) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def _iter_entries(instructions: list[dict[str, Any]]) -> Iterable[dict[str, Any]]:
    for instruction in instructions:
        kind = instruction.get("type")
        if kind == "TimelineAddEntries":
            yield from instruction.get("entries", [])
        elif kind == "TimelineReplaceEntry" and instruction.get("entry"):
            yield instruction["entry"]


def _bottom_cursor(entry: dict[str, Any]) -> str | None:
    content = entry.get("content", {})
    # Conversation timelines wrap the cursor in itemContent
    cursor = content if "value" in content else content.get("itemContent", {})
    if cursor.get("cursorType") == "Bottom" or entry.get("entryId", "").startswith("cursor-bottom-"):
        return cursor.get("value")
    return None


def _entry_items(entry: dict[str, Any]) -> Iterable[dict[str, Any]]:
    """Yield itemContent objects of an entry, including module (conversation) items."""
    content = entry.get("content", {})
    if "itemContent" in content:
        yield content["itemContent"]
    for item in content.get("items", []):
        item_content = item.get("item", {}).get("itemContent")
        if item_content:
            yield item_content


def parse_tweet_timeline(data: dict[str, Any], path: tuple[str, ...]) -> PageResult[Tweet]:
    """Parse a tweet timeline whose ``instructions`` live at ``path``."""
    instructions = _dig(data, (*path, "instructions")) or []
    tweets: list[Tweet] = []
    cursor = None

    for entry in _iter_entries(instructions):
        cursor = _bottom_cursor(entry) or cursor
        for item in _entry_items(entry):
            result = _dig(item, ("tweet_results", "result"))
            if not result or result.get("__typename") == "TweetTombstone":
                continue
            try:
                tweets.append(Tweet.from_graphql_response(result))
            except ValueError as e:
                logger.debug("parsers.tweet_skipped", error=str(e))

    return PageResult[Tweet](items=tweets, cursor=cursor, has_more=bool(cursor and tweets))


def parse_user_timeline(data: dict[str, Any], path: tuple[str, ...]) -> PageResult[TwitterUser]:
    """Parse a user list timeline (followers, following, people search)."""
    instructions = _dig(data, (*path, "instructions")) or []
    users: list[TwitterUser] = []
    cursor = None

    for entry in _iter_entries(instructions):
        cursor = _bottom_cursor(entry) or cursor
        for item in _entry_items(entry):
            result = _dig(item, ("user_results", "result"))
            if result and result.get("__typename") == "User":
                users.append(TwitterUser.from_graphql_response(result))

    return PageResult[TwitterUser](items=users, cursor=cursor, has_more=bool(cursor and users))


def parse_user(data: dict[str, Any]) -> TwitterUser | None:
    """Parse a UserByScreenName / UserByRestId payload."""
    result = _dig(data, ("user", "result"))
    if not result or result.get("__typename") != "User":
        return None
    return TwitterUser.from_graphql_response(result)


# Where each operation keeps its timeline instructions
USER_TWEETS_PATH = ("user", "result", "timeline", "timeline")
USER_TWEETS_V2_PATH = ("user", "result", "timeline_v2", "timeline")
SOCIAL_GRAPH_PATH = ("user", "result", "timeline", "timeline")
SEARCH_PATH = ("search_by_raw_query", "search_timeline", "timeline")
HOME_PATH = ("home", "home_timeline_urt")
LIKES_PATH = ("user", "result", "timeline", "timeline")
BOOKMARKS_PATH = ("bookmark_timeline_v2", "timeline")
LIST_PATH = ("list", "tweets_timeline", "timeline")
LIST_MEMBERS_PATH = ("list", "members_timeline", "timeline")
USER_LISTS_PATH = ("user", "result", "timeline", "timeline")
THREAD_PATH = ("threaded_conversation_with_injections_v2",)


def parse_user_tweets(data: dict[str, Any]) -> PageResult[Tweet]:
    if _dig(data, USER_TWEETS_V2_PATH) is not None:
        return parse_tweet_timeline(data, USER_TWEETS_V2_PATH)
    return parse_tweet_timeline(data, USER_TWEETS_PATH)


def parse_thread(data: dict[str, Any]) -> PageResult[Tweet]:
    """Parse a TweetDetail conversation: the focal tweet, its thread and replies."""
    return parse_tweet_timeline(data, THREAD_PATH)


def parse_list(data: dict[str, Any]) -> TwitterList | None:
    """Parse a ListByRestId payload."""
    result = data.get("list")
    if not result:
        return None
    return TwitterList.from_graphql_response(result)


def parse_list_timeline(data: dict[str, Any], path: tuple[str, ...] = USER_LISTS_PATH) -> PageResult[TwitterList]:
    """Parse the lists owned by a user."""
    instructions = _dig(data, (*path, "instructions")) or []
    lists: list[TwitterList] = []
    cursor = None

    for entry in _iter_entries(instructions):
        cursor = _bottom_cursor(entry) or cursor
        for item in _entry_items(entry):
            if item.get("list"):
                lists.append(TwitterList.from_graphql_response(item["list"]))

    return PageResult[TwitterList](items=lists, cursor=cursor, has_more=bool(cursor and lists))


# ---------------------------------------------------------------------------
# REST payloads
# ---------------------------------------------------------------------------

def _notification_cursor(instructions: list[dict[str, Any]]) -> str | None:
    cursor = None
    for instruction in instructions:
        entries = list(instruction.get("addEntries", {}).get("entries", []))
        replaced = instruction.get("replaceEntry", {}).get("entry")
        if replaced:
            entries.append(replaced)
        for entry in entries:
            operation = _dig(entry, ("content", "operation", "cursor")) or {}
            if operation.get("cursorType") == "Bottom":
                cursor = operation.get("value")
    return cursor


def parse_notifications(payload: dict[str, Any]) -> PageResult[Tweet]:
    """Parse a v2 notifications timeline into the tweets it references.

    Tweets and users arrive in ``globalObjects``; tweets whose author is not
    included are dropped. Newest first.
    """
    global_objects = payload.get("globalObjects", {})
    users = {
        user_id: TwitterUser.from_graphql_response(
            {
                "rest_id": user_id,
                "legacy": user,
                "is_blue_verified": user.get("ext_is_blue_verified", False),
            }
        )
        for user_id, user in global_objects.get("users", {}).items()
    }

    tweets: list[Tweet] = []
    for tweet_id, raw in global_objects.get("tweets", {}).items():
        author = users.get(raw.get("user_id_str", ""))
        if author is None:
            continue
        legacy = {**raw, "full_text": raw.get("full_text") or raw.get("text", "")}
        views = _dig(raw, ("ext_views", "count")) or "0"
        tweet = Tweet.from_graphql_response(
            {"rest_id": tweet_id, "legacy": legacy, "views": {"count": views}}
        )
        tweets.append(tweet.model_copy(update={"author": author}))

    tweets.sort(key=lambda t: t.created_at.timestamp() if t.created_at else 0.0, reverse=True)
    cursor = _notification_cursor(_dig(payload, ("timeline", "instructions")) or [])
    return PageResult[Tweet](items=tweets, cursor=cursor, has_more=bool(cursor))


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def parse_dm_message(entry: dict[str, Any]) -> DMMessage | None:
    message = entry.get("message")
    if not message:
        return None
    data = message.get("message_data", {})
    attachment = data.get("attachment", {})

    media_urls = []
    photo = attachment.get("photo")
    if photo and photo.get("media_url_https"):
        media_urls.append(photo["media_url_https"])
    variants = [v for v in _dig(attachment, ("video", "variants")) or [] if v.get("bitrate") is not None]
    if variants:
        best = max(variants, key=lambda v: v["bitrate"])
        if best.get("url"):
            media_urls.append(best["url"])

    return DMMessage(
        id=str(data.get("id", message.get("id", ""))),
        conversation_id=message.get("conversation_id", ""),
        sender_id=str(data.get("sender_id", "")),
        text=data.get("text", ""),
        time=_as_int(data.get("time")),
        media_urls=media_urls,
        urls=[u.get("expanded_url") or u.get("url", "") for u in _dig(data, ("entities", "urls")) or []],
    )


def parse_dm_inbox(payload: dict[str, Any]) -> PageResult[DMConversation]:
    """Parse the DM inbox state: conversations, newest first, with their last message."""
    inbox = payload.get("inbox_initial_state") or payload.get("user_events") or {}
    users = inbox.get("users", {})

    last_messages: dict[str, DMMessage] = {}
    for entry in inbox.get("entries", []):
        message = parse_dm_message(entry)
        if message is None:
            continue
        current = last_messages.get(message.conversation_id)
        if current is None or message.time > current.time:
            last_messages[message.conversation_id] = message

    conversations = []
    for conversation_id, raw in inbox.get("conversations", {}).items():
        participants = [
            DMParticipant(
                user_id=users[p["user_id"]].get("id_str", p["user_id"]),
                screen_name=users[p["user_id"]].get("screen_name", ""),
                name=users[p["user_id"]].get("name", ""),
                profile_image_url=users[p["user_id"]].get("profile_image_url_https", ""),
            )
            for p in raw.get("participants", [])
            if p.get("user_id") in users
        ]
        conversations.append(
            DMConversation(
                conversation_id=raw.get("conversation_id", conversation_id),
                type=raw.get("type", ""),
                name=raw.get("name"),
                sort_timestamp=_as_int(raw.get("sort_timestamp")),
                participants=participants,
                last_message=last_messages.get(conversation_id),
                trusted=bool(raw.get("trusted", False)),
                muted=bool(raw.get("muted", False)),
            )
        )
    conversations.sort(key=lambda c: c.sort_timestamp, reverse=True)

    trusted = _dig(inbox, ("inbox_timelines", "trusted")) or {}
    has_more = trusted.get("status") == "HAS_MORE"
    cursor = trusted.get("min_entry_id") if has_more else None
    return PageResult[DMConversation](items=conversations, cursor=cursor, has_more=has_more)


def parse_dm_conversation(payload: dict[str, Any]) -> PageResult[DMMessage]:
    """Parse one page of a conversation, oldest message first.

    The cursor is the ``max_id`` for the next (older) page.
    """
    timeline = payload.get("conversation_timeline", {})
    messages = [m for m in map(parse_dm_message, timeline.get("entries", [])) if m is not None]
    messages.sort(key=lambda m: m.time)
    has_more = timeline.get("status") == "HAS_MORE"
    cursor = timeline.get("min_entry_id") if has_more else None
    return PageResult[DMMessage](items=messages, cursor=cursor, has_more=has_more)
