"""Unit tests for GraphQL response parsers."""

from __future__ import annotations

from xfetch.twitter import parsers
from xfetch.twitter.models import PageResult, Tweet, TwitterUser


class TestTweetTimeline:
    """Test tweet timeline parsing."""

    def test_search_page(self, search_data):
        page = parsers.parse_tweet_timeline(search_data(["1", "2", "3"], "c1"), parsers.SEARCH_PATH)

        assert [t.id for t in page.items] == ["1", "2", "3"]
        assert page.cursor == "c1"
        assert page.has_more
        tweet = page.items[0]
        assert tweet.text == "tweet 1"
        assert tweet.like_count == 7
        assert tweet.view_count == 1500
        assert tweet.author.screen_name == "alpha"
        assert tweet.created_at.year == 2023

    def test_no_cursor_means_no_more(self, search_data):
        page = parsers.parse_tweet_timeline(search_data(["1"], None), parsers.SEARCH_PATH)
        assert page.cursor is None
        assert not page.has_more

    def test_empty_page_with_cursor_means_no_more(self, search_data):
        page = parsers.parse_tweet_timeline(search_data([], "c9"), parsers.SEARCH_PATH)
        assert page.items == []
        assert page.cursor == "c9"
        assert not page.has_more

    def test_missing_path_is_empty_page(self):
        page = parsers.parse_tweet_timeline({}, parsers.SEARCH_PATH)
        assert page.items == []
        assert not page.has_more

    def test_tombstones_skipped_and_visibility_unwrapped(self, timeline, tweet_result):
        wrapped = {"__typename": "TweetWithVisibilityResults", "tweet": tweet_result("2")}
        tombstone = {"__typename": "TweetTombstone"}
        data = {"bookmark_timeline_v2": {"timeline": timeline([tweet_result("1"), tombstone, wrapped], "c")}}

        page = parsers.parse_tweet_timeline(data, parsers.BOOKMARKS_PATH)

        assert [t.id for t in page.items] == ["1", "2"]

    def test_note_tweet_text_preferred(self, timeline, tweet_result):
        long_tweet = tweet_result("1", text="truncated…")
        long_tweet["note_tweet"] = {"note_tweet_results": {"result": {"text": "the full long text"}}}
        data = {"list": {"tweets_timeline": {"timeline": timeline([long_tweet], None)}}}

        page = parsers.parse_tweet_timeline(data, parsers.LIST_PATH)

        assert page.items[0].text == "the full long text"

    def test_replace_entry_cursor(self, timeline, tweet_result):
        block = timeline([tweet_result("1")], None)
        block["instructions"].append(
            {
                "type": "TimelineReplaceEntry",
                "entry": {"entryId": "cursor-bottom-x", "content": {"cursorType": "Bottom", "value": "replaced"}},
            }
        )
        data = {"home": {"home_timeline_urt": block}}

        page = parsers.parse_tweet_timeline(data, parsers.HOME_PATH)

        assert page.cursor == "replaced"
        assert page.has_more

    def test_user_tweets_v2_path(self, timeline, tweet_result):
        data = {"user": {"result": {"timeline_v2": {"timeline": timeline([tweet_result("9")], "c")}}}}
        page = parsers.parse_user_tweets(data)
        assert [t.id for t in page.items] == ["9"]


class TestUserTimeline:
    """Test user list parsing."""

    def test_followers_page(self, timeline, user_result):
        results = [user_result("1", "alpha", followers=100), user_result("2", "bravo")]
        data = {"user": {"result": {"timeline": {"timeline": timeline(results, "next", kind="user")}}}}

        page = parsers.parse_user_timeline(data, parsers.SOCIAL_GRAPH_PATH)

        assert [u.screen_name for u in page.items] == ["alpha", "bravo"]
        assert page.items[0].followers_count == 100
        assert page.items[0].following_count == 3
        assert page.cursor == "next"

    def test_unavailable_users_skipped(self, timeline, user_result):
        results = [user_result("1", "alpha"), {"__typename": "UserUnavailable"}]
        data = {"user": {"result": {"timeline": {"timeline": timeline(results, None, kind="user")}}}}
        page = parsers.parse_user_timeline(data, parsers.SOCIAL_GRAPH_PATH)
        assert len(page.items) == 1


class TestParseUser:
    """Test single profile parsing."""

    def test_user(self, user_result):
        user = parsers.parse_user({"user": {"result": user_result("42", "alpha")}})
        assert isinstance(user, TwitterUser)
        assert user.id == "42"
        assert user.created_at.year == 2018

    def test_missing_user(self):
        assert parsers.parse_user({"user": {}}) is None
        assert parsers.parse_user({"user": {"result": {"__typename": "UserUnavailable"}}}) is None


class TestPageResult:
    """Test the page model invariant."""

    def test_has_more_requires_cursor(self):
        page = PageResult[Tweet](items=[], cursor=None, has_more=True)
        assert not page.has_more


class TestThread:
    """Test TweetDetail conversation parsing."""

    def test_thread_with_conversation_module_and_wrapped_cursor(self, tweet_result):
        data = {
            "threaded_conversation_with_injections_v2": {
                "instructions": [
                    {
                        "type": "TimelineAddEntries",
                        "entries": [
                            {
                                "entryId": "tweet-10",
                                "content": {"itemContent": {"tweet_results": {"result": tweet_result("10")}}},
                            },
                            {
                                "entryId": "conversationthread-11",
                                "content": {
                                    "items": [
                                        {"item": {"itemContent": {"tweet_results": {"result": tweet_result("11")}}}},
                                        {"item": {"itemContent": {"tweet_results": {"result": tweet_result("12")}}}},
                                    ]
                                },
                            },
                            {
                                "entryId": "cursor-bottom-0",
                                "content": {"itemContent": {"cursorType": "Bottom", "value": "more-replies"}},
                            },
                        ],
                    }
                ]
            }
        }

        page = parsers.parse_thread(data)

        assert [t.id for t in page.items] == ["10", "11", "12"]
        assert page.cursor == "more-replies"
        assert page.has_more


class TestLists:
    """Test list parsing."""

    def _list(self, list_id: str, owner=None) -> dict:
        raw = {
            "id_str": list_id,
            "name": f"list {list_id}",
            "description": "curated",
            "member_count": 5,
            "subscriber_count": 2,
            "mode": "Private",
            "created_at": 1_700_000_000_000,
        }
        if owner is not None:
            raw["user_results"] = {"result": owner}
        return raw

    def test_list_details(self, user_result):
        lst = parsers.parse_list({"list": self._list("123", owner=user_result("9", "owner"))})

        assert lst.id == "123"
        assert lst.member_count == 5
        assert lst.is_private
        assert lst.created_at.year == 2023
        assert lst.owner.screen_name == "owner"

    def test_missing_list(self):
        assert parsers.parse_list({}) is None

    def test_owned_lists_page(self):
        data = {
            "user": {
                "result": {
                    "timeline": {
                        "timeline": {
                            "instructions": [
                                {
                                    "type": "TimelineAddEntries",
                                    "entries": [
                                        {
                                            "entryId": "owned-subscribed-list-module-0",
                                            "content": {
                                                "items": [
                                                    {"item": {"itemContent": {"list": self._list("1")}}},
                                                    {"item": {"itemContent": {"list": self._list("2")}}},
                                                ]
                                            },
                                        },
                                        {
                                            "entryId": "cursor-bottom-l1",
                                            "content": {"cursorType": "Bottom", "value": "l1"},
                                        },
                                    ],
                                }
                            ]
                        }
                    }
                }
            }
        }

        page = parsers.parse_list_timeline(data)

        assert [lst.id for lst in page.items] == ["1", "2"]
        assert page.cursor == "l1"
        assert page.has_more

    def test_list_members_page(self, timeline, user_result):
        data = {
            "list": {
                "members_timeline": {
                    "timeline": timeline([user_result("1", "alpha"), user_result("2", "bravo")], None, kind="user")
                }
            }
        }
        page = parsers.parse_user_timeline(data, parsers.LIST_MEMBERS_PATH)
        assert [u.screen_name for u in page.items] == ["alpha", "bravo"]
        assert not page.has_more


def _notifications_payload(cursor: str | None) -> dict:
    instructions = []
    if cursor is not None:
        instructions.append(
            {
                "addEntries": {
                    "entries": [
                        {
                            "entryId": f"cursor-bottom-{cursor}",
                            "content": {"operation": {"cursor": {"value": cursor, "cursorType": "Bottom"}}},
                        }
                    ]
                }
            }
        )
    return {
        "globalObjects": {
            "users": {
                "u1": {"screen_name": "alpha", "name": "Alpha", "ext_is_blue_verified": True},
            },
            "tweets": {
                "10": {
                    "user_id_str": "u1",
                    "full_text": "older mention",
                    "created_at": "Thu Nov 16 08:00:00 +0000 2023",
                },
                "11": {
                    "user_id_str": "u1",
                    "text": "newer mention",
                    "created_at": "Fri Nov 17 08:00:00 +0000 2023",
                    "ext_views": {"count": "42"},
                },
                "12": {
                    "user_id_str": "ghost",
                    "full_text": "author not included",
                    "created_at": "Sat Nov 18 08:00:00 +0000 2023",
                },
            },
        },
        "timeline": {"id": "Mentions", "instructions": instructions},
    }


class TestNotifications:
    """Test v2 notification timeline parsing."""

    def test_tweets_newest_first_with_authors(self):
        page = parsers.parse_notifications(_notifications_payload("n1"))

        assert [t.id for t in page.items] == ["11", "10"]
        newest = page.items[0]
        assert newest.text == "newer mention"
        assert newest.view_count == 42
        assert newest.author.id == "u1"
        assert newest.author.screen_name == "alpha"
        assert newest.author.is_blue_verified
        assert page.cursor == "n1"
        assert page.has_more

    def test_no_cursor_means_no_more(self):
        page = parsers.parse_notifications(_notifications_payload(None))
        assert page.cursor is None
        assert not page.has_more

    def test_empty_payload(self):
        page = parsers.parse_notifications({})
        assert page.items == []
        assert not page.has_more


def _dm(message_id: str, conversation_id: str, sender: str, time: int, **data) -> dict:
    return {
        "message": {
            "id": message_id,
            "conversation_id": conversation_id,
            "message_data": {
                "id": message_id,
                "sender_id": sender,
                "text": f"message {message_id}",
                "time": str(time),
                **data,
            },
        }
    }


class TestDirectMessages:
    """Test DM inbox and conversation parsing."""

    def test_inbox(self):
        payload = {
            "inbox_initial_state": {
                "entries": [
                    _dm("m1", "c-1", "u1", 1000),
                    _dm(
                        "m2",
                        "c-1",
                        "u2",
                        2000,
                        entities={"urls": [{"url": "https://t.co/x", "expanded_url": "https://example.com"}]},
                        attachment={
                            "video": {
                                "variants": [
                                    {"bitrate": 256000, "url": "https://video.twimg.com/low.mp4"},
                                    {"bitrate": 832000, "url": "https://video.twimg.com/high.mp4"},
                                    {"content_type": "application/x-mpegURL", "url": "https://video.twimg.com/pl.m3u8"},
                                ]
                            }
                        },
                    ),
                    _dm("m3", "c-2", "u1", 1500),
                    {"trust_conversation": {"conversation_id": "c-1"}},
                ],
                "users": {
                    "u1": {"id_str": "u1", "screen_name": "alpha", "name": "Alpha"},
                    "u2": {"id_str": "u2", "screen_name": "bravo", "name": "Bravo"},
                },
                "conversations": {
                    "c-1": {
                        "conversation_id": "c-1",
                        "type": "ONE_TO_ONE",
                        "sort_timestamp": "2000",
                        "participants": [{"user_id": "u1"}, {"user_id": "u2"}],
                        "trusted": True,
                    },
                    "c-2": {
                        "conversation_id": "c-2",
                        "type": "GROUP_DM",
                        "name": "Team",
                        "sort_timestamp": "3000",
                        "participants": [{"user_id": "u1"}, {"user_id": "u9"}],
                        "muted": True,
                    },
                },
                "inbox_timelines": {"trusted": {"status": "HAS_MORE", "min_entry_id": "m0"}},
            }
        }

        page = parsers.parse_dm_inbox(payload)

        assert [c.conversation_id for c in page.items] == ["c-2", "c-1"]
        group, direct = page.items
        assert group.name == "Team"
        assert group.muted
        assert [p.screen_name for p in group.participants] == ["alpha"]
        assert direct.trusted
        assert direct.last_message.id == "m2"
        assert direct.last_message.media_urls == ["https://video.twimg.com/high.mp4"]
        assert direct.last_message.urls == ["https://example.com"]
        assert page.cursor == "m0"
        assert page.has_more

    def test_inbox_at_end(self):
        payload = {"inbox_initial_state": {"inbox_timelines": {"trusted": {"status": "AT_END", "min_entry_id": "m0"}}}}
        page = parsers.parse_dm_inbox(payload)
        assert page.items == []
        assert page.cursor is None
        assert not page.has_more

    def test_conversation_oldest_first(self):
        payload = {
            "conversation_timeline": {
                "status": "HAS_MORE",
                "min_entry_id": "m1",
                "entries": [
                    _dm("m2", "c-1", "u2", 2000, attachment={"photo": {"media_url_https": "https://pbs.twimg.com/p.jpg"}}),
                    _dm("m1", "c-1", "u1", 1000),
                ],
            }
        }

        page = parsers.parse_dm_conversation(payload)

        assert [m.id for m in page.items] == ["m1", "m2"]
        assert page.items[1].media_urls == ["https://pbs.twimg.com/p.jpg"]
        assert page.items[0].time == 1000
        assert page.cursor == "m1"
        assert page.has_more

    def test_conversation_at_end_has_no_cursor(self):
        payload = {"conversation_timeline": {"status": "AT_END", "min_entry_id": "m1", "entries": [_dm("m1", "c-1", "u1", 1)]}}
        page = parsers.parse_dm_conversation(payload)
        assert page.cursor is None
        assert not page.has_more
