"""X web API endpoint constants and GraphQL request builders."""

from __future__ import annotations

import json
from enum import Enum
from typing import Any


class Operation(str, Enum):
    """GraphQL operations used by the client."""

    USER_BY_SCREEN_NAME = "UserByScreenName"
    USER_BY_REST_ID = "UserByRestId"
    TWEET_DETAIL = "TweetDetail"
    USER_TWEETS = "UserTweets"
    USER_TWEETS_AND_REPLIES = "UserTweetsAndReplies"
    FOLLOWERS = "Followers"
    FOLLOWING = "Following"
    SEARCH_TIMELINE = "SearchTimeline"
    HOME_TIMELINE = "HomeTimeline"
    HOME_LATEST_TIMELINE = "HomeLatestTimeline"
    LIKES = "Likes"
    BOOKMARKS = "Bookmarks"
    LIST_TWEETS = "ListLatestTweetsTimeline"
    LIST_BY_REST_ID = "ListByRestId"
    LIST_OWNERSHIPS = "ListOwnerships"
    LIST_MEMBERS = "ListMembers"


class NotificationKind(str, Enum):
    """Notification timelines served by the v2 REST API."""

    ALL = "all"
    MENTIONS = "mentions"
    VERIFIED = "verified"


GRAPHQL_BASE_URL = "https://x.com/i/api/graphql"
REST_API_BASE_URL = "https://x.com/i/api"
DM_INBOX_URL = f"{REST_API_BASE_URL}/1.1/dm/inbox_initial_state.json"
DM_CONVERSATION_URL = REST_API_BASE_URL + "/1.1/dm/conversation/{conversation_id}.json"
NOTIFICATIONS_URL = REST_API_BASE_URL + "/2/notifications/{kind}.json"
HOME_PAGE_URL = "https://x.com"

# Query ids shipped with this release. They rotate whenever X deploys a new
# web client; `xfetch query-ids refresh` scrapes the current ones.
FALLBACK_QUERY_IDS: dict[str, str] = {
    "UserByScreenName": "1VOOyvKkiI3FMmkeDNxM9A",
    "UserByRestId": "tD8zKvQzwY3kdx5yz6YmOw",
    "UsersByRestIds": "XArUHrueMW0KQdZUdqidrA",
    "TweetDetail": "xd_EMdYvB9hfZsZ6Idri0w",
    "TweetResultByRestId": "7xflPyRiUxGVbJd4uWmbfg",
    "UserTweets": "q6xj5bs0hapm9309hexA_g",
    "UserTweetsAndReplies": "6hvhmQQ9zPIR8RZWHFAm4w",
    "UserMedia": "1H9ibIdchWO0_vz3wJLDTA",
    "Likes": "lIDpu_NWL7_VhimGGt0o6A",
    "HomeTimeline": "c-CzHF1LboFilMpsx4ZCrQ",
    "HomeLatestTimeline": "BKB7oi212Fi7kQtCBGE4zA",
    "Bookmarks": "2neUNDqrrFzbLui8yallcQ",
    "SearchTimeline": "VhUd6vHVmLBcw0uX-6jMLA",
    "Followers": "IOh4aS6UdGWGJUYTqliQ7Q",
    "Following": "zx6e-TLzRkeDO_a7p4b3JQ",
    "ListLatestTweetsTimeline": "RlZzktZY_9wJynoepm8ZsA",
}

BUNDLE_URL_PATTERN = (
    r"https://abs\.twimg\.com/responsive-web/client-web(?:-legacy)?/[A-Za-z0-9.~_-]+\.js"
)
QUERY_ID_PAIR_PATTERN = r'queryId:"([^"]+)",operationName:"([^"]+)"'

# Public bearer token embedded in the web client
BEARER_TOKEN = (
    "AAAAAAAAAAAAAAAAAAAAANRILgAAAAAAnNwIzUejRCOuH5E6I8xnZz4puTs%3D"
    "1Zv7ttfk8LF81IUq16cHjhLTvJu4FA33AGWWjCpTnA"
)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/122.0.0.0 Safari/537.36"
)

# X web client headers
DEFAULT_HEADERS = {
    "Accept": "*/*",
    "Accept-Language": "en-US,en;q=0.9",
    "Content-Type": "application/json",
    "Origin": "https://x.com",
    "Referer": "https://x.com/",
    "Sec-Ch-Ua": '"Chromium";v="122", "Not(A:Brand";v="24", "Google Chrome";v="122"',
    "Sec-Ch-Ua-Mobile": "?0",
    "Sec-Ch-Ua-Platform": '"macOS"',
    "Sec-Fetch-Dest": "empty",
    "Sec-Fetch-Mode": "cors",
    "Sec-Fetch-Site": "same-origin",
    "User-Agent": USER_AGENT,
    "X-Twitter-Active-User": "yes",
    "X-Twitter-Auth-Type": "OAuth2Session",
    "X-Twitter-Client-Language": "en",
}

# Base features for GraphQL requests
DEFAULT_FEATURES: dict[str, bool] = {
    "rweb_tipjar_consumption_enabled": True,
    "responsive_web_graphql_exclude_directive_enabled": True,
    "verified_phone_label_enabled": False,
    "creator_subscriptions_tweet_preview_api_enabled": True,
    "responsive_web_graphql_timeline_navigation_enabled": True,
    "responsive_web_graphql_skip_user_profile_image_extensions_enabled": False,
    "communities_web_enable_tweet_community_results_fetch": True,
    "c9s_tweet_anatomy_moderator_badge_enabled": True,
    "articles_preview_enabled": True,
    "tweetypie_unmention_optimization_enabled": True,
    "responsive_web_edit_tweet_api_enabled": True,
    "graphql_is_translatable_rweb_tweet_is_translatable_enabled": True,
    "view_counts_everywhere_api_enabled": True,
    "longform_notetweets_consumption_enabled": True,
    "responsive_web_twitter_article_tweet_consumption_enabled": True,
    "tweet_awards_web_tipping_enabled": False,
    "creator_subscriptions_quote_tweet_preview_enabled": False,
    "freedom_of_speech_not_reach_fetch_enabled": True,
    "standardized_nudges_misinfo": True,
    "tweet_with_visibility_results_prefer_gql_limited_actions_policy_enabled": True,
    "rweb_video_timestamps_enabled": True,
    "longform_notetweets_rich_text_read_enabled": True,
    "longform_notetweets_inline_media_enabled": True,
    "responsive_web_enhance_cards_enabled": False,
}

USER_FEATURES: dict[str, bool] = {
    "hidden_profile_subscriptions_enabled": True,
    "responsive_web_graphql_exclude_directive_enabled": True,
    "verified_phone_label_enabled": False,
    "subscriptions_verification_info_is_identity_verified_enabled": True,
    "subscriptions_verification_info_verified_since_enabled": True,
    "highlights_tweets_tab_ui_enabled": True,
    "responsive_web_twitter_article_notes_tab_enabled": True,
    "creator_subscriptions_tweet_preview_api_enabled": True,
    "responsive_web_graphql_skip_user_profile_image_extensions_enabled": False,
    "responsive_web_graphql_timeline_navigation_enabled": True,
}


LIST_FEATURES: dict[str, bool] = {
    **DEFAULT_FEATURES,
    "rweb_video_screen_enabled": True,
    "profile_label_improvements_pcf_label_in_post_enabled": True,
}

# Flags the web client sends with v1.1/v2 REST timelines
_REST_INCLUDE_PARAMS: dict[str, str] = {
    "include_profile_interstitial_type": "1",
    "include_blocking": "1",
    "include_blocked_by": "1",
    "include_followed_by": "1",
    "include_want_retweets": "1",
    "include_mute_edge": "1",
    "include_can_dm": "1",
    "include_can_media_tag": "1",
    "include_ext_is_blue_verified": "1",
    "include_ext_verified_type": "1",
    "include_ext_profile_image_shape": "1",
    "skip_status": "1",
    "cards_platform": "Web-12",
    "include_cards": "1",
    "include_ext_alt_text": "true",
    "include_ext_limited_action_results": "true",
    "include_quote_count": "true",
    "include_reply_count": "1",
    "tweet_mode": "extended",
    "include_ext_views": "true",
    "include_ext_media_color": "true",
}

DM_PARAMS: dict[str, str] = {
    **_REST_INCLUDE_PARAMS,
    "nsfw_filtering_enabled": "false",
    "filter_low_quality": "false",
    "include_quality": "all",
    "dm_secret_conversations_enabled": "false",
    "krs_registration_enabled": "true",
    "dm_users": "true",
    "include_groups": "true",
    "include_inbox_timelines": "true",
    "supports_reactions": "true",
    "include_ext_edit_control": "true",
    "ext": "mediaColor,altText,mediaStats,highlightedLabel,voiceInfo,birdwatchPivot,"
    "superFollowMetadata,unmentionInfo,editControl",
}

NOTIFICATION_PARAMS: dict[str, str] = {
    **_REST_INCLUDE_PARAMS,
    "include_entities": "true",
    "include_user_entities": "true",
    "include_ext_media_availability": "true",
    "include_ext_sensitive_media_warning": "true",
    "include_ext_trusted_friends_metadata": "true",
    "send_error_codes": "true",
    "simple_quoted_tweet": "true",
    "ext": "mediaStats,highlightedLabel,voiceInfo,birdwatchPivot,superFollowMetadata,"
    "unmentionInfo,editControl",
}


def build_rest_params(base: dict[str, str], **extra: str | int | None) -> dict[str, str]:
    """Merge per-call values into a REST flag set, dropping ``None`` values."""
    params = dict(base)
    params.update({k: str(v) for k, v in extra.items() if v is not None})
    return params


def _compact(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"))


def build_graphql_url(query_id: str, operation: str) -> str:
    """Build the full GraphQL URL for an operation."""
    return f"{GRAPHQL_BASE_URL}/{query_id}/{operation}"


def build_graphql_params(
    variables: dict[str, Any],
    features: dict[str, bool] | None = None,
    field_toggles: dict[str, bool] | None = None,
) -> dict[str, str]:
    """Encode variables/features as the query parameters the API expects.

    ``None`` variables (e.g. an absent cursor) are dropped.
    """
    params = {
        "variables": _compact({k: v for k, v in variables.items() if v is not None}),
        "features": _compact(features if features is not None else DEFAULT_FEATURES),
    }
    if field_toggles:
        params["fieldToggles"] = _compact(field_toggles)
    return params
