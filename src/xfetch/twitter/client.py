"""X GraphQL client with integrated credential pool, proxy rotation, and rate limiting."""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar, overload

import httpx

from xfetch.core import (
    Credential,
    RemoteAPIError,
    Settings,
    TransportError,
    get_logger,
    get_settings,
)
from xfetch.storage import JsonFileStore
from xfetch.twitter import parsers
from xfetch.twitter.auth import CredentialPool, is_hard_lockout
from xfetch.twitter.endpoints import (
    BEARER_TOKEN,
    DEFAULT_HEADERS,
    DM_CONVERSATION_URL,
    DM_INBOX_URL,
    DM_PARAMS,
    LIST_FEATURES,
    NOTIFICATION_PARAMS,
    NOTIFICATIONS_URL,
    USER_FEATURES,
    NotificationKind,
    Operation,
    build_graphql_params,
    build_graphql_url,
    build_rest_params,
)
from xfetch.twitter.models import (
    DMConversation,
    DMMessage,
    EndpointRateState,
    PageResult,
    Tweet,
    TwitterList,
    TwitterUser,
)
from xfetch.twitter.proxy_pool import ProxyConfig, ProxyPool
from xfetch.twitter.query_ids import QueryIdResolver
from xfetch.twitter.rate_limiter import EndpointRateLimiter
from xfetch.twitter.transaction import generate_transaction_id


logger = get_logger(__name__)

T = TypeVar("T")

MAX_ERROR_BODY_CHARS = 500


@dataclass
class ClientConfig:
    """Configuration for the X GraphQL client."""

    timeout_ms: int = 30_000
    jitter_ms: int = 200

    @classmethod
    def from_settings(cls, settings: Settings) -> "ClientConfig":
        return cls(timeout_ms=settings.request_timeout_ms, jitter_ms=settings.jitter_ms)


@dataclass
class TwitterGraphQLClient:
    """Single choke point for every API call.

    Each call resolves the query id, jitters, waits on the endpoint's rate
    limit, tags the request, dispatches it through the next proxy with the
    next credential, and feeds the outcome back into the limiter and the
    proxy pool. Errors are mapped to ``TransportError`` / ``RemoteAPIError``
    and are never retried here.
    """

    credentials: CredentialPool
    query_ids: QueryIdResolver
    proxy_pool: ProxyPool = field(default_factory=ProxyPool)
    rate_limiter: EndpointRateLimiter = field(default_factory=EndpointRateLimiter)
    config: ClientConfig = field(default_factory=ClientConfig)
    transport: httpx.AsyncBaseTransport | None = None
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        credentials: list[Credential] | None = None,
        proxy: str | None = None,
        proxy_file: str | None = None,
    ) -> "TwitterGraphQLClient":
        """Create client from application settings.

        Explicit ``credentials``/``proxy``/``proxy_file`` override the settings.
        """
        settings = settings or get_settings()
        pool = CredentialPool.from_credentials(
            credentials if credentials is not None else settings.credentials
        )
        proxy_pool = ProxyPool.from_options(
            proxy or settings.proxy,
            proxy_file or settings.proxy_file,
            max_failures=settings.proxy_max_failures,
            cooldown_seconds=settings.proxy_cooldown_ms / 1000,
        )
        query_ids = QueryIdResolver(
            JsonFileStore(settings.query_id_cache_path),
            ttl_ms=settings.query_id_ttl_ms,
        )
        return cls(
            credentials=pool,
            query_ids=query_ids,
            proxy_pool=proxy_pool,
            config=ClientConfig.from_settings(settings),
        )

    def _build_headers(self, credential: Credential) -> dict[str, str]:
        return {
            **DEFAULT_HEADERS,
            "Authorization": f"Bearer {BEARER_TOKEN}",
            "X-Csrf-Token": credential.ct0,
            "Cookie": f"auth_token={credential.auth_token}; ct0={credential.ct0}",
            "X-Client-Transaction-Id": generate_transaction_id(),
        }

    def _create_client(self, proxy: ProxyConfig | None) -> httpx.AsyncClient:
        """Create an httpx client bound to one proxy (or a direct connection)."""
        transport = self.transport
        if transport is None and proxy is not None:
            transport = httpx.AsyncHTTPTransport(proxy=proxy.uri, http2=True)
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.config.timeout_ms / 1000),
            transport=transport,
            follow_redirects=True,
            http2=True,
        )

    async def _jitter(self) -> None:
        if self.config.jitter_ms > 0:
            await self.sleep(random.uniform(0, self.config.jitter_ms) / 1000)

    def _record_rate_limit(self, endpoint: str, response: httpx.Response) -> None:
        state = EndpointRateState.from_headers(response.headers)
        if state is not None:
            self.rate_limiter.update(endpoint, state)

    def _handle_error_response(
        self,
        response: httpx.Response,
        endpoint: str,
        credential: Credential,
    ) -> TransportError:
        """Report lockouts to the credential pool and build the error to raise."""
        payload: Any = None
        if "json" in response.headers.get("content-type", ""):
            try:
                payload = response.json()
            except ValueError:
                payload = None

        if is_hard_lockout(
            response.status_code,
            response.headers,
            payload,
            now=self.credentials.clock(),
        ):
            reset = response.headers.get("x-rate-limit-reset")
            self.credentials.mark_limited(
                credential,
                endpoint,
                float(reset) if reset else self.credentials.clock(),
            )

        return TransportError(
            f"HTTP {response.status_code} on {endpoint}",
            status=response.status_code,
            body=response.text[:MAX_ERROR_BODY_CHARS],
            endpoint=endpoint,
        )

    @staticmethod
    def _validate_response(data: Any, endpoint: str) -> dict[str, Any]:
        """Raise RemoteAPIError if the payload carries API errors."""
        if not isinstance(data, dict):
            raise RemoteAPIError(["Unexpected response shape"], endpoint=endpoint)
        errors = data.get("errors")
        if errors:
            messages = [str(e.get("message", "Unknown error")) for e in errors]
            codes = [e["code"] for e in errors if isinstance(e.get("code"), int)]
            raise RemoteAPIError(messages, codes, endpoint=endpoint)
        return data

    async def _dispatch(
        self,
        endpoint: str,
        method: str,
        url: str,
        *,
        params: dict[str, str] | None = None,
        data: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Send one request through the resilience pipeline."""
        await self._jitter()
        await self.rate_limiter.wait_if_needed(endpoint)

        credential = await self.credentials.next()
        proxy = await self.proxy_pool.next()
        headers = self._build_headers(credential)
        if data is not None:
            headers["Content-Type"] = "application/x-www-form-urlencoded"

        try:
            http_client = self._create_client(proxy)
        except ValueError as e:
            # httpx rejects proxy schemes it has no transport for (socks4)
            self.proxy_pool.mark_failed(proxy)
            masked = proxy.masked_url if proxy else None
            logger.warning("client.proxy_unusable", endpoint=endpoint, proxy=masked)
            raise TransportError(
                f"Proxy {masked} cannot be used for {endpoint}",
                endpoint=endpoint,
            ) from e

        async with http_client as client:
            try:
                response = await client.request(
                    method,
                    url,
                    params=params,
                    data=data,
                    headers=headers,
                )
            except httpx.HTTPError as e:
                self.proxy_pool.mark_failed(proxy)
                logger.warning(
                    "client.transport_failed",
                    endpoint=endpoint,
                    proxy=proxy.masked_url if proxy else None,
                    error=str(e) or type(e).__name__,
                )
                raise TransportError(
                    f"Request to {endpoint} failed: {e or type(e).__name__}",
                    body=str(e),
                    endpoint=endpoint,
                ) from e

        self._record_rate_limit(endpoint, response)

        if not response.is_success:
            self.proxy_pool.mark_failed(proxy)
            error = self._handle_error_response(response, endpoint, credential)
            logger.warning(
                "client.http_error",
                endpoint=endpoint,
                status=response.status_code,
                proxy=proxy.masked_url if proxy else None,
            )
            raise error

        self.proxy_pool.mark_success(proxy)

        try:
            payload = response.json()
        except ValueError as e:
            raise RemoteAPIError(["Response body is not JSON"], endpoint=endpoint) from e
        if is_hard_lockout(response.status_code, response.headers, payload):
            self.credentials.mark_limited(credential, endpoint, self.credentials.clock())
        return self._validate_response(payload, endpoint)

    @overload
    async def graphql(
        self,
        operation: str,
        variables: dict[str, Any],
        *,
        features: dict[str, bool] | None = ...,
        field_toggles: dict[str, bool] | None = ...,
        parser: None = ...,
    ) -> dict[str, Any]: ...

    @overload
    async def graphql(
        self,
        operation: str,
        variables: dict[str, Any],
        *,
        features: dict[str, bool] | None = ...,
        field_toggles: dict[str, bool] | None = ...,
        parser: Callable[[dict[str, Any]], T],
    ) -> T: ...

    async def graphql(
        self,
        operation: str,
        variables: dict[str, Any],
        *,
        features: dict[str, bool] | None = None,
        field_toggles: dict[str, bool] | None = None,
        parser: Callable[[dict[str, Any]], Any] | None = None,
    ) -> Any:
        """Run a GraphQL query.

        Args:
            operation: Operation name, e.g. ``"SearchTimeline"``.
            variables: Query variables; ``None`` values are omitted.
            features: Feature flags (defaults to the web client's set).
            field_toggles: Optional field toggles.
            parser: Maps the ``data`` object to a typed result.

        Returns:
            ``parser(data)`` if a parser is given, else the raw ``data`` dict.

        Raises:
            UnknownOperationError: If no query id is known for the operation.
            TransportError: On network failure or non-2xx status.
            RemoteAPIError: If the payload carries GraphQL errors.
        """
        query_id = self.query_ids.resolve(operation)
        url = build_graphql_url(query_id, operation)
        params = build_graphql_params(variables, features, field_toggles)
        payload = await self._dispatch(operation, "GET", url, params=params)
        data = payload.get("data") or {}
        return parser(data) if parser else data

    async def rest(
        self,
        endpoint: str,
        method: str,
        url: str,
        *,
        params: dict[str, str] | None = None,
        data: dict[str, str] | None = None,
        parser: Callable[[dict[str, Any]], Any] | None = None,
    ) -> Any:
        """Call a v1.1/v2 REST endpoint through the same pipeline.

        ``endpoint`` is the logical name used for rate limit tracking.
        """
        payload = await self._dispatch(endpoint, method, url, params=params, data=data)
        return parser(payload) if parser else payload

    # =========================================================================
    # Operations
    # =========================================================================

    async def get_user_by_screen_name(self, screen_name: str) -> TwitterUser | None:
        """Get user profile by screen name (without @)."""
        return await self.graphql(
            Operation.USER_BY_SCREEN_NAME.value,
            {"screen_name": screen_name.lstrip("@"), "withSafetyModeUserFields": True},
            features=USER_FEATURES,
            parser=parsers.parse_user,
        )

    async def get_user_by_id(self, user_id: str) -> TwitterUser | None:
        """Get user profile by numeric id."""
        return await self.graphql(
            Operation.USER_BY_REST_ID.value,
            {"userId": user_id, "withSafetyModeUserFields": True},
            features=USER_FEATURES,
            parser=parsers.parse_user,
        )

    async def get_thread(self, tweet_id: str, cursor: str | None = None) -> PageResult[Tweet]:
        """Get a tweet with its conversation (parent thread and replies)."""
        return await self.graphql(
            Operation.TWEET_DETAIL.value,
            {
                "focalTweetId": tweet_id,
                "cursor": cursor,
                "with_rux_injections": False,
                "includePromotedContent": False,
                "withCommunity": True,
                "withQuickPromoteEligibilityTweetFields": False,
                "withBirdwatchNotes": False,
                "withVoice": True,
                "withV2Timeline": True,
            },
            parser=parsers.parse_thread,
        )

    async def get_tweet(self, tweet_id: str) -> Tweet | None:
        """Get a single tweet, or None when it is missing from its own conversation."""
        page = await self.get_thread(tweet_id)
        return next((tweet for tweet in page.items if tweet.id == tweet_id), None)

    async def get_user_tweets(
        self,
        user_id: str,
        count: int = 20,
        cursor: str | None = None,
        include_replies: bool = False,
    ) -> PageResult[Tweet]:
        """Get tweets from a user's timeline."""
        operation = Operation.USER_TWEETS_AND_REPLIES if include_replies else Operation.USER_TWEETS
        return await self.graphql(
            operation.value,
            {
                "userId": user_id,
                "count": count,
                "cursor": cursor,
                "includePromotedContent": False,
                "withQuickPromoteEligibilityTweetFields": False,
                "withVoice": True,
                "withV2Timeline": True,
            },
            parser=parsers.parse_user_tweets,
        )

    async def get_followers(
        self, user_id: str, count: int = 20, cursor: str | None = None
    ) -> PageResult[TwitterUser]:
        """Get followers of a user."""
        return await self.graphql(
            Operation.FOLLOWERS.value,
            {"userId": user_id, "count": count, "cursor": cursor, "includePromotedContent": False},
            parser=lambda data: parsers.parse_user_timeline(data, parsers.SOCIAL_GRAPH_PATH),
        )

    async def get_following(
        self, user_id: str, count: int = 20, cursor: str | None = None
    ) -> PageResult[TwitterUser]:
        """Get users that a user is following."""
        return await self.graphql(
            Operation.FOLLOWING.value,
            {"userId": user_id, "count": count, "cursor": cursor, "includePromotedContent": False},
            parser=lambda data: parsers.parse_user_timeline(data, parsers.SOCIAL_GRAPH_PATH),
        )

    async def search(
        self,
        query: str,
        count: int = 20,
        cursor: str | None = None,
        product: str = "Latest",
    ) -> PageResult[Any]:
        """Search tweets (``Top``/``Latest``/``Media``) or users (``People``)."""
        variables = {
            "rawQuery": query,
            "count": count,
            "cursor": cursor,
            "querySource": "typed_query",
            "product": product,
        }
        if product == "People":
            return await self.graphql(
                Operation.SEARCH_TIMELINE.value,
                variables,
                parser=lambda data: parsers.parse_user_timeline(data, parsers.SEARCH_PATH),
            )
        return await self.graphql(
            Operation.SEARCH_TIMELINE.value,
            variables,
            parser=lambda data: parsers.parse_tweet_timeline(data, parsers.SEARCH_PATH),
        )

    async def get_likes(
        self, user_id: str, count: int = 20, cursor: str | None = None
    ) -> PageResult[Tweet]:
        """Get tweets liked by a user."""
        return await self.graphql(
            Operation.LIKES.value,
            {"userId": user_id, "count": count, "cursor": cursor, "includePromotedContent": False},
            parser=lambda data: parsers.parse_tweet_timeline(data, parsers.LIKES_PATH),
        )

    async def get_bookmarks(self, count: int = 20, cursor: str | None = None) -> PageResult[Tweet]:
        """Get the authenticated user's bookmarks."""
        return await self.graphql(
            Operation.BOOKMARKS.value,
            {"count": count, "cursor": cursor, "includePromotedContent": False},
            parser=lambda data: parsers.parse_tweet_timeline(data, parsers.BOOKMARKS_PATH),
        )

    async def get_home_timeline(
        self, count: int = 20, cursor: str | None = None, latest: bool = False
    ) -> PageResult[Tweet]:
        """Get the home timeline ("For you", or "Following" when ``latest``)."""
        operation = Operation.HOME_LATEST_TIMELINE if latest else Operation.HOME_TIMELINE
        return await self.graphql(
            operation.value,
            {
                "count": count,
                "cursor": cursor,
                "includePromotedContent": False,
                "latestControlAvailable": True,
            },
            parser=lambda data: parsers.parse_tweet_timeline(data, parsers.HOME_PATH),
        )

    async def get_list_tweets(
        self, list_id: str, count: int = 20, cursor: str | None = None
    ) -> PageResult[Tweet]:
        """Get the latest tweets of a list."""
        return await self.graphql(
            Operation.LIST_TWEETS.value,
            {"listId": list_id, "count": count, "cursor": cursor},
            features=LIST_FEATURES,
            parser=lambda data: parsers.parse_tweet_timeline(data, parsers.LIST_PATH),
        )

    async def get_list(self, list_id: str) -> TwitterList | None:
        """Get list details."""
        return await self.graphql(
            Operation.LIST_BY_REST_ID.value,
            {"listId": list_id},
            features=LIST_FEATURES,
            parser=parsers.parse_list,
        )

    async def get_user_lists(
        self, user_id: str, count: int = 100, cursor: str | None = None
    ) -> PageResult[TwitterList]:
        """Get lists owned by a user."""
        return await self.graphql(
            Operation.LIST_OWNERSHIPS.value,
            {"userId": user_id, "count": count, "cursor": cursor, "isListMembershipShown": True},
            features=LIST_FEATURES,
            parser=parsers.parse_list_timeline,
        )

    async def get_list_members(
        self, list_id: str, count: int = 20, cursor: str | None = None
    ) -> PageResult[TwitterUser]:
        """Get members of a list."""
        return await self.graphql(
            Operation.LIST_MEMBERS.value,
            {"listId": list_id, "count": count, "cursor": cursor},
            features=LIST_FEATURES,
            parser=lambda data: parsers.parse_user_timeline(data, parsers.LIST_MEMBERS_PATH),
        )

    async def get_notifications(
        self,
        kind: NotificationKind | str = NotificationKind.ALL,
        count: int = 20,
        cursor: str | None = None,
    ) -> PageResult[Tweet]:
        """Get tweets from a notification timeline (all, mentions or verified)."""
        kind = NotificationKind(kind)
        return await self.rest(
            f"notifications/{kind.value}",
            "GET",
            NOTIFICATIONS_URL.format(kind=kind.value),
            params=build_rest_params(NOTIFICATION_PARAMS, count=count, cursor=cursor),
            parser=parsers.parse_notifications,
        )

    async def get_dm_inbox(self, cursor: str | None = None) -> PageResult[DMConversation]:
        """Get DM conversations, most recently active first."""
        return await self.rest(
            "dm",
            "GET",
            DM_INBOX_URL,
            params=build_rest_params(DM_PARAMS, cursor=cursor),
            parser=parsers.parse_dm_inbox,
        )

    async def get_dm_conversation(
        self, conversation_id: str, cursor: str | None = None
    ) -> PageResult[DMMessage]:
        """Get messages of one DM conversation; ``cursor`` pages towards older messages."""
        return await self.rest(
            "dm",
            "GET",
            DM_CONVERSATION_URL.format(conversation_id=conversation_id),
            params=build_rest_params(DM_PARAMS, max_id=cursor),
            parser=parsers.parse_dm_conversation,
        )

    def get_stats(self) -> dict[str, Any]:
        """Get client statistics."""
        return {
            "credentials": self.credentials.get_stats(),
            "proxies": self.proxy_pool.get_stats(),
            "rate_limits": self.rate_limiter.get_stats(),
        }
