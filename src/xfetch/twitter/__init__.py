"""X web API client infrastructure."""

from xfetch.twitter.auth import CredentialPool, PooledCredential, is_hard_lockout
from xfetch.twitter.client import ClientConfig, TwitterGraphQLClient
from xfetch.twitter.endpoints import FALLBACK_QUERY_IDS, Operation
from xfetch.twitter.models import (
    CursorState,
    EndpointRateState,
    PageResult,
    QueryIdCache,
    Tweet,
    TwitterUser,
)
from xfetch.twitter.proxy_pool import (
    ProxyConfig,
    ProxyPool,
    ProxyProtocol,
    ProxyState,
    parse_proxy_url,
)
from xfetch.twitter.query_ids import QueryIdResolver
from xfetch.twitter.rate_limiter import EndpointRateLimiter
from xfetch.twitter.transaction import generate_transaction_id

__all__ = [
    # Client
    "TwitterGraphQLClient",
    "ClientConfig",
    # Models
    "CursorState",
    "EndpointRateState",
    "PageResult",
    "QueryIdCache",
    "Tweet",
    "TwitterUser",
    # Endpoints
    "Operation",
    "FALLBACK_QUERY_IDS",
    "QueryIdResolver",
    "generate_transaction_id",
    # Auth
    "CredentialPool",
    "PooledCredential",
    "is_hard_lockout",
    # Proxy
    "ProxyPool",
    "ProxyConfig",
    "ProxyState",
    "ProxyProtocol",
    "parse_proxy_url",
    # Rate Limiter
    "EndpointRateLimiter",
]
