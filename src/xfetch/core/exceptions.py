"""Custom exceptions for xfetch."""

from __future__ import annotations

from typing import Any


class XFetchError(Exception):
    """Base exception for all xfetch errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class UnknownOperationError(XFetchError):
    """Raised when no query id can be resolved for a GraphQL operation."""

    def __init__(self, operation: str) -> None:
        super().__init__(
            f"Unknown GraphQL operation: {operation}",
            details={"operation": operation},
        )
        self.operation = operation


class TransportError(XFetchError):
    """Raised on a non-2xx response or a network-level failure."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        body: str = "",
        endpoint: str | None = None,
    ) -> None:
        super().__init__(
            message,
            details={"status": status, "endpoint": endpoint},
        )
        self.status = status
        self.body = body
        self.endpoint = endpoint

    @property
    def is_rate_limited(self) -> bool:
        return self.status == 429


class RemoteAPIError(XFetchError):
    """Raised when a transport-level success carries API errors."""

    def __init__(
        self,
        messages: list[str],
        codes: list[int] | None = None,
        endpoint: str | None = None,
    ) -> None:
        super().__init__(
            f"GraphQL Error: {', '.join(messages)}",
            details={"codes": codes or [], "endpoint": endpoint},
        )
        self.messages = messages
        self.codes = codes or []
        self.endpoint = endpoint


class AuthenticationError(XFetchError):
    """Raised when no usable credential is available."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message)


class ProxyError(XFetchError):
    """Raised when proxy operations fail."""

    def __init__(self, message: str, proxy_url: str | None = None) -> None:
        super().__init__(message, details={"proxy_url": proxy_url})
        self.proxy_url = proxy_url


class InvalidProxyError(ProxyError):
    """Raised when a proxy spec cannot be parsed."""

    def __init__(self, proxy_url: str) -> None:
        super().__init__(f"Invalid proxy URL: {proxy_url}", proxy_url=proxy_url)


class ProxyFileError(ProxyError):
    """Raised when a proxy list file cannot be read."""

    def __init__(self, path: str, reason: str = "Proxy file not found") -> None:
        super().__init__(f"{reason}: {path}")
        self.path = path


class CheckpointIOError(XFetchError):
    """Raised when persisted state cannot be read or written."""

    def __init__(self, message: str, path: str | None = None, operation: str | None = None) -> None:
        super().__init__(message, details={"path": path, "operation": operation})
        self.path = path
        self.operation = operation


class NotFoundError(XFetchError):
    """Raised when a looked-up user, tweet or list does not exist."""

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind.capitalize()} not found: {identifier}", details={kind: identifier})
        self.kind = kind
        self.identifier = identifier
