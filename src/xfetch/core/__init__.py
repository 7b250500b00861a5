"""Core module - configuration, logging, exceptions."""

from xfetch.core.config import Credential, Settings, get_settings
from xfetch.core.exceptions import (
    AuthenticationError,
    CheckpointIOError,
    InvalidProxyError,
    NotFoundError,
    ProxyError,
    ProxyFileError,
    RemoteAPIError,
    TransportError,
    UnknownOperationError,
    XFetchError,
)
from xfetch.core.logging import LogContext, get_logger, setup_logging

__all__ = [
    "Credential",
    "Settings",
    "get_settings",
    "XFetchError",
    "UnknownOperationError",
    "TransportError",
    "RemoteAPIError",
    "AuthenticationError",
    "ProxyError",
    "InvalidProxyError",
    "ProxyFileError",
    "CheckpointIOError",
    "NotFoundError",
    "setup_logging",
    "get_logger",
    "LogContext",
]
