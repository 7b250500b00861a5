"""CLI commands for xfetch."""

from xfetch.cli.commands import auth, fetch, get, proxies, query_ids

__all__ = ["auth", "fetch", "get", "proxies", "query_ids"]
