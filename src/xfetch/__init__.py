"""xfetch - resilient paginated fetching from the X/Twitter web API."""

__version__ = "0.1.0"
