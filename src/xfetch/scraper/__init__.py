"""Paginated collection on top of the X client."""

from xfetch.scraper.paginator import (
    FetchPage,
    PageBatch,
    PaginationOptions,
    PaginationProgress,
    PaginationResult,
    Paginator,
    fetch_all_pages,
    with_retries,
)

__all__ = [
    "FetchPage",
    "PageBatch",
    "PaginationOptions",
    "PaginationProgress",
    "PaginationResult",
    "Paginator",
    "fetch_all_pages",
    "with_retries",
]
