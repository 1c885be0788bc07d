"""Utility helpers for URL normalisation and logging."""

from gitfeed.utils.url import (
    cache_key_for_url,
    ensure_scheme,
    last_page_from_link_header,
    origin_of,
    resolve_location,
)
from gitfeed.utils.log import setup_logging, section, log

__all__ = [
    "cache_key_for_url",
    "ensure_scheme",
    "last_page_from_link_header",
    "origin_of",
    "resolve_location",
    "setup_logging",
    "section",
    "log",
]
