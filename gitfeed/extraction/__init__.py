"""Feed-link extraction from cached blog pages."""

from gitfeed.extraction.feeds import extract_each, extract_feed_links, extract_from_file

__all__ = ["extract_each", "extract_feed_links", "extract_from_file"]
