"""
End-to-end run for one root user:

    following pages → user records → blog pages → feed catalogue

Stages run one after another; items inside a stage run in parallel.  After
every stage the cache is re-read as the source of truth.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable

import requests

from gitfeed.config import BLOG_FIELD, BLOGS_LIST_FILENAME, FEEDS_FILENAME, Settings
from gitfeed.core.cache import CacheStore
from gitfeed.core.details import DetailCrawler
from gitfeed.core.fetch import HttpClient
from gitfeed.core.listing import ListingCrawler
from gitfeed.core.pages import PageCrawler
from gitfeed.core.pool import BatchReport, ItemCallback
from gitfeed.extraction.feeds import extract_each
from gitfeed.session import build_session
from gitfeed.utils.log import section

log = logging.getLogger("gitfeed")

# Receives the stage name and returns that stage's per-item callback
ProgressFactory = Callable[[str], ItemCallback | None]

STAGE_LISTING = "Download following users pages"
STAGE_DETAILS = "Download users data"
STAGE_PAGES = "Download blog pages"
STAGE_FEEDS = "RSS file generation"


def blogs_list_key(username: str) -> str:
    return f"{username}/{BLOGS_LIST_FILENAME}"


def feeds_key(username: str) -> str:
    return f"{username}/{FEEDS_FILENAME}"


def blog_urls(records: list[dict]) -> list[str]:
    """Non-empty home-page URLs of *records*, first occurrence kept."""
    urls: dict[str, None] = {}
    for record in records:
        blog = record.get(BLOG_FIELD)
        if isinstance(blog, str) and blog.strip():
            urls.setdefault(blog.strip(), None)
    return list(urls)


@dataclass
class CatalogueResult:
    username: str
    feeds: list[str] = field(default_factory=list)
    blocked: bool = False
    error: BaseException | None = None
    status_code: int | None = None
    following: int = 0
    users: int = 0
    blogs: int = 0
    pages: int = 0
    reports: dict[str, BatchReport] = field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        """Feeds found per scanned page, as a percentage."""
        if not self.pages:
            return 0.0
        return round(len(self.feeds) * 100 / self.pages, 2)


class FeedPipeline:
    """Wires the crawlers to one cache directory and one HTTP session."""

    def __init__(
        self,
        settings: Settings,
        session: requests.Session | None = None,
        client: HttpClient | None = None,
    ) -> None:
        self.settings = settings
        if client is None:
            session = session or build_session(
                verify_ssl=settings.verify_ssl,
                pool_size=max(settings.listing_threads, settings.detail_threads, settings.page_threads),
            )
            client = HttpClient(session, timeout=settings.timeout, max_redirects=settings.max_redirects)
        self.client = client
        self.cache = CacheStore(settings.data_dir, min_bytes=settings.min_cache_bytes)
        self.listing = ListingCrawler(client, self.cache, settings)
        self.details = DetailCrawler(client, self.cache, settings)
        self.pages = PageCrawler(client, self.cache, settings)

    def run(self, username: str, progress: ProgressFactory | None = None) -> CatalogueResult:
        """Build and save the feed catalogue for *username*."""

        def callback_for(stage: str) -> ItemCallback | None:
            return progress(stage) if progress else None

        result = CatalogueResult(username=username)

        with section(STAGE_LISTING):
            listing = self.listing.crawl(username, callback_for(STAGE_LISTING))
            result.blocked = listing.blocked
            result.error = listing.error
            result.status_code = listing.status_code
            result.following = len(listing.items)
            if listing.report is not None:
                result.reports[STAGE_LISTING] = listing.report
                self._log_report(STAGE_LISTING, listing.report)
            log.info("Total of %d users followed by %s", result.following, username)

        if not listing.items:
            if listing.blocked:
                log.warning("[BLOCKED] Upstream refused the listing for %s – nothing to do", username)
            elif listing.error is None:
                # follows nobody: the catalogue from an earlier run is stale
                self.cache.write_json(feeds_key(username), result.feeds)
            return result

        with section(STAGE_DETAILS):
            details = self.details.crawl(listing.items, callback_for(STAGE_DETAILS))
            result.users = len(details.records)
            result.reports[STAGE_DETAILS] = details.report
            self._log_report(STAGE_DETAILS, details.report)

        urls = blog_urls(details.records)
        result.blogs = len(urls)
        self.cache.write_json(blogs_list_key(username), urls)

        with section(STAGE_PAGES):
            report = self.pages.crawl(urls, callback_for(STAGE_PAGES))
            result.reports[STAGE_PAGES] = report
            self._log_report(STAGE_PAGES, report)

        with section(STAGE_FEEDS):
            pages = self.pages.cached_pages(urls)
            feeds, report = extract_each(pages, callback_for(STAGE_FEEDS))
            result.pages = len(pages)
            result.feeds = sorted(feeds)
            result.reports[STAGE_FEEDS] = report
            self.cache.write_json(feeds_key(username), result.feeds)
            log.info(
                "[FEED] Extracted %d feed link(s) from %d page(s) (%.2f%%)",
                len(result.feeds), result.pages, result.success_rate,
            )

        return result

    def _log_report(self, stage: str, report: BatchReport) -> None:
        level = logging.WARNING if report.failed else logging.INFO
        log.log(level, "%s: %s", stage, report.summary())
        if not self.settings.should_log_errors:
            return
        for outcome in report.failures:
            log.warning("[ERR] %s | %s", _describe(outcome.item), outcome.error)


def _describe(item) -> str:
    if isinstance(item, dict):
        return str(item.get("login") or item.get("url") or item)
    return str(item)


def generate_catalogue(
    username: str,
    settings: Settings | None = None,
    progress: ProgressFactory | None = None,
) -> CatalogueResult:
    """Entry point for embedders: one call, one root user."""
    return FeedPipeline(settings or Settings.from_env()).run(username, progress)
