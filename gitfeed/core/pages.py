"""
Blog/page crawler: downloads the home page linked from each profile.

Pages live in a cache shared by every root user, keyed by the normalised
URL.  Once a page is on disk it is never fetched again.  Each cached page
starts with a provenance line naming the URL it was served from, which the
feed extractor needs to resolve relative links.
"""

import logging
import time
from pathlib import Path

from gitfeed.config import BLOG_PAGES_DIRNAME, PROVENANCE_PREFIX, PROVENANCE_SUFFIX, Settings
from gitfeed.core.cache import CacheStore
from gitfeed.core.fetch import HttpClient
from gitfeed.core.pool import BatchReport, ItemCallback, run_batch
from gitfeed.errors import GitFeedError, UnexpectedStatus
from gitfeed.utils.url import cache_key_for_url, ensure_scheme

log = logging.getLogger("gitfeed")


def page_key(url: str) -> str:
    return f"{BLOG_PAGES_DIRNAME}/{cache_key_for_url(url)}.html"


def provenance_line(url: str) -> str:
    return f"{PROVENANCE_PREFIX}{url}{PROVENANCE_SUFFIX}\n"


class PageCrawler:
    def __init__(self, client: HttpClient, cache: CacheStore, settings: Settings) -> None:
        self.client = client
        self.cache = cache
        self.settings = settings

    def fetch_page(self, url: str) -> Path:
        """Cached path of *url*'s page, downloading it if needed.

        Tries ``page_retries + 1`` times before giving up; a failure leaves
        nothing in the cache so the next run tries again.
        """
        key = page_key(url)
        if self.cache.exists(key):
            log.debug("[SKIP] Already on disk: %s", url)
            return self.cache.path(key)

        target = ensure_scheme(url)
        retries = max(0, self.settings.page_retries)
        attempts = retries + 1
        last_error: GitFeedError | None = None
        for attempt in range(1, attempts + 1):
            try:
                resp = self.client.fetch(target)
                if not resp.ok:
                    raise UnexpectedStatus(target, resp.status_code)
            except GitFeedError as exc:
                last_error = exc
                if attempt < attempts:
                    log.debug("[RETRY %d/%d] %s – %s", attempt, retries, url, exc)
                    if self.settings.page_retry_delay:
                        time.sleep(self.settings.page_retry_delay * attempt)
                continue
            return self.cache.write_bytes(key, provenance_line(resp.url).encode("utf-8") + resp.content)

        raise last_error

    def crawl(self, urls: list[str], callback: ItemCallback | None = None) -> BatchReport:
        return run_batch(urls, self.fetch_page, self.settings.page_threads, callback, name="pages")

    def cached_pages(self, urls: list[str]) -> list[Path]:
        """Paths of the cached pages for *urls*, one per distinct key."""
        seen: set[str] = set()
        paths: list[Path] = []
        for url in urls:
            key = page_key(url)
            if key in seen or not self.cache.exists(key):
                continue
            seen.add(key)
            paths.append(self.cache.path(key))
        return paths
