"""
Paginated listing crawler for a user's "following" collection.

Page 1 is always fetched live: the pagination bound only comes with a live
response.  Pages 2..last go through the worker pool and the cache.  The
aggregate is rebuilt from the cached page files, not from memory, so an
interrupted run picks up where it left off.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any

from gitfeed.config import BLOCKED_STATUS_CODES, FOLLOWING_ENDPOINT, FOLLOWING_PAGES_DIRNAME, Settings
from gitfeed.core.cache import CacheStore
from gitfeed.core.fetch import HttpClient
from gitfeed.core.pool import BatchReport, FetchOutcome, ItemCallback, run_batch
from gitfeed.errors import GitFeedError, MalformedResponse, UnexpectedStatus, access_denied
from gitfeed.session import github_headers
from gitfeed.utils.url import last_page_from_link_header

log = logging.getLogger("gitfeed")


def following_endpoint(username: str, page: int, per_page: int) -> str:
    return FOLLOWING_ENDPOINT.format(username=username, page=page, per_page=per_page)


def following_page_key(username: str, page: int, per_page: int) -> str:
    """Cache key of one listing page."""
    return f"{username}/{FOLLOWING_PAGES_DIRNAME}/page_{page:04d}_per_page_{per_page}.json"


def following_pages_pattern(username: str, per_page: int) -> str:
    """Glob matching every cached listing page written by :func:`following_page_key`."""
    return f"{username}/{FOLLOWING_PAGES_DIRNAME}/page_*_per_page_{per_page}.json"


@dataclass
class ListingResult:
    """Outcome of the listing stage.

    ``items`` is empty both when the user follows nobody and when the first
    page failed; ``error`` is set on failure and ``blocked`` marks a refusal.
    ``report`` counts page 1 together with the pages fetched after it.
    """

    items: list[dict] = field(default_factory=list)
    last_page: int = 0
    blocked: bool = False
    status_code: int | None = None
    error: BaseException | None = None
    report: BatchReport | None = None


def _parse_page(resp, url: str) -> list[dict]:
    if resp.status_code in BLOCKED_STATUS_CODES:
        raise access_denied(url, resp.status_code)
    if not resp.ok:
        raise UnexpectedStatus(url, resp.status_code)
    body = resp.json()
    if not isinstance(body, list):
        raise MalformedResponse(f"Expected a JSON array from {url}")
    return body


def _first_page_failed(exc: BaseException) -> BatchReport:
    return BatchReport(total=1, outcomes=[FetchOutcome.failure(0, 1, exc)])


class ListingCrawler:
    """Walks ``/users/<name>/following`` from page 1 to the advertised last page."""

    def __init__(self, client: HttpClient, cache: CacheStore, settings: Settings) -> None:
        self.client = client
        self.cache = cache
        self.settings = settings
        self.headers = github_headers(settings.auth_token, settings.auth_user)

    def fetch_page(self, username: str, page: int) -> list[dict]:
        """One page of items, from cache when fresh, otherwise live."""
        per_page = self.settings.per_page
        key = following_page_key(username, page, per_page)
        if self.cache.is_fresh(key, self.settings.force_refresh):
            cached = self.cache.read_json(key)
            if isinstance(cached, list):
                log.debug("[CACHE] %s", key)
                return cached

        url = following_endpoint(username, page, per_page)
        body = _parse_page(self.client.fetch(url, self.headers), url)
        self.cache.write_json(key, body)
        return body

    def crawl(self, username: str, callback: ItemCallback | None = None) -> ListingResult:
        per_page = self.settings.per_page
        url = following_endpoint(username, 1, per_page)

        try:
            first = self.client.fetch(url, self.headers)
        except GitFeedError as exc:
            log.warning("[ERR] First listing page failed for %s – %s", username, exc)
            return ListingResult(error=exc, report=_first_page_failed(exc))

        if first.status_code in BLOCKED_STATUS_CODES:
            exc = access_denied(url, first.status_code)
            log.warning("[BLOCKED] HTTP %s on first listing page for %s", first.status_code, username)
            return ListingResult(
                blocked=True, status_code=first.status_code,
                error=exc, report=_first_page_failed(exc),
            )

        try:
            body = _parse_page(first, url)
        except GitFeedError as exc:
            log.warning("[ERR] First listing page unusable for %s – %s", username, exc)
            return ListingResult(
                status_code=first.status_code, error=exc, report=_first_page_failed(exc),
            )

        key = following_page_key(username, 1, per_page)
        if not self.cache.is_fresh(key, self.settings.force_refresh):
            self.cache.write_json(key, body)

        last_page = last_page_from_link_header(first.headers.get("Link"))
        log.info("Listing for %s spans %d page(s) of %d", username, last_page, per_page)

        rest = run_batch(
            range(2, last_page + 1),
            lambda page: self.fetch_page(username, page),
            self.settings.listing_threads,
            callback,
            name="listing",
        )
        report = BatchReport(
            total=rest.total + 1,
            outcomes=[FetchOutcome.success(0, 1, body)]
            + [replace(o, index=o.index + 1) for o in rest.outcomes],
        )
        return ListingResult(
            items=self.read_items(username),
            last_page=last_page,
            status_code=first.status_code,
            report=report,
        )

    def read_items(self, username: str) -> list[dict[str, Any]]:
        """Concatenate every cached page for *username*, in key order."""
        items: list[dict] = []
        for key in self.cache.keys(following_pages_pattern(username, self.settings.per_page)):
            page = self.cache.read_json(key)
            if isinstance(page, list):
                items.extend(page)
        return items
