"""
Per-item detail crawler: resolves each listed user into their full record.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from gitfeed.config import BLOCKED_STATUS_CODES, ERROR_FIELD, USERS_DIRNAME, Settings
from gitfeed.core.cache import CacheStore
from gitfeed.core.fetch import HttpClient
from gitfeed.core.pool import BatchReport, ItemCallback, run_batch
from gitfeed.errors import MalformedResponse, UnexpectedStatus, UpstreamLogicalError, access_denied
from gitfeed.session import github_headers

log = logging.getLogger("gitfeed")


def user_key(login: str) -> str:
    return f"{USERS_DIRNAME}/{login}.json"


def has_error_marker(record: Any) -> bool:
    return isinstance(record, dict) and ERROR_FIELD in record


@dataclass
class DetailResult:
    records: list[dict] = field(default_factory=list)
    report: BatchReport | None = None


class DetailCrawler:
    def __init__(self, client: HttpClient, cache: CacheStore, settings: Settings) -> None:
        self.client = client
        self.cache = cache
        self.settings = settings
        self.headers = github_headers(settings.auth_token, settings.auth_user)

    def fetch_user(self, item: dict) -> dict:
        """Full record for one listing item.

        A 200 answer carrying ``{"message": ...}`` is a failure and is
        neither cached nor returned.
        """
        if not isinstance(item, dict) or not item.get("login") or not item.get("url"):
            raise MalformedResponse(f"Listing item without login/url: {item!r}")
        login, url = item["login"], item["url"]
        key = user_key(login)

        if self.cache.is_fresh(key, self.settings.force_refresh):
            cached = self.cache.read_json(key)
            if isinstance(cached, dict) and not has_error_marker(cached):
                log.debug("[CACHE] %s", key)
                return cached

        resp = self.client.fetch(url, self.headers)
        if resp.status_code in BLOCKED_STATUS_CODES:
            raise access_denied(url, resp.status_code)
        if not resp.ok:
            raise UnexpectedStatus(url, resp.status_code)
        body = resp.json()
        if not isinstance(body, dict):
            raise MalformedResponse(f"Expected a JSON object from {url}")
        if has_error_marker(body):
            raise UpstreamLogicalError(url, str(body[ERROR_FIELD]))

        self.cache.write_json(key, body)
        return body

    def crawl(self, items: list[dict], callback: ItemCallback | None = None) -> DetailResult:
        report = run_batch(items, self.fetch_user, self.settings.detail_threads, callback, name="details")
        return DetailResult(records=self.read_records(items), report=report)

    def read_records(self, items: list[dict]) -> list[dict]:
        """Cached records for *items*, skipping missing and error-marked ones."""
        records: list[dict] = []
        for item in items:
            login = item.get("login") if isinstance(item, dict) else None
            if not login:
                continue
            record = self.cache.read_json(user_key(login))
            if isinstance(record, dict) and not has_error_marker(record):
                records.append(record)
        return records
