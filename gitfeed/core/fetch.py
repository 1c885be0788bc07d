"""
Single logical HTTP GET: wall-clock timeout, manual redirect chasing and
translation of ``requests`` failures into the package error taxonomy.
"""

import json
import logging
import threading
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import Any, Mapping

import requests

from gitfeed.config import MAX_REDIRECTS, READ_CHUNK, REQUEST_TIMEOUT
from gitfeed.errors import (
    FetchTimeout,
    MalformedResponse,
    NetworkFailure,
    TooManyRedirects,
)
from gitfeed.utils.url import resolve_location

log = logging.getLogger("gitfeed")


@dataclass
class FetchResponse:
    """Fully-read response of the last hop of a redirect chain."""

    url: str
    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)
    content: bytes = b""
    encoding: str | None = None
    history: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        return self.content.decode(self.encoding or "utf-8", errors="replace")

    def json(self) -> Any:
        try:
            return json.loads(self.content.decode(self.encoding or "utf-8"))
        except (ValueError, LookupError) as exc:
            raise MalformedResponse(f"Invalid JSON from {self.url}: {exc}") from exc


class HttpClient:
    """
    Thin wrapper over a shared ``requests.Session``.

    Non-2xx statuses come back as data; only transport problems, timeouts
    and redirect loops raise.
    """

    def __init__(
        self,
        session: requests.Session,
        timeout: float = REQUEST_TIMEOUT,
        max_redirects: int = MAX_REDIRECTS,
    ) -> None:
        self.session = session
        self.timeout = timeout
        self.max_redirects = max_redirects

    def fetch(
        self,
        url: str,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> FetchResponse:
        """GET *url*, following redirects, and read the whole body.

        ``requests`` only bounds each socket operation, so a server trickling
        bytes could hold the caller forever.  The exchange therefore runs on
        a helper thread and the caller waits at most *timeout* seconds; on
        expiry the helper's open response is closed behind it.
        """
        budget = self.timeout if timeout is None else timeout
        deadline = time.monotonic() + budget
        future: Future = Future()
        abandoned = threading.Event()
        open_responses: list[requests.Response] = []

        def work() -> None:
            try:
                future.set_result(
                    self._fetch_chain(url, headers, deadline, budget, abandoned, open_responses)
                )
            except BaseException as exc:
                future.set_exception(exc)

        threading.Thread(target=work, name="gitfeed-fetch", daemon=True).start()
        try:
            return future.result(timeout=max(budget, 0.0))
        except FutureTimeout as exc:
            abandoned.set()
            for resp in list(open_responses):
                try:
                    resp.close()
                except Exception as close_exc:
                    log.debug("  Closing abandoned response for %s failed: %s", url, close_exc)
            raise FetchTimeout(url, budget) from exc

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _fetch_chain(
        self,
        url: str,
        headers: Mapping[str, str] | None,
        deadline: float,
        budget: float,
        abandoned: threading.Event,
        open_responses: list[requests.Response],
    ) -> FetchResponse:
        history: list[str] = []
        current = url

        while True:
            if abandoned.is_set():
                raise FetchTimeout(url, budget)
            resp = self._get(current, headers, deadline, budget)
            open_responses.append(resp)
            location = resp.headers.get("Location")
            if resp.is_redirect and location:
                resp.close()
                if len(history) >= self.max_redirects:
                    raise TooManyRedirects(url, self.max_redirects)
                history.append(current)
                target = resolve_location(location, current)
                log.debug("  Redirect %s → %s", current, target)
                current = target
                continue

            content = self._read_body(resp, current, deadline, budget, abandoned)
            return FetchResponse(
                url=current,
                status_code=resp.status_code,
                headers=dict(resp.headers),
                content=content,
                encoding=resp.encoding,
                history=history,
            )

    def _get(
        self,
        url: str,
        headers: Mapping[str, str] | None,
        deadline: float,
        budget: float,
    ) -> requests.Response:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise FetchTimeout(url, budget)
        try:
            return self.session.get(
                url,
                headers=dict(headers or {}),
                timeout=remaining,
                allow_redirects=False,
                stream=True,
            )
        except requests.Timeout as exc:
            raise FetchTimeout(url, budget) from exc
        except requests.RequestException as exc:
            raise NetworkFailure(url, type(exc).__name__) from exc

    @staticmethod
    def _read_body(
        resp: requests.Response,
        url: str,
        deadline: float,
        budget: float,
        abandoned: threading.Event,
    ) -> bytes:
        chunks: list[bytes] = []
        try:
            for chunk in resp.iter_content(chunk_size=READ_CHUNK):
                if chunk:
                    chunks.append(chunk)
                if abandoned.is_set() or time.monotonic() > deadline:
                    raise FetchTimeout(url, budget)
        except requests.Timeout as exc:
            raise FetchTimeout(url, budget) from exc
        except requests.RequestException as exc:
            raise NetworkFailure(url, type(exc).__name__) from exc
        finally:
            resp.close()
        return b"".join(chunks)
