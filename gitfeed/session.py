"""
HTTP session creation for the upstream API and the crawled blogs.

Sessions are:
* pooled wide enough for the largest worker pool
* TLS-permissive by default (many personal sites have broken chains)
* free of transport-level retries: only blog pages are retried, and that
  happens one level up where the attempts can be counted
"""

import base64

import requests
import urllib3
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from gitfeed.config import API_ACCEPT, LISTING_THREADS, USER_AGENT


def build_session(verify_ssl: bool = False, pool_size: int = LISTING_THREADS) -> requests.Session:
    """Return a ``requests.Session`` sized for *pool_size* concurrent workers."""
    session = requests.Session()
    retry = Retry(total=0, redirect=False, raise_on_status=False)
    adapter = HTTPAdapter(
        max_retries=retry,
        pool_connections=pool_size,
        pool_maxsize=pool_size,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.verify = verify_ssl
    if not verify_ssl:
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
    session.headers.update({
        "User-Agent": USER_AGENT,
        "Accept": (
            "text/html,application/xhtml+xml,application/xml;q=0.9,"
            "application/json;q=0.9,*/*;q=0.8"
        ),
        "Accept-Language": "en-US,en;q=0.9",
    })
    return session


def github_headers(auth_token: str | None = None, auth_user: str | None = None) -> dict[str, str]:
    """Headers for the upstream API.

    Basic auth when both *auth_user* and *auth_token* are given, a bearer
    token when only the token is, and no ``Authorization`` header otherwise.
    """
    headers = {"Accept": API_ACCEPT}
    if auth_token and auth_user:
        raw = f"{auth_user}:{auth_token}".encode("utf-8")
        headers["Authorization"] = "Basic " + base64.b64encode(raw).decode("ascii")
    elif auth_token:
        headers["Authorization"] = f"bearer {auth_token}"
    return headers
