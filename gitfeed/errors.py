"""
Failure taxonomy shared by the fetch client, the cache and the crawlers.

Every per-item failure raised inside a worker ends up wrapped in a
:class:`gitfeed.core.pool.FetchOutcome`; nothing here is meant to escape a
batch.
"""


class GitFeedError(Exception):
    """Base class for every failure the pipeline classifies."""


class FetchTimeout(GitFeedError):
    """A request did not complete within its wall-clock budget."""

    def __init__(self, url: str, timeout: float) -> None:
        super().__init__(f"Timed out after {timeout:g}s: {url}")
        self.url = url
        self.timeout = timeout


class NetworkFailure(GitFeedError):
    """Connection, DNS or TLS level failure."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{reason}: {url}")
        self.url = url
        self.reason = reason


class TooManyRedirects(NetworkFailure):
    def __init__(self, url: str, limit: int) -> None:
        super().__init__(url, f"More than {limit} redirects")
        self.limit = limit


class AccessDenied(GitFeedError):
    """The upstream refused to serve the request (403 / 429)."""

    def __init__(self, url: str, status_code: int) -> None:
        super().__init__(f"HTTP {status_code} (access denied): {url}")
        self.url = url
        self.status_code = status_code


class RateLimited(AccessDenied):
    pass


class Forbidden(AccessDenied):
    pass


class UnexpectedStatus(GitFeedError):
    """A non-2xx answer where the caller needed a success."""

    def __init__(self, url: str, status_code: int) -> None:
        super().__init__(f"HTTP {status_code}: {url}")
        self.url = url
        self.status_code = status_code


class MalformedResponse(GitFeedError):
    """The body could not be parsed into the expected shape."""


class UpstreamLogicalError(GitFeedError):
    """HTTP 200 carrying an embedded ``{"message": ...}`` error payload."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"Upstream error for {url}: {message}")
        self.url = url
        self.message = message


class CacheIOFailure(GitFeedError):
    """Reading or writing a cache entry failed at the filesystem level."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Cache I/O failed for {key}: {reason}")
        self.key = key
        self.reason = reason


def access_denied(url: str, status_code: int) -> AccessDenied:
    """Return the most specific :class:`AccessDenied` for *status_code*."""
    if status_code == 429:
        return RateLimited(url, status_code)
    return Forbidden(url, status_code)
