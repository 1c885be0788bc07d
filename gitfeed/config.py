"""
Configuration constants and run settings for the feed crawler.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------
DEFAULT_DATA_DIR = "data"
DEFAULT_PER_PAGE = 100
TOKEN_FILENAME = ".github-api-key"

# ---------------------------------------------------------------------------
# Crawler tuning
# ---------------------------------------------------------------------------
REQUEST_TIMEOUT = 15           # seconds, wall clock for one logical GET
MAX_REDIRECTS = 10
LISTING_THREADS = 20
DETAIL_THREADS = 20
PAGE_THREADS = 10
PAGE_RETRIES = 3               # extra attempts after the first blog-page fetch
PAGE_RETRY_DELAY = 0.5         # seconds, multiplied by the attempt number

# Cached API payloads at or below this size are refetched.  Error bodies and
# truncated responses are small, real pages of users are not.
MIN_CACHE_BYTES = 1000

# Chunk size used while reading response bodies under the wall-clock deadline
READ_CHUNK = 65536

# ---------------------------------------------------------------------------
# Upstream API
# ---------------------------------------------------------------------------
FOLLOWING_ENDPOINT = (
    "https://api.github.com/users/{username}/following"
    "?page={page}&per_page={per_page}"
)
API_ACCEPT = "application/vnd.github+json"

# Statuses that mean "access denied" rather than "not there"
BLOCKED_STATUS_CODES = frozenset({403, 429})

# Field of a detail payload carrying the user's home page
BLOG_FIELD = "blog"
# Field present on a 200 response that is really an error
ERROR_FIELD = "message"

# ---------------------------------------------------------------------------
# Persisted layout (relative to the data directory)
# ---------------------------------------------------------------------------
FOLLOWING_PAGES_DIRNAME = "following_pages"
USERS_DIRNAME = "github_users"
BLOG_PAGES_DIRNAME = "blog-pages"
BLOGS_LIST_FILENAME = "following_users_blogs.json"
FEEDS_FILENAME = "rss_feeds.json"

# ---------------------------------------------------------------------------
# Feed detection
# ---------------------------------------------------------------------------
FEED_MIME_TYPES = frozenset({
    "application/rss+xml",
    "application/atom+xml",
    "application/rdf+xml",
    "text/rss+xml",
    "text/atom+xml",
    "text/rdf+xml",
    "rss",
    "atom",
    "rdf",
})

# First line written in front of every cached blog page
PROVENANCE_PREFIX = "<!-- gitfeed-source: "
PROVENANCE_SUFFIX = " -->"

USER_AGENT = "gitfeed/1.0 (+https://github.com/gitfeed)"


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def read_token_file(path: Path) -> str | None:
    """Return the first line of *path*, or ``None`` when it is missing/empty."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError:
        return None
    token = text.strip().splitlines()[0].strip() if text.strip() else ""
    return token or None


@dataclass
class Settings:
    """Everything one pipeline run needs to know.

    Passed explicitly through every stage so two runs in the same process
    never share verbosity or refresh state.
    """

    data_dir: Path = field(default_factory=lambda: Path(DEFAULT_DATA_DIR))
    per_page: int = DEFAULT_PER_PAGE
    auth_user: str | None = None
    auth_token: str | None = None
    force_refresh: bool = False
    verbose: bool = True
    log_errors: bool = True
    verify_ssl: bool = False
    timeout: float = REQUEST_TIMEOUT
    max_redirects: int = MAX_REDIRECTS
    listing_threads: int = LISTING_THREADS
    detail_threads: int = DETAIL_THREADS
    page_threads: int = PAGE_THREADS
    page_retries: int = PAGE_RETRIES
    page_retry_delay: float = PAGE_RETRY_DELAY
    min_cache_bytes: int = MIN_CACHE_BYTES

    @classmethod
    def from_env(cls, **overrides) -> "Settings":
        """Build settings from ``GITFEED_*`` / ``GITHUB_API_*`` variables.

        Explicit keyword *overrides* win over the environment.  A token read
        from ``.github-api-key`` in the working directory is used when the
        environment has none.
        """
        values: dict = {
            "data_dir": Path(os.environ.get("GITFEED_DATA_DIR", DEFAULT_DATA_DIR)),
            "auth_user": os.environ.get("GITHUB_API_USER") or None,
            "auth_token": (
                os.environ.get("GITHUB_API_TOKEN")
                or read_token_file(Path.cwd() / TOKEN_FILENAME)
            ),
            "force_refresh": _env_flag("FORCE_REFRESH", False),
            "log_errors": _env_flag("LOG_ERRORS", True),
            "verbose": _env_flag("GITFEED_VERBOSE", True),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @property
    def should_log_errors(self) -> bool:
        return self.verbose and self.log_errors
