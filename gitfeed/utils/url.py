"""
URL normalisation and key-derivation helpers.
"""

import re
import urllib.parse

_SCHEME_RE = re.compile(r"^(https?|ftp|file):", re.IGNORECASE)
_STRIP_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_LINK_ENTRY_RE = re.compile(r"<([^>]*)>\s*;([^,]*)")
_PAGE_PARAM_RE = re.compile(r"[?&]page=(\d+)\b")


def ensure_scheme(url: str) -> str:
    """Prefix ``http://`` unless *url* already names a scheme."""
    url = url.strip()
    return url if _SCHEME_RE.match(url) else f"http://{url}"


def cache_key_for_url(url: str) -> str:
    """
    Filesystem-safe key for *url*.

    The scheme and trailing slashes are dropped before every run of
    non-alphanumeric characters collapses to a single ``-``, so
    ``https://A.com/blog/`` and ``a.com/blog`` share one key.
    """
    bare = _STRIP_SCHEME_RE.sub("", url.strip()).rstrip("/")
    return _NON_ALNUM_RE.sub("-", bare.lower()).strip("-")


def resolve_location(location: str, request_url: str) -> str:
    """
    Absolute target of a redirect.

    Host-relative values (``/blog``) are re-based onto the scheme and host
    of *request_url*; absolute values are returned as given.
    """
    return urllib.parse.urljoin(request_url, location.strip())


def origin_of(url: str) -> str | None:
    """``scheme://host[:port]`` of *url*, or ``None`` when it has no host."""
    parsed = urllib.parse.urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}"


def is_absolute(url: str) -> bool:
    return bool(urllib.parse.urlparse(url).scheme) and "://" in url


def last_page_from_link_header(header: str | None) -> int:
    """
    Highest page number advertised by a ``Link`` response header.

    The ``rel="last"`` entry wins; otherwise the last entry listed is used.
    A missing or malformed header means there is only one page.
    """
    if not header:
        return 1
    entries = _LINK_ENTRY_RE.findall(header)
    if not entries:
        return 1
    target = entries[-1][0]
    for link, params in entries:
        if re.search(r"""rel\s*=\s*["']?last\b""", params):
            target = link
            break
    m = _PAGE_PARAM_RE.search(target)
    if not m:
        return 1
    return max(1, int(m.group(1)))
