"""
Syndication-feed link extraction from cached HTML.

Scans ``<link ...>`` and ``<a ...>`` tags with regular expressions; a tag
counts when its ``type`` attribute is one of the known feed MIME types and
it carries a quoted ``href``.  Relative hrefs are resolved against the
origin recorded in the page's provenance line.
"""

import html
import logging
import re
from pathlib import Path
from typing import Iterable

from gitfeed.config import FEED_MIME_TYPES, PROVENANCE_PREFIX, PROVENANCE_SUFFIX
from gitfeed.core.pool import BatchReport, FetchOutcome, ItemCallback
from gitfeed.errors import CacheIOFailure
from gitfeed.utils.url import is_absolute, origin_of

log = logging.getLogger("gitfeed")

_FEED_TAGS = ("link", "a")
_TAG_RES = {
    tag: re.compile(rf"<{tag}\b[^>]*>", re.IGNORECASE | re.DOTALL)
    for tag in _FEED_TAGS
}
_TYPE_RE = re.compile(r"""(?<![\w-])type\s*=\s*(["'])(.*?)\1""", re.IGNORECASE | re.DOTALL)
_HREF_RE = re.compile(r"""(?<![\w-])href\s*=\s*(["'])(.*?)\1""", re.IGNORECASE | re.DOTALL)
_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*:", re.IGNORECASE)


def source_url_of(page: str) -> str | None:
    """URL named by the provenance line at the top of *page*, if any."""
    first_line = page.split("\n", 1)[0].strip()
    if first_line.startswith(PROVENANCE_PREFIX) and first_line.endswith(PROVENANCE_SUFFIX):
        url = first_line[len(PROVENANCE_PREFIX):-len(PROVENANCE_SUFFIX)].strip()
        return url or None
    return None


def is_feed_tag(tag: str) -> bool:
    m = _TYPE_RE.search(tag)
    if not m:
        return False
    mime = m.group(2).split(";")[0].strip().lower()
    return mime in FEED_MIME_TYPES


def resolve_feed_href(href: str, origin: str | None) -> str | None:
    """Absolute form of *href*, or ``None`` when it cannot be resolved."""
    href = html.unescape(href).strip()
    if not href or href.startswith("#"):
        return None
    if is_absolute(href):
        return href
    if _SCHEME_RE.match(href):
        # mailto:, javascript:, data: ...
        return None
    if origin is None:
        return None
    if href.startswith("//") and not href.startswith("///"):
        return origin.split("://", 1)[0] + ":" + href
    return f"{origin}/{href.lstrip('/')}"


def extract_feed_links(page: str, source_url: str | None = None) -> set[str]:
    """
    Every feed URL advertised by *page*.

    *source_url* defaults to the page's provenance line; without either,
    relative hrefs are dropped.
    """
    origin = origin_of(source_url or source_url_of(page) or "")
    found: set[str] = set()
    for tag in _FEED_TAGS:
        for m in _TAG_RES[tag].finditer(page):
            raw_tag = m.group(0)
            if not is_feed_tag(raw_tag):
                continue
            href = _HREF_RE.search(raw_tag)
            if not href:
                continue
            url = resolve_feed_href(href.group(2), origin)
            if url:
                found.add(url)
    return found


def extract_from_file(path: Path) -> set[str]:
    try:
        page = Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise CacheIOFailure(str(path), str(exc)) from exc
    if not page.strip():
        return set()
    return extract_feed_links(page)


def extract_each(
    pages: Iterable[Path],
    callback: ItemCallback | None = None,
) -> tuple[list[str], BatchReport]:
    """Extract feeds from every cached page.

    Returns the feeds deduplicated across pages in first-seen order, and a
    report with one outcome per page.  Unreadable pages count as failures
    and contribute nothing.
    """
    pages = list(pages)
    total = len(pages)
    report = BatchReport(total=total)
    feeds: dict[str, None] = {}
    for index, path in enumerate(pages):
        try:
            links = sorted(extract_from_file(path))
        except Exception as exc:
            outcome = FetchOutcome.failure(index, path, exc)
        else:
            outcome = FetchOutcome.success(index, path, links)
            for link in links:
                feeds.setdefault(link, None)
            if links:
                log.debug("[FEED] %d feed(s) in %s", len(links), Path(path).name)
        report.outcomes.append(outcome)
        if callback is not None:
            try:
                callback(outcome.error, outcome.value, index, total, path)
            except Exception:
                log.exception("Progress callback failed for item %d", index)
    return list(feeds), report
