"""
File-backed cache store.

Entries are addressed by a relative key such as
``octocat/following_pages/page_0001_per_page_100.json`` under one data
directory.  Writes go to a temporary sibling and are moved into place, so
a concurrent reader never sees half a file.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from gitfeed.config import MIN_CACHE_BYTES
from gitfeed.errors import CacheIOFailure

log = logging.getLogger("gitfeed")


class CacheStore:
    """Filename-addressed persistence with a size-based freshness check."""

    def __init__(self, root: Path, min_bytes: int = MIN_CACHE_BYTES) -> None:
        self.root = Path(root)
        self.min_bytes = min_bytes

    def path(self, key: str) -> Path:
        return self.root / key

    def exists(self, key: str) -> bool:
        return self.path(key).is_file()

    def is_fresh(self, key: str, force_refresh: bool = False) -> bool:
        """True when *key* exists and is larger than ``min_bytes``.

        Always False under *force_refresh*.
        """
        if force_refresh:
            return False
        try:
            return self.path(key).stat().st_size > self.min_bytes
        except OSError:
            return False

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def read_bytes(self, key: str) -> bytes | None:
        path = self.path(key)
        if not path.is_file():
            return None
        try:
            return path.read_bytes()
        except OSError as exc:
            raise CacheIOFailure(key, str(exc)) from exc

    def read_text(self, key: str) -> str | None:
        data = self.read_bytes(key)
        if data is None:
            return None
        return data.decode("utf-8", errors="replace")

    def read_json(self, key: str) -> Any:
        """Parsed JSON at *key*; ``None`` if absent or not valid JSON."""
        text = self.read_text(key)
        if text is None:
            return None
        try:
            return json.loads(text)
        except ValueError:
            log.debug("[CACHE] Unreadable JSON in %s – ignoring", key)
            return None

    def keys(self, pattern: str) -> list[str]:
        """Keys matching glob *pattern*, in lexical order."""
        return sorted(
            p.relative_to(self.root).as_posix()
            for p in self.root.glob(pattern)
            if p.is_file()
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def write_bytes(self, key: str, content: bytes) -> Path:
        """Store *content* at *key*, creating parent directories."""
        path = self.path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(content)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise CacheIOFailure(key, str(exc)) from exc
        log.debug("[SAVE] %s (%d bytes)", key, len(content))
        return path

    def write_text(self, key: str, text: str) -> Path:
        return self.write_bytes(key, text.encode("utf-8"))

    def write_json(self, key: str, data: Any) -> Path:
        return self.write_text(key, json.dumps(data, indent=2, ensure_ascii=False))
