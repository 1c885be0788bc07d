"""
gitfeed
=======
Builds a catalogue of RSS/Atom feeds for everyone a GitHub user follows.

Package structure
-----------------
gitfeed/
├── __init__.py       – package init and public API
├── config.py         – tuning constants and the per-run ``Settings``
├── errors.py         – failure taxonomy
├── session.py        – requests.Session factory and API auth headers
├── cli.py            – argparse CLI (``python -m gitfeed``)
├── core/             – cache, fetch client, worker pool, crawlers, pipeline
├── extraction/       – feed-link extraction from cached HTML
└── utils/            – URL helpers and logging setup

Quick start
-----------
    from pathlib import Path
    from gitfeed import FeedPipeline, Settings

    settings = Settings(data_dir=Path("data"), auth_token="ghp_...")
    result = FeedPipeline(settings).run("octocat")
    print(result.feeds)
"""

from .config import Settings
from .core import CatalogueResult, FeedPipeline, generate_catalogue
from .extraction import extract_feed_links

__version__ = "1.0.0"

__all__ = [
    "CatalogueResult",
    "FeedPipeline",
    "Settings",
    "extract_feed_links",
    "generate_catalogue",
]
