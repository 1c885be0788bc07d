"""
Command-line interface for the feed crawler.
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from tqdm import tqdm

from gitfeed.config import DEFAULT_PER_PAGE, Settings
from gitfeed.core.pipeline import FeedPipeline
from gitfeed.utils.log import log, setup_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="gitfeed",
        description="Collect the RSS/Atom feeds of every blog linked from the "
                    "GitHub profiles a user follows.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  gitfeed octocat\n"
            "  gitfeed octocat --force --per-page 50\n"
            "  gitfeed octocat --token $GITHUB_API_TOKEN --log-file run.log\n"
            "\n"
            "Exit status: 0 on success, 1 when the following list could not be\n"
            "read, 2 when GitHub refused it (rate limited or forbidden).\n"
        ),
    )
    parser.add_argument("username", help="GitHub user whose following list is crawled")
    parser.add_argument(
        "--per-page", type=int, default=DEFAULT_PER_PAGE,
        help=f"Listing page size (default: {DEFAULT_PER_PAGE})",
    )
    parser.add_argument(
        "--data-dir", default=None,
        help="Directory holding the cache and the generated files "
             "(default: $GITFEED_DATA_DIR or ./data)",
    )
    parser.add_argument("--user", default=None, help="GitHub user for basic auth")
    parser.add_argument(
        "--token", default=None,
        help="GitHub API token (default: $GITHUB_API_TOKEN or .github-api-key)",
    )
    parser.add_argument(
        "--force", action="store_true", default=False,
        help="Refetch API pages even when a cached copy looks fresh",
    )
    parser.add_argument(
        "--quiet", action="store_true", default=False,
        help="No progress bars, only warnings and errors",
    )
    parser.add_argument(
        "--no-log-errors", dest="log_errors", action="store_false", default=True,
        help="Do not log individual item failures",
    )
    parser.add_argument("--debug", action="store_true", help="Enable verbose debug logging")
    parser.add_argument("--log-file", help="Write detailed logs to this file (always at DEBUG level)")
    return parser.parse_args(argv)


class ProgressBars:
    """One ``tqdm`` bar per stage, driven by the per-item callback."""

    def __init__(self, disable: bool = False) -> None:
        self.disable = disable
        self._bars: list[tqdm] = []

    def __call__(self, stage: str):
        bar = tqdm(desc=stage, unit="item", dynamic_ncols=True, leave=False, disable=self.disable)
        self._bars.append(bar)

        def on_item(error, result, index, total, item):
            if bar.total != total:
                bar.total = total
            bar.update(1)
            if error is not None:
                bar.set_postfix(last_error=type(error).__name__)

        return on_item

    def close(self) -> None:
        for bar in self._bars:
            bar.close()
        self._bars.clear()


def build_settings(args: argparse.Namespace) -> Settings:
    return Settings.from_env(
        data_dir=Path(args.data_dir) if args.data_dir else None,
        per_page=args.per_page,
        auth_user=args.user,
        auth_token=args.token,
        force_refresh=True if args.force else None,
        verbose=False if args.quiet else None,
        log_errors=False if not args.log_errors else None,
    )


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    setup_logging(debug=args.debug, log_file=args.log_file, quiet=args.quiet)
    if args.debug:
        logging.getLogger("urllib3").setLevel(logging.DEBUG)

    settings = build_settings(args)
    if not settings.auth_token:
        log.warning("No GitHub token configured – the API allows 60 unauthenticated requests per hour")

    bars = ProgressBars(disable=not settings.verbose)
    t0 = time.monotonic()
    try:
        result = FeedPipeline(settings).run(args.username, progress=bars)
    finally:
        bars.close()

    log.info("Total elapsed time: %.1f s", time.monotonic() - t0)
    if result.blocked:
        log.error("GitHub refused the request for %s (rate limited or forbidden)", args.username)
        return 2
    if result.error is not None:
        log.error("Could not list the users followed by %s: %s", args.username, result.error)
        return 1
    log.info("Catalogue: %d feed(s) saved under %s", len(result.feeds), settings.data_dir.resolve())
    return 0


if __name__ == "__main__":
    sys.exit(main())
