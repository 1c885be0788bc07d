"""
Main entry point for the gitfeed package.

Allows running the crawler as: python -m gitfeed <username>
"""

import sys

from gitfeed.cli import main

if __name__ == "__main__":
    sys.exit(main())
