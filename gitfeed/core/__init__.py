"""Core crawling stages – cache, fetch client, worker pool and crawlers."""

from gitfeed.core.pool import BatchReport, FetchOutcome, WorkerPool, run_batch
from gitfeed.core.cache import CacheStore
from gitfeed.core.fetch import FetchResponse, HttpClient
from gitfeed.core.pipeline import CatalogueResult, FeedPipeline, generate_catalogue

__all__ = [
    "BatchReport",
    "CacheStore",
    "CatalogueResult",
    "FeedPipeline",
    "FetchOutcome",
    "FetchResponse",
    "HttpClient",
    "WorkerPool",
    "generate_catalogue",
    "run_batch",
]
