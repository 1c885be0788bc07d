"""
Bounded worker pool shared by every crawling stage.

Each task is wrapped so that whatever it raises becomes a failed
:class:`FetchOutcome`; the pool never lets one item take down its siblings
or the caller.  Progress and errors flow through one per-item callback::

    callback(error, result, index, total, item)

``index`` is the item's position in the input, not its completion order.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Iterable, Sequence, TypeVar

log = logging.getLogger("gitfeed")

T = TypeVar("T")

ItemCallback = Callable[[BaseException | None, Any, int, int, Any], Any]


@dataclass
class FetchOutcome(Generic[T]):
    """Result of one unit of work: a value or the error that replaced it."""

    index: int
    item: Any
    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, index: int, item: Any, value: T) -> "FetchOutcome[T]":
        return cls(index=index, item=item, value=value)

    @classmethod
    def failure(cls, index: int, item: Any, error: BaseException) -> "FetchOutcome[T]":
        return cls(index=index, item=item, error=error)


@dataclass
class BatchReport:
    """Every outcome of a batch, sorted by input index."""

    total: int
    outcomes: list[FetchOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)

    @property
    def failures(self) -> list[FetchOutcome]:
        return [o for o in self.outcomes if not o.ok]

    def summary(self) -> str:
        return f"{self.succeeded}/{self.total} succeeded, {self.failed} failed"


class WorkerPool:
    """Fixed-width thread pool with a ``submit``/``join`` contract."""

    def __init__(
        self,
        width: int,
        total: int = 0,
        callback: ItemCallback | None = None,
        name: str = "gitfeed",
    ) -> None:
        if width < 1:
            raise ValueError("pool width must be at least 1")
        self.width = width
        self.total = total
        self.callback = callback
        self._executor = ThreadPoolExecutor(max_workers=width, thread_name_prefix=name)
        self._futures: list[Future] = []
        self._outcomes: list[FetchOutcome] = []
        self._lock = threading.Lock()
        self._closed = False

    def __enter__(self) -> "WorkerPool":
        return self

    def __exit__(self, *exc_info) -> None:
        self.join()

    def submit(self, task: Callable[[Any], Any], item: Any, index: int) -> None:
        """Queue ``task(item)``; *index* identifies the item in its input."""
        if self._closed:
            raise RuntimeError("cannot submit to a joined pool")
        self._futures.append(self._executor.submit(self._run, task, item, index))

    def join(self) -> list[FetchOutcome]:
        """Block until every submitted task has finished; never raises."""
        if not self._closed:
            self._closed = True
            self._executor.shutdown(wait=True)
        return sorted(self._outcomes, key=lambda o: o.index)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _run(self, task: Callable[[Any], Any], item: Any, index: int) -> None:
        try:
            outcome = FetchOutcome.success(index, item, task(item))
        except Exception as exc:
            outcome = FetchOutcome.failure(index, item, exc)
        except BaseException as exc:
            # counted like any failure, then left on the future
            self._record(FetchOutcome.failure(index, item, exc))
            raise
        self._record(outcome)

    def _record(self, outcome: FetchOutcome) -> None:
        with self._lock:
            self._outcomes.append(outcome)
            self._notify(outcome)

    def _notify(self, outcome: FetchOutcome) -> None:
        if self.callback is None:
            return
        try:
            self.callback(outcome.error, outcome.value, outcome.index, self.total, outcome.item)
        except Exception:
            log.exception("Progress callback failed for item %d", outcome.index)


def run_batch(
    items: Sequence[Any] | Iterable[Any],
    task: Callable[[Any], Any],
    width: int,
    callback: ItemCallback | None = None,
    name: str = "gitfeed",
) -> BatchReport:
    """Run *task* over every item with at most *width* in flight.

    Returns once all items are done, successes and failures alike.
    """
    items = list(items)
    total = len(items)
    pool = WorkerPool(max(1, min(width, total or 1)), total=total, callback=callback, name=name)
    with pool:
        for index, item in enumerate(items):
            pool.submit(task, item, index)
    return BatchReport(total=total, outcomes=pool.join())
