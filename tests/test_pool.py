"""
Tests for the bounded worker pool and its outcome bookkeeping.
"""

import threading
import time
import unittest

from gitfeed.core.pool import BatchReport, FetchOutcome, WorkerPool, run_batch
from gitfeed.errors import NetworkFailure


class TestRunBatch(unittest.TestCase):
    def test_error_isolation(self):
        failing = {2, 5, 7}

        def task(n):
            if n in failing:
                raise NetworkFailure(f"https://example.com/{n}", "boom")
            return n * 10

        report = run_batch(range(10), task, width=4)
        self.assertEqual(report.total, 10)
        self.assertEqual(report.succeeded, 7)
        self.assertEqual(report.failed, 3)
        self.assertEqual(sorted(o.item for o in report.failures), [2, 5, 7])
        self.assertEqual([o.index for o in report.outcomes], list(range(10)))
        self.assertEqual(report.outcomes[3].value, 30)

    def test_unexpected_exceptions_are_captured_too(self):
        def task(n):
            if n == 1:
                raise KeyError("oops")
            return n

        report = run_batch([0, 1, 2], task, width=2)
        self.assertEqual(report.failed, 1)
        self.assertIsInstance(report.outcomes[1].error, KeyError)

    def test_base_exceptions_still_counted(self):
        def task(n):
            if n == 1:
                raise SystemExit("worker asked to stop")
            return n

        report = run_batch([0, 1, 2], task, width=2)
        self.assertEqual(report.total, 3)
        self.assertEqual(len(report.outcomes), 3)
        self.assertEqual(report.failed, 1)
        self.assertIsInstance(report.outcomes[1].error, SystemExit)

    def test_callback_receives_every_item(self):
        seen = []

        def callback(error, result, index, total, item):
            seen.append((error is None, result, index, total, item))

        items = ["a", "b", "c", "d"]
        run_batch(items, str.upper, width=2, callback=callback)
        self.assertEqual(len(seen), 4)
        for ok, result, index, total, item in seen:
            self.assertTrue(ok)
            self.assertEqual(total, 4)
            self.assertEqual(items[index], item)
            self.assertEqual(result, item.upper())

    def test_callback_gets_error_for_failures(self):
        errors = []

        def task(n):
            raise ValueError(str(n))

        run_batch([1, 2], task, width=2, callback=lambda e, r, i, t, item: errors.append((e, r)))
        self.assertEqual(len(errors), 2)
        for error, result in errors:
            self.assertIsInstance(error, ValueError)
            self.assertIsNone(result)

    def test_broken_callback_does_not_break_batch(self):
        def callback(*args):
            raise RuntimeError("reporter crashed")

        report = run_batch(range(5), lambda n: n, width=3, callback=callback)
        self.assertEqual(report.succeeded, 5)

    def test_width_is_respected(self):
        lock = threading.Lock()
        state = {"running": 0, "peak": 0}

        def task(n):
            with lock:
                state["running"] += 1
                state["peak"] = max(state["peak"], state["running"])
            time.sleep(0.02)
            with lock:
                state["running"] -= 1
            return n

        report = run_batch(range(12), task, width=3)
        self.assertEqual(report.succeeded, 12)
        self.assertLessEqual(state["peak"], 3)

    def test_empty_batch(self):
        report = run_batch([], lambda n: n, width=5)
        self.assertEqual(report.total, 0)
        self.assertEqual(report.outcomes, [])
        self.assertEqual(report.summary(), "0/0 succeeded, 0 failed")


class TestWorkerPool(unittest.TestCase):
    def test_submit_after_join_rejected(self):
        pool = WorkerPool(2)
        pool.join()
        with self.assertRaises(RuntimeError):
            pool.submit(lambda n: n, 1, 0)

    def test_invalid_width(self):
        with self.assertRaises(ValueError):
            WorkerPool(0)

    def test_join_returns_outcomes_in_input_order(self):
        pool = WorkerPool(4, total=3)
        for index, delay in enumerate((0.03, 0.01, 0.0)):
            pool.submit(lambda d: time.sleep(d) or d, delay, index)
        outcomes = pool.join()
        self.assertEqual([o.index for o in outcomes], [0, 1, 2])
        self.assertTrue(all(o.ok for o in outcomes))


class TestOutcome(unittest.TestCase):
    def test_success_and_failure(self):
        ok = FetchOutcome.success(0, "item", 42)
        bad = FetchOutcome.failure(1, "item", ValueError("x"))
        self.assertTrue(ok.ok)
        self.assertFalse(bad.ok)
        report = BatchReport(total=2, outcomes=[ok, bad])
        self.assertEqual(report.summary(), "1/2 succeeded, 1 failed")


if __name__ == "__main__":
    unittest.main()
