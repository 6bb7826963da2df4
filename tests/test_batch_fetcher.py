import threading

import pytest

from batch_fetcher import BatchFetcher
from fakes import FakeLedger
from ledger_types import Block


class TestBatchFetcher:

    def test_visits_every_height_once_in_order(self):
        ledger = FakeLedger()
        fetcher = BatchFetcher(ledger, batch_width=4)

        results = fetcher.fetch_range(501, 510)

        assert [r.height for r in results] == list(range(501, 511))
        assert all(not r.missing for r in results)
        assert sorted(ledger.block_requests) == list(range(501, 511))

    def test_failed_block_becomes_missing_marker(self):
        ledger = FakeLedger(failing_blocks={505})
        fetcher = BatchFetcher(ledger, batch_width=10)

        results = fetcher.fetch_range(501, 510)

        assert [r.height for r in results] == list(range(501, 511))
        missing = [r.height for r in results if r.missing]
        assert missing == [505]
        assert results[4].error is not None

    def test_unexpected_exception_is_contained(self):
        class BrokenLedger(FakeLedger):
            def get_block(self, height):
                if height == 3:
                    raise RuntimeError("decode failure")
                return super().get_block(height)

        fetcher = BatchFetcher(BrokenLedger(), batch_width=2)

        results = fetcher.fetch_range(1, 4)

        assert [r.missing for r in results] == [False, False, True, False]

    def test_sub_batches_are_fetched_one_at_a_time(self):
        ledger = FakeLedger()
        fetcher = BatchFetcher(ledger, batch_width=3)

        results = fetcher.fetch_range(1, 8)

        assert [r.height for r in results] == list(range(1, 9))
        requests = ledger.block_requests
        assert set(requests[0:3]) == {1, 2, 3}
        assert set(requests[3:6]) == {4, 5, 6}
        assert set(requests[6:8]) == {7, 8}

    def test_sub_batch_is_fetched_concurrently(self):
        width = 4
        barrier = threading.Barrier(width, timeout=5)

        class BarrierLedger(FakeLedger):
            def get_block(self, height):
                # only passes if the whole sub-batch is in flight at once
                barrier.wait()
                return Block(number=height)

        fetcher = BatchFetcher(BarrierLedger(), batch_width=width)

        results = fetcher.fetch_range(1, width)

        assert [r.missing for r in results] == [False] * width

    def test_results_are_yielded_lazily_per_sub_batch(self):
        ledger = FakeLedger()
        fetcher = BatchFetcher(ledger, batch_width=5)

        iterator = fetcher.iter_range(1, 20)
        first = next(iterator)

        assert first.height == 1
        assert sorted(ledger.block_requests) == [1, 2, 3, 4, 5]
        iterator.close()

    def test_empty_range(self):
        ledger = FakeLedger()
        fetcher = BatchFetcher(ledger)

        assert fetcher.fetch_range(10, 9) == []
        assert ledger.block_requests == []

    def test_rejects_zero_width(self):
        with pytest.raises(ValueError):
            BatchFetcher(FakeLedger(), batch_width=0)
