#!/usr/bin/env python3
"""
Batch Fetcher

Retrieves an inclusive block range in consecutive sub-batches. Each
sub-batch is fetched concurrently on a thread pool and handed back in height
order; a failed fetch becomes a missing-block result instead of aborting the
range.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterator, List, Optional

from ledger_types import Block, FetchError

logger = logging.getLogger(__name__)

DEFAULT_BATCH_WIDTH = 10


@dataclass
class BlockFetchResult:
    height: int
    block: Optional[Block] = None
    error: Optional[Exception] = None

    @property
    def missing(self) -> bool:
        return self.block is None


class BatchFetcher:
    def __init__(self, ledger_client, batch_width: int = DEFAULT_BATCH_WIDTH):
        if batch_width < 1:
            raise ValueError("batch_width must be at least 1")
        self.ledger_client = ledger_client
        self.batch_width = int(batch_width)

    def _fetch_one(self, height: int) -> BlockFetchResult:
        try:
            return BlockFetchResult(height=height, block=self.ledger_client.get_block(height))
        except FetchError as exc:
            logger.error(f"Error fetching block {height}: {exc}")
            return BlockFetchResult(height=height, error=exc)
        except Exception as exc:
            logger.exception(f"Unexpected error fetching block {height}: {exc}")
            return BlockFetchResult(height=height, error=exc)

    def fetch_sub_batch(self, executor: ThreadPoolExecutor, heights: List[int]) -> List[BlockFetchResult]:
        # executor.map yields in submission order, so results come back sorted by height
        return list(executor.map(self._fetch_one, heights))

    def iter_range(self, start: int, end: int) -> Iterator[BlockFetchResult]:
        """Yield one result per height in [start, end], in increasing order"""
        if start > end:
            return

        with ThreadPoolExecutor(max_workers=self.batch_width, thread_name_prefix="block-fetch") as executor:
            batch_start = start
            while batch_start <= end:
                batch_end = min(batch_start + self.batch_width - 1, end)
                heights = list(range(batch_start, batch_end + 1))
                logger.debug(f"Fetching blocks {batch_start} → {batch_end}")

                results = self.fetch_sub_batch(executor, heights)
                missing = sum(1 for result in results if result.missing)
                if missing:
                    logger.warning(f"{missing} of {len(heights)} blocks unavailable in {batch_start} → {batch_end}")

                for result in results:
                    yield result

                batch_start = batch_end + 1

    def fetch_range(self, start: int, end: int) -> List[BlockFetchResult]:
        return list(self.iter_range(start, end))
