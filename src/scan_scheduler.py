#!/usr/bin/env python3
"""
Scan Scheduler

Drives incremental block scanning for the watch set:
1. Admit the cycle through the single-flight guard
2. Query the chain head; the first cycle only records it as the starting point
3. Scan at most max_blocks_per_cycle new blocks in concurrent sub-batches
4. Match transactions, resolve receipts and dispatch one notification per match
5. Advance the cursor and decide between a catch-up cycle and the poll interval

Every failure inside a cycle is logged and leaves the cursor where it was, so
the same range is retried on the next tick.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from batch_fetcher import BatchFetcher, DEFAULT_BATCH_WIDTH
from matcher import match_result
from messages import activity_message, started_message
from outcome_correlator import DEFAULT_MAX_WORKERS, OutcomeCorrelator
from scan_state import ScanState
from watch_set import WatchSet

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 60
DEFAULT_MAX_BLOCKS_PER_CYCLE = 100
DEFAULT_CATCHUP_DELAY = 1.0

# cycle outcomes
REJECTED = "rejected"
INITIALIZED = "initialized"
IDLE = "idle"
SCANNED = "scanned"
FAILED = "failed"


@dataclass
class CycleResult:
    status: str
    head: Optional[int] = None
    start_block: Optional[int] = None
    end_block: Optional[int] = None
    blocks_scanned: int = 0
    missing_blocks: int = 0
    matches: int = 0
    notifications: int = 0
    follow_up: bool = False


class ScanScheduler:
    def __init__(
        self,
        ledger_client,
        watch_set: WatchSet,
        sink,
        network_name: str = "Avalanche C-Chain",
        currency_symbol: str = "AVAX",
        explorer_tx_url: str = "https://snowtrace.io/tx/",
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_blocks_per_cycle: int = DEFAULT_MAX_BLOCKS_PER_CYCLE,
        block_batch_size: int = DEFAULT_BATCH_WIDTH,
        catchup_delay: float = DEFAULT_CATCHUP_DELAY,
        receipt_workers: int = DEFAULT_MAX_WORKERS,
        state: Optional[ScanState] = None,
    ):
        if max_blocks_per_cycle < 1:
            raise ValueError("max_blocks_per_cycle must be at least 1")

        self.ledger_client = ledger_client
        self.watch_set = watch_set
        self.sink = sink
        self.network_name = network_name
        self.currency_symbol = currency_symbol
        self.explorer_tx_url = explorer_tx_url
        self.poll_interval = poll_interval
        self.max_blocks_per_cycle = int(max_blocks_per_cycle)
        self.catchup_delay = catchup_delay

        self.state = state or ScanState()
        self.fetcher = BatchFetcher(ledger_client, block_batch_size)
        self.correlator = OutcomeCorrelator(ledger_client, receipt_workers)

        self.running = False
        self._wake = threading.Event()

    @property
    def cursor(self) -> Optional[int]:
        return self.state.cursor

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    def run_cycle(self) -> CycleResult:
        if not self.state.try_begin_cycle():
            logger.info("Previous check still in progress, skipping...")
            return CycleResult(status=REJECTED)

        try:
            return self._run_admitted_cycle()
        except Exception as exc:
            logger.exception(f"Error checking for activity (cursor={self.state.cursor}): {exc}")
            return CycleResult(status=FAILED)
        finally:
            self.state.end_cycle()

    def _run_admitted_cycle(self) -> CycleResult:
        head = self.ledger_client.current_height()

        if not self.state.initialized:
            self.state.initialize(head)
            logger.info(f"Starting monitoring from block {head}")
            message = started_message(self.watch_set, self.network_name, head)
            self.sink.deliver(message.subject, message.body)
            return CycleResult(status=INITIALIZED, head=head)

        cursor = self.state.cursor
        if head <= cursor:
            logger.info(f"No new blocks. Current: {head}, Last checked: {cursor}")
            return CycleResult(status=IDLE, head=head)

        blocks_to_process = min(head - cursor, self.max_blocks_per_cycle)
        start_block = cursor + 1
        end_block = cursor + blocks_to_process
        logger.info(f"Checking blocks {start_block} to {end_block} (head {head})")

        result = CycleResult(status=SCANNED, head=head, start_block=start_block, end_block=end_block)
        self._process_range(start_block, end_block, result)

        self.state.advance(blocks_to_process)
        result.follow_up = self.state.cursor < head

        logger.info(
            "Cycle complete | blocks: %s | missing: %s | matches: %s | notifications: %s | last block: %s",
            result.blocks_scanned,
            result.missing_blocks,
            result.matches,
            result.notifications,
            self.state.cursor,
        )
        return result

    def _process_range(self, start_block: int, end_block: int, result: CycleResult):
        for fetched in self.fetcher.iter_range(start_block, end_block):
            result.blocks_scanned += 1
            if fetched.missing:
                result.missing_blocks += 1

            events = match_result(fetched, self.watch_set)
            if not events:
                continue
            result.matches += len(events)

            for resolved in self.correlator.correlate(events):
                event = resolved.event
                logger.info(
                    f"Activity detected in block {fetched.height} for contract {event.address}: "
                    f"{event.transaction.tx_hash}"
                )
                message = activity_message(
                    event.address,
                    event.transaction,
                    resolved.outcome,
                    self.currency_symbol,
                    self.explorer_tx_url,
                )
                self.sink.deliver(message.subject, message.body)
                result.notifications += 1

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def next_delay(self, result: CycleResult) -> float:
        if result.follow_up:
            return self.catchup_delay
        return self.poll_interval

    def run_forever(self):
        """Run cycles until stop() is called; one pending wait at a time"""
        self.running = True
        self._wake.clear()
        logger.info(f"Starting continuous monitoring with interval {self.poll_interval}s")

        while self.running:
            result = self.run_cycle()
            if not self.running:
                break

            delay = self.next_delay(result)
            if result.follow_up:
                remaining = result.head - self.state.cursor
                logger.info(f"More blocks to check ({remaining} remaining), next cycle in {delay}s")
            else:
                logger.debug(f"Sleeping {delay}s before next cycle")
            self._wake.wait(delay)

        logger.info("Monitoring loop stopped")

    def stop(self):
        self.running = False
        self._wake.set()
