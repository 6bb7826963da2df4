#!/usr/bin/env python3
"""
Outcome Correlator

Resolves the receipt for every matched transaction concurrently. A receipt
that cannot be fetched drops only its own match; matches are never retried.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, Optional

from ledger_types import FetchError, MatchEvent, OutcomeRecord

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 20


@dataclass
class ResolvedMatch:
    event: MatchEvent
    outcome: OutcomeRecord


class OutcomeCorrelator:
    def __init__(self, ledger_client, max_workers: int = DEFAULT_MAX_WORKERS):
        self.ledger_client = ledger_client
        self.max_workers = max(1, int(max_workers))

    def _fetch_outcome(self, tx_hash: str) -> Optional[OutcomeRecord]:
        try:
            return self.ledger_client.get_outcome(tx_hash)
        except FetchError as exc:
            logger.error(f"Error fetching receipt for {tx_hash}: {exc}")
        except Exception as exc:
            logger.exception(f"Unexpected error fetching receipt for {tx_hash}: {exc}")
        return None

    def fetch_outcomes(self, tx_hashes: List[str]) -> Dict[str, Optional[OutcomeRecord]]:
        if not tx_hashes:
            return {}
        workers = min(self.max_workers, len(tx_hashes))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="receipt-fetch") as executor:
            outcomes = list(executor.map(self._fetch_outcome, tx_hashes))
        return dict(zip(tx_hashes, outcomes))

    def correlate(self, events: List[MatchEvent]) -> List[ResolvedMatch]:
        """Pair events with their receipts, keeping event order and dropping unresolved ones"""
        if not events:
            return []

        distinct_hashes = list(dict.fromkeys(event.transaction.tx_hash for event in events))
        outcomes = self.fetch_outcomes(distinct_hashes)

        resolved = []
        for event in events:
            outcome = outcomes.get(event.transaction.tx_hash)
            if outcome is None:
                logger.warning(
                    "Dropping match without receipt | block=%s | tx=%s | address=%s",
                    event.transaction.block_number,
                    event.transaction.tx_hash,
                    event.address,
                )
                continue
            resolved.append(ResolvedMatch(event=event, outcome=outcome))
        return resolved
