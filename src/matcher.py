#!/usr/bin/env python3
import logging
from typing import Iterable, List

from batch_fetcher import BlockFetchResult
from ledger_types import Block, MatchEvent
from watch_set import WatchSet

logger = logging.getLogger(__name__)


def match_block(block: Block, watch_set: WatchSet) -> List[MatchEvent]:
    """Match events for one block, in transaction order, at most one per transaction"""
    events = []
    for tx in block.transactions:
        address = watch_set.first_match(tx.sender, tx.recipient)
        if address is not None:
            events.append(MatchEvent(transaction=tx, address=address))
    return events


def match_result(result: BlockFetchResult, watch_set: WatchSet) -> List[MatchEvent]:
    if result.missing:
        logger.info(f"Block {result.height} unavailable, no transactions checked")
        return []
    return match_block(result.block, watch_set)


def match_results(results: Iterable[BlockFetchResult], watch_set: WatchSet) -> List[MatchEvent]:
    events = []
    for result in results:
        events.extend(match_result(result, watch_set))
    return events
