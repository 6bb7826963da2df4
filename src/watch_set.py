#!/usr/bin/env python3
"""
Watch Set

Fixed, ordered collection of normalized addresses to monitor. Order is the
configured order with duplicates removed, which makes first-match selection
deterministic for the lifetime of the process.
"""

import logging
from typing import Iterable, Iterator, Optional, Tuple

from ledger_types import normalize_address

logger = logging.getLogger(__name__)

class WatchSet:
    def __init__(self, addresses: Iterable[str]):
        ordered = []
        seen = set()
        for raw in addresses:
            if raw is None:
                continue
            address = normalize_address(raw)
            if not address:
                continue
            if address in seen:
                logger.debug(f"Ignoring duplicate watch address {address}")
                continue
            seen.add(address)
            ordered.append(address)

        self._addresses: Tuple[str, ...] = tuple(ordered)
        self._members = frozenset(ordered)

    def __iter__(self) -> Iterator[str]:
        return iter(self._addresses)

    def __len__(self) -> int:
        return len(self._addresses)

    def first_match(self, sender: Optional[str], recipient: Optional[str]) -> Optional[str]:
        """Return the first watched address equal to the sender or the recipient"""
        sender = normalize_address(sender) if sender else None
        recipient = normalize_address(recipient) if recipient else None
        if sender not in self._members and recipient not in self._members:
            return None
        for address in self._addresses:
            if address == recipient or address == sender:
                return address
        return None

    def describe(self) -> str:
        return "\n".join(self._addresses)
