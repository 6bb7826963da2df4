#!/usr/bin/env python3
"""
Ledger data types shared by the scanning engine.

Blocks, transactions and receipts are converted from the raw web3 responses
into these plain dataclasses at the ledger client boundary, so the rest of
the engine never touches AttributeDicts or HexBytes.
"""

from dataclasses import dataclass, field
from typing import List, Optional


class LedgerError(Exception):
    """Base class for ledger client failures"""
    pass


class ConnectivityError(LedgerError):
    """Raised when the chain head cannot be queried from any endpoint"""
    pass


class FetchError(LedgerError):
    """Raised when a single block or receipt cannot be retrieved"""
    pass


class ConfigurationError(Exception):
    """Raised for configuration problems that must stop the monitor at startup"""
    pass


def normalize_address(address: str) -> str:
    """Case-fold an address string for comparison"""
    return address.strip().lower()


@dataclass(frozen=True)
class Transaction:
    tx_hash: str
    sender: str
    recipient: Optional[str]  # None for contract creation
    value: int
    block_number: int


@dataclass(frozen=True)
class Block:
    number: int
    transactions: List[Transaction] = field(default_factory=list)


@dataclass(frozen=True)
class OutcomeRecord:
    tx_hash: str
    success: bool
    gas_used: int


@dataclass(frozen=True)
class MatchEvent:
    transaction: Transaction
    address: str


@dataclass(frozen=True)
class NotificationMessage:
    subject: str
    body: str
