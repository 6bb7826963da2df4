#!/usr/bin/env python3
"""
Ledger Client

JSON-RPC access to an EVM chain through the failover provider pool. Raw
web3 responses are converted into the engine's ledger types here, and every
failure is reported as either ConnectivityError (head height) or FetchError
(a single block or receipt).
"""

import logging
from typing import Any, Optional

from web3 import Web3

from ledger_types import Block, ConnectivityError, FetchError, OutcomeRecord, Transaction
from rpc_failover import EVMProviderPool

logger = logging.getLogger(__name__)


def _field(raw: Any, name: str, default: Any = None) -> Any:
    # web3 returns AttributeDicts, test doubles may hand in plain dicts
    if hasattr(raw, "get"):
        return raw.get(name, default)
    return getattr(raw, name, default)


def _to_hex(value: Any) -> str:
    if isinstance(value, str):
        return value if value.startswith("0x") else f"0x{value}"
    return Web3.to_hex(value)


def build_transaction(raw_tx: Any, block_number: int) -> Transaction:
    recipient = _field(raw_tx, "to")
    tx_block = _field(raw_tx, "blockNumber")
    return Transaction(
        tx_hash=_to_hex(_field(raw_tx, "hash")),
        sender=_field(raw_tx, "from"),
        recipient=recipient if recipient else None,
        value=int(_field(raw_tx, "value", 0) or 0),
        block_number=int(tx_block) if tx_block is not None else block_number,
    )


def build_block(raw_block: Any, height: int) -> Block:
    transactions = []
    for raw_tx in _field(raw_block, "transactions", []) or []:
        if isinstance(raw_tx, (bytes, str)):
            # hash-only listing; the block was fetched without full transactions
            raise FetchError(f"Block {height} returned transaction hashes instead of transactions")
        transactions.append(build_transaction(raw_tx, height))
    number = _field(raw_block, "number")
    return Block(number=int(number) if number is not None else height, transactions=transactions)


def build_outcome(raw_receipt: Any, tx_hash: str) -> OutcomeRecord:
    status = _field(raw_receipt, "status")
    return OutcomeRecord(
        tx_hash=tx_hash,
        success=status == 1,
        gas_used=int(_field(raw_receipt, "gasUsed", 0) or 0),
    )


class LedgerClient:
    """Head height, block and receipt retrieval for the scanning engine."""

    def __init__(self, pool: EVMProviderPool):
        self.pool = pool

    def current_height(self) -> int:
        try:
            height = self.pool.with_web3(lambda web3: web3.eth.block_number)
        except ConnectionError as exc:
            raise ConnectivityError(f"Failed to query chain head: {exc}") from exc
        if height is None:
            raise ConnectivityError("Could not determine latest block number")
        return int(height)

    def get_block(self, height: int) -> Block:
        try:
            raw_block = self.pool.with_web3(
                lambda web3: web3.eth.get_block(height, full_transactions=True)
            )
        except ConnectionError as exc:
            raise FetchError(f"Failed to fetch block {height}: {exc}") from exc
        if raw_block is None:
            raise FetchError(f"Block {height} not available")
        return build_block(raw_block, height)

    def get_outcome(self, tx_hash: str) -> OutcomeRecord:
        try:
            raw_receipt = self.pool.with_web3(lambda web3: web3.eth.get_transaction_receipt(tx_hash))
        except ConnectionError as exc:
            raise FetchError(f"Failed to fetch receipt for {tx_hash}: {exc}") from exc
        if raw_receipt is None:
            raise FetchError(f"Receipt for {tx_hash} not available")
        return build_outcome(raw_receipt, tx_hash)

    # helpers used by the probe command

    def chain_id(self) -> Optional[int]:
        try:
            return int(self.pool.with_web3(lambda web3: web3.eth.chain_id))
        except ConnectionError as exc:
            raise ConnectivityError(f"Failed to query chain id: {exc}") from exc

    def code_size(self, address: str) -> int:
        checksum = Web3.to_checksum_address(address)
        try:
            code = self.pool.with_web3(lambda web3: web3.eth.get_code(checksum))
        except ConnectionError as exc:
            raise FetchError(f"Failed to fetch code for {address}: {exc}") from exc
        return len(code or b"")
