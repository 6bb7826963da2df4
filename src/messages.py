#!/usr/bin/env python3
"""
Notification text for monitor start-up and detected activity.
"""

from datetime import datetime
from typing import Optional

import pytz
from web3 import Web3

from ledger_types import NotificationMessage, OutcomeRecord, Transaction
from watch_set import WatchSet

EASTERN_TZ = pytz.timezone('US/Eastern')


def format_time_et(now: Optional[datetime] = None) -> str:
    if now is None:
        now = datetime.now(pytz.utc)
    elif now.tzinfo is None:
        now = pytz.utc.localize(now)
    return now.astimezone(EASTERN_TZ).strftime('%Y-%m-%d %H:%M:%S %Z')


def format_value(value_wei: int, currency_symbol: str) -> str:
    amount = Web3.from_wei(value_wei, 'ether')
    return f"{amount} {currency_symbol}"


def format_transaction(tx: Transaction, outcome: OutcomeRecord, currency_symbol: str, explorer_tx_url: str) -> str:
    lines = [
        f"Transaction Hash: {tx.tx_hash}",
        f"Block Number: {tx.block_number}",
        f"From: {tx.sender}",
        f"To: {tx.recipient if tx.recipient else 'Contract Creation'}",
        f"Value: {format_value(tx.value, currency_symbol)}",
        f"Gas Used: {outcome.gas_used}",
        f"Status: {'Success' if outcome.success else 'Failed'}",
    ]
    details = "\n".join(lines)
    if explorer_tx_url:
        details += f"\n\nView on Explorer: {explorer_tx_url}{tx.tx_hash}"
    return details


def started_message(watch_set: WatchSet, network_name: str, start_block: int,
                    now: Optional[datetime] = None) -> NotificationMessage:
    body = (
        f"Started monitoring {len(watch_set)} contract(s) on {network_name}:\n"
        f"{watch_set.describe()}\n\n"
        f"Starting from block {start_block}\n"
        f"Started at: {format_time_et(now)}"
    )
    return NotificationMessage(subject="Contract Monitor Started", body=body)


def activity_message(address: str, tx: Transaction, outcome: OutcomeRecord,
                     currency_symbol: str, explorer_tx_url: str) -> NotificationMessage:
    body = f"Monitored Contract: {address}\n\n" + format_transaction(tx, outcome, currency_symbol, explorer_tx_url)
    return NotificationMessage(
        subject=f"Contract Activity Detected - Block {tx.block_number}",
        body=body,
    )
