from batch_fetcher import BlockFetchResult
from fakes import ADDR_A, ADDR_B, ADDR_Y, ADDR_Z, make_tx
from ledger_types import Block
from matcher import match_block, match_results
from watch_set import WatchSet


def test_matches_sender_or_recipient_in_transaction_order():
    watch_set = WatchSet([ADDR_A, ADDR_B])
    block = Block(501, [
        make_tx("tx1", ADDR_A, ADDR_Z, 501),
        make_tx("tx2", ADDR_Y, ADDR_B, 501),
        make_tx("tx3", ADDR_Y, ADDR_Z, 501),
    ])

    events = match_block(block, watch_set)

    assert [e.transaction.tx_hash for e in events] == ["tx1", "tx2"]
    assert [e.address for e in events] == [ADDR_A, ADDR_B]


def test_transaction_matching_two_entries_yields_one_event():
    watch_set = WatchSet([ADDR_A, ADDR_B])
    block = Block(7, [make_tx("tx1", ADDR_B, ADDR_A, 7)])

    events = match_block(block, watch_set)

    assert len(events) == 1
    assert events[0].address == ADDR_A


def test_matching_ignores_case():
    watch_set = WatchSet([ADDR_A.upper().replace("0X", "0x")])
    block = Block(7, [make_tx("tx1", ADDR_Y, "0x" + "A" * 40, 7)])

    events = match_block(block, watch_set)

    assert [e.address for e in events] == [ADDR_A]


def test_contract_creation_matches_on_sender_only():
    watch_set = WatchSet([ADDR_A])
    block = Block(7, [
        make_tx("tx1", ADDR_A, None, 7),
        make_tx("tx2", ADDR_Y, None, 7),
    ])

    events = match_block(block, watch_set)

    assert [e.transaction.tx_hash for e in events] == ["tx1"]


def test_missing_blocks_contribute_nothing():
    watch_set = WatchSet([ADDR_A])
    results = [
        BlockFetchResult(height=1, block=Block(1, [make_tx("tx1", ADDR_A, ADDR_Z, 1)])),
        BlockFetchResult(height=2, error=RuntimeError("unavailable")),
        BlockFetchResult(height=3, block=Block(3, [make_tx("tx3", ADDR_Z, ADDR_A, 3)])),
    ]

    events = match_results(results, watch_set)

    assert [e.transaction.tx_hash for e in events] == ["tx1", "tx3"]
