from fakes import ADDR_A, ADDR_B, ADDR_Y
from watch_set import WatchSet


def test_normalizes_and_deduplicates_in_configured_order():
    watch_set = WatchSet([" " + ADDR_B.upper().replace("0X", "0x"), ADDR_A, ADDR_B, ""])

    assert list(watch_set) == [ADDR_B, ADDR_A]
    assert len(watch_set) == 2


def test_matching_is_case_insensitive():
    watch_set = WatchSet([ADDR_A])

    assert watch_set.first_match("0x" + "A" * 40, None) == ADDR_A
    assert watch_set.first_match(ADDR_B, None) is None


def test_first_match_follows_watch_order():
    watch_set = WatchSet([ADDR_B, ADDR_A])

    assert watch_set.first_match(ADDR_A, ADDR_B) == ADDR_B
    assert watch_set.first_match(ADDR_A, ADDR_Y) == ADDR_A
    assert watch_set.first_match(ADDR_Y, None) is None
    assert watch_set.first_match(None, None) is None


def test_describe_lists_one_address_per_line():
    assert WatchSet([ADDR_A, ADDR_B]).describe() == f"{ADDR_A}\n{ADDR_B}"
