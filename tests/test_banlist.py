import io

import pytest

from multirole.banlist import (
    BANLIST_HASH_MAGIC,
    Banlist,
    BanlistParseError,
    parse_banlists,
    salt,
)


def test_empty_input_gives_no_banlists():
    assert parse_banlists([]) == {}


def test_list_without_cards_is_dropped():
    assert parse_banlists(io.StringIO("!Empty list\n#comment\n")) == {}


def test_single_list_hash_and_contents():
    text = "!My list\n12345 0\n67890 2 --limited\n"
    result = parse_banlists(io.StringIO(text))
    expected_hash = salt(salt(BANLIST_HASH_MAGIC, 12345, 0), 67890, 2)
    assert list(result) == [expected_hash]
    assert result[expected_hash] == Banlist(False, {12345: 0, 67890: 2})


def test_whitelist_flag_is_set_and_reset():
    text = "!A\n$whitelist\n100 3\n!B\n200 1\n"
    result = parse_banlists(text.splitlines())
    by_codes = {tuple(b.codes): b.whitelist for b in result.values()}
    assert by_codes == {(100,): True, (200,): False}


def test_first_list_with_same_hash_wins():
    text = "!First\n$whitelist\n100 3\n!Second\n100 3\n"
    result = parse_banlists(text.splitlines())
    assert len(result) == 1
    assert next(iter(result.values())).whitelist is True


def test_salt_stays_32_bit_and_xors_linearly():
    a = salt(0, 89631139, 1)
    b = salt(BANLIST_HASH_MAGIC, 89631139, 1)
    assert 0 <= b < 2**32
    assert a ^ BANLIST_HASH_MAGIC == b


def test_missing_separator_reports_line():
    with pytest.raises(BanlistParseError, match="line 2: Card code separator not found"):
        parse_banlists(["!List", "12345"])


def test_zero_code_rejected():
    with pytest.raises(BanlistParseError, match="cannot be 0"):
        parse_banlists(["0 3"])


def test_missing_count_rejected():
    with pytest.raises(BanlistParseError, match="Could not find count begin"):
        parse_banlists(["123 abc"])


def test_bad_count_rejected():
    with pytest.raises(BanlistParseError, match="Could not parse count"):
        parse_banlists(["123 --"])


def test_code_overflow_rejected():
    with pytest.raises(BanlistParseError, match="Could not parse code"):
        parse_banlists(["99999999999 1"])


def test_negative_count_is_accepted():
    result = parse_banlists(["!L", "555 -1"])
    assert list(result.values())[0].codes == {555: -1}