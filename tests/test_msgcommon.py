import pytest

from multirole.msgcommon import (
    SERVER_HANDSHAKE,
    SERVER_VERSION,
    AllowedCards,
    Boundary,
    ClientVersion,
    DeckLimits,
    ExtraRule,
    HostInfo,
    or_duel_flags,
)


def _sample_host_info(**overrides):
    fields = dict(
        banlist_hash=0x7DFCEE6A,
        allowed=AllowedCards.TCG_ONLY,
        mode=1,
        duel_rule=5,
        dont_check_deck_content=1,
        dont_shuffle_deck=0,
        starting_lp=8000,
        starting_draw_count=5,
        draw_count_per_turn=1,
        time_limit_in_seconds=180,
        duel_flags_high=0x12,
        handshake=SERVER_HANDSHAKE,
        version=SERVER_VERSION,
        t0_count=2,
        t1_count=-1,
        best_of=3,
        duel_flags_low=0xABCDEF01,
        forb=-7,
        extra_rules=int(ExtraRule.BATTLE_CITY | ExtraRule.DECK_MASTER),
        limits=DeckLimits(Boundary(40, 60), Boundary(0, 15), Boundary(0, 15)),
    )
    fields.update(overrides)
    return HostInfo(**fields)


def test_server_version_bytes():
    assert SERVER_VERSION.pack() == bytes([41, 0, 11, 0])


def test_client_version_round_trip():
    v = ClientVersion(1, 2, 3, 4)
    assert ClientVersion.unpack(v.pack()) == v


def test_client_version_unpack_too_short():
    with pytest.raises(ValueError):
        ClientVersion.unpack(b"\x01\x02")


def test_host_info_packed_size():
    assert len(_sample_host_info().pack()) == 68
    assert HostInfo.SIZE == 68


def test_host_info_round_trip():
    info = _sample_host_info()
    assert HostInfo.unpack(info.pack()) == info


def test_host_info_layout_places_fields():
    info = _sample_host_info()
    data = info.pack()
    assert data[0:4] == (0x7DFCEE6A).to_bytes(4, "little")
    assert data[28:32] == SERVER_VERSION.pack()
    assert data[24:28] == SERVER_HANDSHAKE.to_bytes(4, "little")


def test_host_info_unpack_too_short():
    with pytest.raises(ValueError):
        HostInfo.unpack(bytes(10))


def test_or_duel_flags_splits_back():
    combined = or_duel_flags(0x12, 0xABCDEF01)
    assert combined >> 32 == 0x12
    assert combined & 0xFFFFFFFF == 0xABCDEF01


def test_host_info_duel_flags_matches_helper():
    info = _sample_host_info()
    assert info.duel_flags() == or_duel_flags(info.duel_flags_high, info.duel_flags_low)


def test_extra_rule_and_allowed_values_survive_round_trip():
    info = _sample_host_info(
        allowed=AllowedCards.ANY, extra_rules=int(ExtraRule.ACTION_DUEL | ExtraRule.SEALED_DUEL)
    )
    back = HostInfo.unpack(info.pack())
    assert back.extra_rules == 0x1001
    assert back.allowed == 4