import struct

import pytest

from multirole.msgcommon import SERVER_VERSION, ClientVersion
from multirole.stocmsg import ChatPlayerType, STOCMsgType
from multirole.stocmsg_factory import (
    ChatMsgType,
    DeckOrCardError,
    JoinError,
    PChangeType,
    STOCMsgFactory,
)


@pytest.fixture
def factory():
    return STOCMsgFactory(2)


def _body(msg):
    data = bytes(msg)
    assert struct.unpack_from("<H", data)[0] == len(data) - 2
    return data[2], data[3:]


def _utf16(raw):
    return raw.decode("utf-16-le").split("\x00", 1)[0]


def test_spectator_type_change(factory):
    kind, body = _body(factory.make_type_change(None, False))
    assert kind == STOCMsgType.TYPE_CHANGE
    assert body == bytes([7])


def test_host_flag_in_type_change(factory):
    _, plain = _body(factory.make_type_change((0, 1), False))
    _, host = _body(factory.make_type_change((0, 1), True))
    assert host[0] == plain[0] | 0x10


def test_seat_encoding_is_unique(factory):
    seats = [(t, s) for t in range(2) for s in range(2)]
    encoded = {_body(factory.make_type_change(p, False))[1][0] for p in seats}
    assert len(encoded) == len(seats)


def test_client_chat_layout(factory):
    kind, body = _body(factory.make_client_chat((0, 0), "Alice", True, "hi there"))
    assert kind == STOCMsgType.CHAT_2
    assert len(body) == 554
    assert body[0] == ChatPlayerType.DUELIST
    assert body[1] == 1
    assert _utf16(body[2:42]) == "Alice"
    assert _utf16(body[42:]) == "hi there"


def test_spectator_chat_type(factory):
    _, body = _body(factory.make_client_chat(None, "Bob", False, "x"))
    assert body[0] == ChatPlayerType.OBS
    assert body[1] == 0


@pytest.mark.parametrize(
    "kind,expected",
    [
        (ChatMsgType.INFO, ChatPlayerType.SYSTEM),
        (ChatMsgType.ERROR, ChatPlayerType.SYSTEM_ERROR),
        (ChatMsgType.SHOUT, ChatPlayerType.SYSTEM_SHOUT),
    ],
)
def test_system_chat_types(factory, kind, expected):
    _, body = _body(factory.make_system_chat(kind, "notice"))
    assert body[0] == expected
    assert _utf16(body[2:42]) == ""
    assert _utf16(body[42:]) == "notice"


def test_long_name_is_truncated(factory):
    _, body = _body(factory.make_player_enter((1, 0), "N" * 30))
    assert len(body) == 42
    assert _utf16(body[:40]) == "N" * 19


def test_player_enter_position_matches_type_change(factory):
    _, enter = _body(factory.make_player_enter((1, 1), "Carol"))
    _, change = _body(factory.make_type_change((1, 1), False))
    assert enter[40] == change[0]
    assert _utf16(enter[:40]) == "Carol"


def test_player_ready_matches_change(factory):
    assert factory.make_player_ready((0, 1), True) == factory.make_player_change(
        (0, 1), PChangeType.READY
    )
    assert factory.make_player_ready((0, 1), False) == factory.make_player_change(
        (0, 1), PChangeType.NOT_READY
    )


def test_player_change_low_nibble(factory):
    _, body = _body(factory.make_player_change((0, 0), PChangeType.LEAVE))
    assert body[0] & 0xF == PChangeType.LEAVE
    assert body[0] >> 4 == 0


def test_player_move_nibbles(factory):
    _, a = _body(factory.make_type_change((1, 0), False))
    _, b = _body(factory.make_type_change((0, 1), False))
    _, body = _body(factory.make_player_move((1, 0), (0, 1)))
    assert body[0] == (a[0] << 4) | b[0]


def test_spectator_cannot_be_encoded_as_seat(factory):
    with pytest.raises(ValueError):
        factory.make_player_enter(None, "Dan")


@pytest.mark.parametrize(
    "method,kind",
    [
        ("make_duel_start", STOCMsgType.DUEL_START),
        ("make_duel_end", STOCMsgType.DUEL_END),
        ("make_ask_rps", STOCMsgType.CHOOSE_RPS),
        ("make_ask_if_going_first", STOCMsgType.CHOOSE_ORDER),
        ("make_ask_if_rematch", STOCMsgType.REMATCH),
        ("make_rematch_wait", STOCMsgType.REMATCH_WAIT),
        ("make_ask_sidedeck", STOCMsgType.CHANGE_SIDE),
        ("make_sidedeck_wait", STOCMsgType.WAITING_SIDE),
        ("make_open_replay_prompt", STOCMsgType.REPLAY),
    ],
)
def test_bare_messages(factory, method, kind):
    msg = getattr(factory, method)()
    assert bytes(msg) == struct.pack("<HB", 1, kind)


def test_watch_change(factory):
    kind, body = _body(factory.make_watch_change(5))
    assert kind == STOCMsgType.WATCH_CHANGE
    assert struct.unpack("<H", body) == (5,)


def test_rps_result(factory):
    kind, body = _body(factory.make_rps_result(1, 3))
    assert kind == STOCMsgType.RPS_RESULT
    assert body == bytes([1, 3])


def test_game_msg_and_replay_wrap_bytes(factory):
    payload = b"\x05\x00\x01"
    assert _body(factory.make_game_msg(payload)) == (STOCMsgType.GAME_MSG, payload)
    assert _body(factory.make_send_replay(payload)) == (STOCMsgType.NEW_REPLAY, payload)


def test_catch_up(factory):
    assert _body(factory.make_catch_up(True)) == (STOCMsgType.CATCHUP, b"\x01")
    assert _body(factory.make_catch_up(False)) == (STOCMsgType.CATCHUP, b"\x00")


def test_time_limit(factory):
    kind, body = _body(factory.make_time_limit(1, 180))
    assert kind == STOCMsgType.TIME_LIMIT
    assert len(body) == 4
    assert struct.unpack("<BxH", body) == (1, 180)


def test_join_error(factory):
    kind, body = _body(factory.make_join_error(JoinError.NOT_FOUND))
    assert kind == STOCMsgType.ERROR_MSG
    assert struct.unpack("<B3xI", body) == (1, JoinError.NOT_FOUND)


def test_deck_error_code(factory):
    _, body = _body(factory.make_deck_error_code(DeckOrCardError.CARD_BANLISTED, 89631139))
    assert struct.unpack("<B3xIIIII", body) == (2, DeckOrCardError.CARD_BANLISTED, 0, 0, 0, 89631139)


def test_deck_error_count(factory):
    _, body = _body(factory.make_deck_error_count(DeckOrCardError.DECK_BAD_MAIN_COUNT, 30, 40, 60))
    assert struct.unpack("<B3xIIIII", body) == (2, DeckOrCardError.DECK_BAD_MAIN_COUNT, 30, 40, 60, 0)


def test_version_error(factory):
    _, body = _body(factory.make_version_error(SERVER_VERSION))
    assert len(body) == 8
    assert body[0] == 5
    assert ClientVersion.unpack(body[4:]) == SERVER_VERSION


def test_side_error(factory):
    _, body = _body(factory.make_side_error())
    assert struct.unpack("<B3xI", body) == (3, 0)