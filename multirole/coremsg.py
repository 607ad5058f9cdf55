"""Duel core messages: splitting, routing, hiding private knowledge and query requests."""

from __future__ import annotations

import enum
import struct
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Union

from multirole.constants import (
    LOCATION_DECK,
    LOCATION_EXTRA,
    LOCATION_GRAVE,
    LOCATION_HAND,
    LOCATION_MZONE,
    LOCATION_OVERLAY,
    LOCATION_SZONE,
    MSG_ANNOUNCE_ATTRIB,
    MSG_ANNOUNCE_CARD,
    MSG_ANNOUNCE_CARD_FILTER,
    MSG_ANNOUNCE_NUMBER,
    MSG_ANNOUNCE_RACE,
    MSG_CHAIN_END,
    MSG_CHAINED,
    MSG_CONFIRM_CARDS,
    MSG_DAMAGE_STEP_END,
    MSG_DAMAGE_STEP_START,
    MSG_DRAW,
    MSG_FLIPSUMMONED,
    MSG_FLIPSUMMONING,
    MSG_HINT,
    MSG_MISSED_EFFECT,
    MSG_MOVE,
    MSG_NEW_PHASE,
    MSG_NEW_TURN,
    MSG_POS_CHANGE,
    MSG_RELOAD_FIELD,
    MSG_REVERSE_DECK,
    MSG_ROCK_PAPER_SCISSORS,
    MSG_SELECT_BATTLECMD,
    MSG_SELECT_CARD,
    MSG_SELECT_CHAIN,
    MSG_SELECT_COUNTER,
    MSG_SELECT_DISFIELD,
    MSG_SELECT_EFFECTYN,
    MSG_SELECT_IDLECMD,
    MSG_SELECT_OPTION,
    MSG_SELECT_PLACE,
    MSG_SELECT_POSITION,
    MSG_SELECT_SUM,
    MSG_SELECT_TRIBUTE,
    MSG_SELECT_UNSELECT_CARD,
    MSG_SELECT_YESNO,
    MSG_SET,
    MSG_SHUFFLE_EXTRA,
    MSG_SHUFFLE_HAND,
    MSG_SHUFFLE_SET_CARD,
    MSG_SORT_CARD,
    MSG_SORT_CHAIN,
    MSG_SPSUMMONED,
    MSG_SPSUMMONING,
    MSG_START,
    MSG_SUMMONED,
    MSG_SWAP,
    MSG_SWAP_GRAVE_DECK,
    MSG_TAG_SWAP,
    MSG_UPDATE_CARD,
    MSG_UPDATE_DATA,
    POS_FACEDOWN,
    POS_FACEUP,
    QUERY_CODE,
)
from multirole.query import LocInfo

Bytes = Union[bytes, bytearray, memoryview]


class MsgDistType(enum.Enum):
    """How a core message is distributed to clients and whether it is stripped."""

    SPECIFIC_TEAM_DUELIST_STRIPPED = enum.auto()
    SPECIFIC_TEAM_DUELIST = enum.auto()
    SPECIFIC_TEAM = enum.auto()
    EVERYONE_EXCEPT_TEAM_DUELIST = enum.auto()
    EVERYONE_STRIPPED = enum.auto()
    EVERYONE = enum.auto()


@dataclass(frozen=True)
class MsgStartCreateInfo:
    """Starting LP and pile sizes for both teams."""

    lp: int
    t0_deck_size: int
    t0_extra_size: int
    t1_deck_size: int
    t1_extra_size: int


@dataclass(frozen=True)
class QuerySingleRequest:
    """Request to query one card."""

    con: int
    loc: int
    seq: int
    flags: int


@dataclass(frozen=True)
class QueryLocationRequest:
    """Request to query every card of one location."""

    con: int
    loc: int
    flags: int


QueryRequest = Union[QuerySingleRequest, QueryLocationRequest]

_FLAGS_DECK = 0x1181FFF
_FLAGS_HAND = 0x3781FFF
_FLAGS_MZONE = 0x3881FFF
_FLAGS_SZONE = 0x3E81FFF
_FLAGS_SINGLE = 0x3F81FFF
_FLAGS_EXTRA = 0x381FFF

_ANSWER_REQUIRED = frozenset(
    {
        MSG_SELECT_CARD,
        MSG_SELECT_TRIBUTE,
        MSG_SELECT_UNSELECT_CARD,
        MSG_SELECT_BATTLECMD,
        MSG_SELECT_IDLECMD,
        MSG_SELECT_EFFECTYN,
        MSG_SELECT_YESNO,
        MSG_SELECT_OPTION,
        MSG_SELECT_CHAIN,
        MSG_SELECT_PLACE,
        MSG_SELECT_DISFIELD,
        MSG_SELECT_POSITION,
        MSG_SORT_CARD,
        MSG_SORT_CHAIN,
        MSG_SELECT_COUNTER,
        MSG_SELECT_SUM,
        MSG_ROCK_PAPER_SCISSORS,
        MSG_ANNOUNCE_RACE,
        MSG_ANNOUNCE_ATTRIB,
        MSG_ANNOUNCE_CARD,
        MSG_ANNOUNCE_NUMBER,
        MSG_ANNOUNCE_CARD_FILTER,
    }
)

_STRIPPED_FOR_DUELIST = frozenset({MSG_SELECT_CARD, MSG_SELECT_TRIBUTE, MSG_SELECT_UNSELECT_CARD})
_FOR_DUELIST = (_ANSWER_REQUIRED - _STRIPPED_FOR_DUELIST) | {MSG_MISSED_EFFECT}
_STRIPPED_FOR_EVERYONE = frozenset(
    {MSG_SHUFFLE_HAND, MSG_SHUFFLE_EXTRA, MSG_SET, MSG_MOVE, MSG_SPSUMMONING, MSG_DRAW, MSG_TAG_SWAP}
)


def _unpack(fmt: str, data: Bytes, offset: int) -> tuple:
    try:
        return struct.unpack_from("<" + fmt, data, offset)
    except struct.error as exc:
        raise ValueError("core message is truncated") from exc


def _u8(data: Bytes, offset: int) -> int:
    return _unpack("B", data, offset)[0]


def _u32(data: Bytes, offset: int) -> int:
    return _unpack("I", data, offset)[0]


def _zero_u32(buf: bytearray, offset: int) -> None:
    try:
        struct.pack_into("<I", buf, offset, 0)
    except struct.error as exc:
        raise ValueError("core message is truncated") from exc


def split_to_msgs(buffer: Bytes) -> list[bytes]:
    """Split a core message buffer into messages, dropping each 32-bit length prefix."""
    data = bytes(buffer)
    msgs: list[bytes] = []
    pos = 0
    while pos != len(data):
        (length,) = _unpack("I", data, pos)
        pos += 4
        if pos + length > len(data):
            raise ValueError("core message is truncated")
        msgs.append(data[pos : pos + length])
        pos += length
    return msgs


def message_type(msg: Bytes) -> int:
    """The type of a core message: its first byte."""
    if not msg:
        raise ValueError("empty core message")
    return msg[0]


def does_message_require_answer(msg_type: int) -> bool:
    """Whether a duelist must answer this message type before the duel continues."""
    return msg_type in _ANSWER_REQUIRED


def message_distribution_type(msg: Bytes) -> MsgDistType:
    """Who receives a message and whether knowledge must be stripped from it."""
    kind = message_type(msg)
    if kind in _STRIPPED_FOR_DUELIST:
        return MsgDistType.SPECIFIC_TEAM_DUELIST_STRIPPED
    if kind in _FOR_DUELIST:
        return MsgDistType.SPECIFIC_TEAM_DUELIST
    if kind == MSG_HINT:
        hint = _u8(msg, 1)
        if hint in (1, 2, 3, 5):
            return MsgDistType.SPECIFIC_TEAM_DUELIST
        if hint == 200:
            return MsgDistType.SPECIFIC_TEAM
        if hint in (4, 6, 7, 8, 9, 11):
            return MsgDistType.EVERYONE_EXCEPT_TEAM_DUELIST
        return MsgDistType.EVERYONE
    if kind == MSG_CONFIRM_CARDS:
        if _u32(msg, 2) != 0 and _u8(msg, 11) == LOCATION_DECK:
            return MsgDistType.SPECIFIC_TEAM_DUELIST
        return MsgDistType.EVERYONE
    if kind in _STRIPPED_FOR_EVERYONE:
        return MsgDistType.EVERYONE_STRIPPED
    return MsgDistType.EVERYONE


def message_receiving_team(msg: Bytes) -> int:
    """The team a team-specific message is meant for."""
    if message_type(msg) == MSG_HINT:
        return _u8(msg, 2)
    return _u8(msg, 1)


def _is_loc_info_public(info: LocInfo) -> bool:
    if info.loc & (LOCATION_GRAVE | LOCATION_OVERLAY) and not info.loc & (LOCATION_DECK | LOCATION_HAND):
        return True
    return not info.pos & POS_FACEDOWN


def _clear_position_array(buf: bytearray, offset: int, count: int) -> int:
    for _ in range(count):
        if not _u32(buf, offset + 4) & POS_FACEUP:
            _zero_u32(buf, offset)
        offset += 8
    return offset


def _clear_loc_info_array(buf: bytearray, offset: int, count: int, team: int) -> int:
    for _ in range(count):
        info = LocInfo.unpack(buf, offset + 4)
        if team != info.con:
            _zero_u32(buf, offset)
        offset += 4 + LocInfo.SIZE
    return offset


def strip_message_for_team(team: int, msg: Bytes) -> bytes:
    """A copy of the message with card codes the team must not know set to zero."""
    buf = bytearray(msg)
    kind = message_type(buf)
    if kind == MSG_UPDATE_CARD:
        if _u8(buf, 1) != team and _u8(buf, 2) & 0x43 and _u32(buf, 6) == QUERY_CODE:
            _zero_u32(buf, 10)
    elif kind == MSG_SET:
        _zero_u32(buf, 1)
    elif kind in (MSG_SHUFFLE_HAND, MSG_SHUFFLE_EXTRA):
        if _u8(buf, 1) != team:
            for i in range(_u32(buf, 2)):
                _zero_u32(buf, 6 + 4 * i)
    elif kind == MSG_MOVE:
        current = LocInfo.unpack(buf, 1 + 4 + LocInfo.SIZE)
        if current.con != team and not _is_loc_info_public(current):
            _zero_u32(buf, 1)
    elif kind == MSG_SPSUMMONING:
        current = LocInfo.unpack(buf, 5)
        if current.con != team and current.pos & POS_FACEDOWN:
            _zero_u32(buf, 1)
    elif kind == MSG_DRAW:
        if _u8(buf, 1) != team:
            _clear_position_array(buf, 6, _u32(buf, 2))
    elif kind == MSG_TAG_SWAP:
        if _u8(buf, 1) != team:
            count = _u32(buf, 6) + _u32(buf, 14)  # extra deck + hand
            _clear_position_array(buf, 22, count)
    elif kind == MSG_SELECT_CARD:
        _clear_loc_info_array(buf, 15, _u32(buf, 11), team)
    elif kind == MSG_SELECT_TRIBUTE:
        offset = 15
        for _ in range(_u32(buf, 11)):
            if team != _u8(buf, offset + 4):
                _zero_u32(buf, offset)
            offset += 4 + 1 + 1 + 4 + 1
    elif kind == MSG_SELECT_UNSELECT_CARD:
        offset = _clear_loc_info_array(buf, 16, _u32(buf, 12), team)
        _clear_loc_info_array(buf, offset + 4, _u32(buf, offset), team)
    return bytes(buf)


def make_start_msg(info: MsgStartCreateInfo) -> bytes:
    """Build MSG_START, which sets up pile sizes and LP for both teams."""
    return struct.pack(
        "<BBIIHHHH",
        MSG_START,
        0,
        info.lp & 0xFFFFFFFF,
        info.lp & 0xFFFFFFFF,
        info.t0_deck_size & 0xFFFF,
        info.t0_extra_size & 0xFFFF,
        info.t1_deck_size & 0xFFFF,
        info.t1_extra_size & 0xFFFF,
    )


def _both(loc: int, flags: int) -> list[QueryRequest]:
    return [QueryLocationRequest(0, loc, flags), QueryLocationRequest(1, loc, flags)]


def _refresh(*parts: Iterable[QueryRequest]) -> list[QueryRequest]:
    return [req for part in parts for req in part]


def _decks() -> list[QueryRequest]:
    return _both(LOCATION_DECK, _FLAGS_DECK)


def _hands() -> list[QueryRequest]:
    return _both(LOCATION_HAND, _FLAGS_HAND)


def _mzones() -> list[QueryRequest]:
    return _both(LOCATION_MZONE, _FLAGS_MZONE)


def _szones() -> list[QueryRequest]:
    return _both(LOCATION_SZONE, _FLAGS_SZONE)


def pre_dist_query_requests(msg: Bytes) -> list[QueryRequest]:
    """Queries to run before the message is distributed."""
    kind = message_type(msg)
    if kind in (MSG_SELECT_BATTLECMD, MSG_SELECT_IDLECMD):
        return _refresh(_hands(), _mzones(), _szones())
    if kind in (MSG_SELECT_CHAIN, MSG_NEW_TURN):
        return _refresh(_mzones(), _szones())
    if kind == MSG_FLIPSUMMONING:
        info = LocInfo.unpack(msg, 5)
        return [QuerySingleRequest(info.con, info.loc, info.seq, _FLAGS_SINGLE)]
    return []


def post_dist_query_requests(msg: Bytes) -> list[QueryRequest]:
    """Queries to run after the message is distributed."""
    kind = message_type(msg)
    if kind in (MSG_SHUFFLE_HAND, MSG_DRAW):
        return [QueryLocationRequest(_u8(msg, 1), LOCATION_HAND, _FLAGS_HAND)]
    if kind == MSG_SHUFFLE_EXTRA:
        return [QueryLocationRequest(_u8(msg, 1), LOCATION_EXTRA, _FLAGS_EXTRA)]
    if kind == MSG_SWAP_GRAVE_DECK:
        return [QueryLocationRequest(_u8(msg, 1), LOCATION_GRAVE, _FLAGS_EXTRA)]
    if kind == MSG_REVERSE_DECK:
        return _decks()
    if kind == MSG_SHUFFLE_SET_CARD:
        return _both(_u8(msg, 1), 0x3181FFF)
    if kind in (MSG_DAMAGE_STEP_START, MSG_DAMAGE_STEP_END):
        return _mzones()
    if kind in (MSG_SUMMONED, MSG_SPSUMMONED, MSG_FLIPSUMMONED):
        return _refresh(_mzones(), _szones())
    if kind in (MSG_NEW_PHASE, MSG_CHAINED):
        return _refresh(_mzones(), _szones(), _hands())
    if kind == MSG_CHAIN_END:
        return _refresh(_decks(), _mzones(), _szones(), _hands())
    if kind == MSG_MOVE:
        previous = LocInfo.unpack(msg, 5)
        current = LocInfo.unpack(msg, 5 + LocInfo.SIZE)
        if (
            (previous.con != current.con or previous.loc != current.loc)
            and current.loc != 0
            and not current.loc & LOCATION_OVERLAY
        ):
            return [QuerySingleRequest(current.con, current.loc, current.seq, _FLAGS_SINGLE)]
        return []
    if kind == MSG_POS_CHANGE:
        con, loc, seq, prev_pos, cur_pos = _unpack("5B", msg, 5)
        if prev_pos & POS_FACEDOWN and cur_pos & POS_FACEUP:
            return [QuerySingleRequest(con, loc, seq, _FLAGS_SINGLE)]
        return []
    if kind == MSG_SWAP:
        p = LocInfo.unpack(msg, 5)
        c = LocInfo.unpack(msg, 5 + LocInfo.SIZE + 4)
        return [
            QuerySingleRequest(p.con, p.loc, p.seq, _FLAGS_SINGLE),
            QuerySingleRequest(c.con, c.loc, c.seq, _FLAGS_SINGLE),
        ]
    if kind == MSG_TAG_SWAP:
        player = _u8(msg, 1)
        return [
            QueryLocationRequest(player, LOCATION_DECK, _FLAGS_DECK),
            QueryLocationRequest(player, LOCATION_EXTRA, _FLAGS_EXTRA),
            QueryLocationRequest(player, LOCATION_HAND, _FLAGS_HAND),
            QueryLocationRequest(0, LOCATION_MZONE, 0x3081FFF),
            QueryLocationRequest(1, LOCATION_MZONE, 0x3081FFF),
            QueryLocationRequest(0, LOCATION_SZONE, 0x30681FFF),
            QueryLocationRequest(1, LOCATION_SZONE, 0x30681FFF),
        ]
    if kind == MSG_RELOAD_FIELD:
        return _both(LOCATION_EXTRA, _FLAGS_EXTRA)
    return []


def make_update_card_msg(con: int, loc: int, seq: int, query_buffer: Bytes) -> bytes:
    """Build MSG_UPDATE_CARD wrapping the query of a single card."""
    return bytes([MSG_UPDATE_CARD, con & 0xFF, loc & 0xFF, seq & 0xFF]) + bytes(query_buffer)


def make_update_data_msg(con: int, loc: int, query_buffer: Bytes) -> bytes:
    """Build MSG_UPDATE_DATA wrapping the queries of a whole location."""
    return bytes([MSG_UPDATE_DATA, con & 0xFF, loc & 0xFF]) + bytes(query_buffer)