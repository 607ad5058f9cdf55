"""Builders for every server-to-client message the room sends."""

from __future__ import annotations

import enum
import struct
from typing import Optional, Union

from multirole.msgcommon import ClientVersion
from multirole.stocmsg import ChatPlayerType, STOCMsg, STOCMsgType

Position = Optional[tuple[int, int]]
"""A seat as (team, slot within the team); None for a spectator."""

POSITION_SPECTATOR: Position = None

_SPECTATOR_TYPE = 7  # Sum of both teams' maximum players plus one.

_NAME_BYTES = 40
_CHAT_MSG_BYTES = 512

_ERROR_MSG = struct.Struct("<B3xI")
_DECK_ERROR_MSG = struct.Struct("<B3xIIIII")
_VER_ERROR_MSG = struct.Struct(f"<B3x{ClientVersion.SIZE}s")
_RPS_RESULT = struct.Struct("<BB")
_TYPE_CHANGE = struct.Struct("<B")
_TIME_LIMIT = struct.Struct("<BxH")
_PLAYER_ENTER = struct.Struct(f"<{_NAME_BYTES}sBx")
_PLAYER_CHANGE = struct.Struct("<B")
_WATCH_CHANGE = struct.Struct("<H")
_CATCH_UP = struct.Struct("<B")
_CHAT_2 = struct.Struct(f"<BB{_NAME_BYTES}s{_CHAT_MSG_BYTES}s")


class JoinError(enum.IntEnum):
    WRONG_PASS = 0x1
    NOT_FOUND = 0x9


class DeckOrCardError(enum.IntEnum):
    DECK_BAD_MAIN_COUNT = 0x6
    DECK_BAD_EXTRA_COUNT = 0x7
    DECK_BAD_SIDE_COUNT = 0x8
    DECK_INVALID_SIZE = 0xB
    DECK_TOO_MANY_LEGENDS = 0xC
    DECK_TOO_MANY_SKILLS = 0xD
    CARD_BANLISTED = 0x1
    CARD_OCG_ONLY = 0x2
    CARD_TCG_ONLY = 0x3
    CARD_UNKNOWN = 0x4
    CARD_MORE_THAN_3 = 0x5
    CARD_UNOFFICIAL = 0xA
    CARD_FORBIDDEN_TYPE = 0x9


class ChatMsgType(enum.IntEnum):
    INFO = 0
    ERROR = 1
    SHOUT = 2


class PChangeType(enum.IntEnum):
    SPECTATE = 0x8
    READY = 0x9
    NOT_READY = 0xA
    LEAVE = 0xB


def _utf16_field(text: str, size: int) -> bytes:
    """Encode text as UTF-16LE into a fixed field, always leaving a terminator."""
    encoded = text.encode("utf-16-le")[: size - 2]
    return encoded.ljust(size, b"\x00")


_Bytes = Union[bytes, bytearray, memoryview]


class STOCMsgFactory:
    """Builds messages; seat encoding depends on the first team's maximum size."""

    def __init__(self, t1max: int) -> None:
        self.t1max = t1max

    def _encode_position(self, position: Position) -> int:
        if position is None:
            raise ValueError("a spectator has no seat to encode")
        team, slot = position
        return (team * self.t1max + slot) & 0xFF

    def make_type_change(self, position: Position, is_host: bool) -> STOCMsg:
        pos = _SPECTATOR_TYPE if position is None else self._encode_position(position)
        return STOCMsg(STOCMsgType.TYPE_CHANGE, _TYPE_CHANGE.pack((int(is_host) << 4) | pos))

    def make_client_chat(self, position: Position, name: str, is_team: bool, text: str) -> STOCMsg:
        """Chat message sent by a client."""
        kind = ChatPlayerType.OBS if position is None else ChatPlayerType.DUELIST
        return STOCMsg(
            STOCMsgType.CHAT_2,
            _CHAT_2.pack(
                kind,
                int(is_team),
                _utf16_field(name, _NAME_BYTES),
                _utf16_field(text, _CHAT_MSG_BYTES),
            ),
        )

    def make_system_chat(self, kind: ChatMsgType, text: str) -> STOCMsg:
        """Chat message from the server itself."""
        if kind == ChatMsgType.INFO:
            ptype = ChatPlayerType.SYSTEM
        elif kind == ChatMsgType.ERROR:
            ptype = ChatPlayerType.SYSTEM_ERROR
        else:
            ptype = ChatPlayerType.SYSTEM_SHOUT
        return STOCMsg(
            STOCMsgType.CHAT_2,
            _CHAT_2.pack(ptype, 0, bytes(_NAME_BYTES), _utf16_field(text, _CHAT_MSG_BYTES)),
        )

    def make_player_enter(self, position: Position, name: str) -> STOCMsg:
        return STOCMsg(
            STOCMsgType.PLAYER_ENTER,
            _PLAYER_ENTER.pack(_utf16_field(name, _NAME_BYTES), self._encode_position(position)),
        )

    def make_player_ready(self, position: Position, ready: bool) -> STOCMsg:
        change = PChangeType.READY if ready else PChangeType.NOT_READY
        return self.make_player_change(position, change)

    def make_player_change(self, position: Position, change: PChangeType) -> STOCMsg:
        status = ((self._encode_position(position) << 4) | int(change)) & 0xFF
        return STOCMsg(STOCMsgType.PLAYER_CHANGE, _PLAYER_CHANGE.pack(status))

    def make_player_move(self, old_position: Position, new_position: Position) -> STOCMsg:
        status = (
            (self._encode_position(old_position) << 4) | self._encode_position(new_position)
        ) & 0xFF
        return STOCMsg(STOCMsgType.PLAYER_CHANGE, _PLAYER_CHANGE.pack(status))

    def make_watch_change(self, count: int) -> STOCMsg:
        return STOCMsg(STOCMsgType.WATCH_CHANGE, _WATCH_CHANGE.pack(count & 0xFFFF))

    def make_duel_start(self) -> STOCMsg:
        return STOCMsg(STOCMsgType.DUEL_START)

    def make_duel_end(self) -> STOCMsg:
        return STOCMsg(STOCMsgType.DUEL_END)

    def make_ask_rps(self) -> STOCMsg:
        return STOCMsg(STOCMsgType.CHOOSE_RPS)

    def make_ask_if_going_first(self) -> STOCMsg:
        return STOCMsg(STOCMsgType.CHOOSE_ORDER)

    def make_rps_result(self, t0: int, t1: int) -> STOCMsg:
        return STOCMsg(STOCMsgType.RPS_RESULT, _RPS_RESULT.pack(t0, t1))

    def make_game_msg(self, msg: _Bytes) -> STOCMsg:
        return STOCMsg(STOCMsgType.GAME_MSG, bytes(msg))

    def make_ask_if_rematch(self) -> STOCMsg:
        return STOCMsg(STOCMsgType.REMATCH)

    def make_rematch_wait(self) -> STOCMsg:
        return STOCMsg(STOCMsgType.REMATCH_WAIT)

    def make_ask_sidedeck(self) -> STOCMsg:
        return STOCMsg(STOCMsgType.CHANGE_SIDE)

    def make_sidedeck_wait(self) -> STOCMsg:
        return STOCMsg(STOCMsgType.WAITING_SIDE)

    def make_catch_up(self, catching_up: bool) -> STOCMsg:
        return STOCMsg(STOCMsgType.CATCHUP, _CATCH_UP.pack(int(catching_up)))

    def make_time_limit(self, team: int, time_left: int) -> STOCMsg:
        return STOCMsg(STOCMsgType.TIME_LIMIT, _TIME_LIMIT.pack(team, time_left & 0xFFFF))

    def make_send_replay(self, data: _Bytes) -> STOCMsg:
        return STOCMsg(STOCMsgType.NEW_REPLAY, bytes(data))

    def make_open_replay_prompt(self) -> STOCMsg:
        return STOCMsg(STOCMsgType.REPLAY)

    def make_join_error(self, kind: JoinError) -> STOCMsg:
        return STOCMsg(STOCMsgType.ERROR_MSG, _ERROR_MSG.pack(1, int(kind)))

    def make_deck_error_code(self, kind: DeckOrCardError, code: int) -> STOCMsg:
        """Deck error about one card."""
        return STOCMsg(
            STOCMsgType.ERROR_MSG, _DECK_ERROR_MSG.pack(2, int(kind), 0, 0, 0, code & 0xFFFFFFFF)
        )

    def make_deck_error_count(
        self, kind: DeckOrCardError, got: int, minimum: int, maximum: int
    ) -> STOCMsg:
        """Deck error about a pile size outside its limits."""
        mask = 0xFFFFFFFF
        return STOCMsg(
            STOCMsgType.ERROR_MSG,
            _DECK_ERROR_MSG.pack(2, int(kind), got & mask, minimum & mask, maximum & mask, 0),
        )

    def make_version_error(self, version: ClientVersion) -> STOCMsg:
        return STOCMsg(STOCMsgType.ERROR_MSG, _VER_ERROR_MSG.pack(5, version.pack()))

    def make_side_error(self) -> STOCMsg:
        return STOCMsg(STOCMsgType.ERROR_MSG, _ERROR_MSG.pack(3, 0))