"""Server-to-client messages: a 16-bit length, a type byte and a payload."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass

_HEADER = struct.Struct("<HB")

MAX_PAYLOAD_SIZE = 0xFFFF - _HEADER.size
"""Largest payload whose length still fits the 16-bit length field."""


class STOCMsgType(enum.IntEnum):
    GAME_MSG = 0x1
    ERROR_MSG = 0x2
    CHOOSE_RPS = 0x3
    CHOOSE_ORDER = 0x4
    RPS_RESULT = 0x5
    ORDER_RESULT = 0x6
    CHANGE_SIDE = 0x7
    WAITING_SIDE = 0x8
    CREATE_GAME = 0x11
    JOIN_GAME = 0x12
    TYPE_CHANGE = 0x13
    LEAVE_GAME = 0x14
    DUEL_START = 0x15
    DUEL_END = 0x16
    REPLAY = 0x17
    TIME_LIMIT = 0x18
    PLAYER_ENTER = 0x20
    PLAYER_CHANGE = 0x21
    WATCH_CHANGE = 0x22
    NEW_REPLAY = 0x30
    CATCHUP = 0xF0
    REMATCH = 0xF1
    REMATCH_WAIT = 0xF2
    CHAT_2 = 0xF3


class ChatPlayerType(enum.IntEnum):
    """Who a chat message comes from."""

    DUELIST = 0
    OBS = 1
    SYSTEM = 2
    SYSTEM_ERROR = 3
    SYSTEM_SHOUT = 4


@dataclass(frozen=True)
class STOCMsg:
    """An immutable message ready to be written to a client."""

    msg_type: STOCMsgType
    payload: bytes = b""

    def __post_init__(self) -> None:
        object.__setattr__(self, "msg_type", STOCMsgType(self.msg_type))
        payload = bytes(self.payload)
        if len(payload) > MAX_PAYLOAD_SIZE:
            raise ValueError(
                f"payload of {len(payload)} bytes exceeds the maximum of {MAX_PAYLOAD_SIZE}"
            )
        object.__setattr__(self, "payload", payload)

    def __bytes__(self) -> bytes:
        return _HEADER.pack(len(self.payload) + 1, self.msg_type) + self.payload

    def __len__(self) -> int:
        return _HEADER.size + len(self.payload)