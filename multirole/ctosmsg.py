"""Client-to-server messages: header checks and body decoding."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass
from typing import Optional, Union

from multirole.msgcommon import ClientVersion, HostInfo

HEADER_LENGTH = 3
MSG_MAX_LENGTH = 1021

_NAME_BYTES = 40
_CREATE_GAME = struct.Struct(f"<{HostInfo.SIZE}s{_NAME_BYTES}s{_NAME_BYTES}s200s")
_JOIN_GAME = struct.Struct(f"<H2xI{_NAME_BYTES}s{ClientVersion.SIZE}s")


class CTOSMsgType(enum.IntEnum):
    RESPONSE = 0x01
    UPDATE_DECK = 0x02
    RPS_CHOICE = 0x03
    TURN_CHOICE = 0x04
    PLAYER_INFO = 0x10
    CREATE_GAME = 0x11
    JOIN_GAME = 0x12
    LEAVE_GAME = 0x13
    SURRENDER = 0x14
    TIME_CONFIRM = 0x15
    CHAT = 0x16
    TO_DUELIST = 0x20
    TO_OBSERVER = 0x21
    READY = 0x22
    NOT_READY = 0x23
    TRY_KICK = 0x24
    TRY_START = 0x25
    REMATCH = 0xF0


_VALID_TYPES = frozenset(int(t) for t in CTOSMsgType)


def _decode_utf16(raw: bytes) -> str:
    return raw.decode("utf-16-le", errors="replace").split("\x00", 1)[0]


@dataclass(frozen=True)
class CreateGame:
    """A request to host a room."""

    host_info: HostInfo
    name: str
    password: str
    notes: str


@dataclass(frozen=True)
class JoinGame:
    """A request to join a room."""

    version2: int
    room_id: int
    password: str
    version: ClientVersion


class BodyReader:
    """Sequential little-endian reader over a message body, bounded by its length."""

    def __init__(self, body: bytes) -> None:
        self._body = body
        self._offset = 0

    @property
    def remaining(self) -> int:
        return len(self._body) - self._offset

    def read(self, fmt: str) -> Union[int, tuple]:
        """Read a struct format; one value comes back bare, several as a tuple."""
        layout = struct.Struct("<" + fmt)
        if self._offset + layout.size > len(self._body):
            raise IndexError("buffer too small")
        values = layout.unpack_from(self._body, self._offset)
        self._offset += layout.size
        return values[0] if len(values) == 1 else values


class CTOSMsg:
    """One message from a client: a 16-bit length, a type byte and a body."""

    def __init__(self, data: bytes) -> None:
        data = bytes(data)
        if len(data) < HEADER_LENGTH:
            raise ValueError("message shorter than its header")
        if len(data) > HEADER_LENGTH + MSG_MAX_LENGTH:
            raise ValueError("message longer than the maximum")
        (raw_length,) = struct.unpack_from("<h", data, 0)
        self.length = ((raw_length - 1 + 0x8000) & 0xFFFF) - 0x8000
        self.msg_type = data[2]
        size = min(max(self.length, 0), MSG_MAX_LENGTH)
        self.body = data[HEADER_LENGTH : HEADER_LENGTH + size].ljust(size, b"\x00")

    def is_header_valid(self) -> bool:
        return self.length <= MSG_MAX_LENGTH and self.msg_type in _VALID_TYPES

    def _sized_body(self, size: int) -> Optional[bytes]:
        if self.length != size:
            return None
        return self.body

    def _byte(self) -> Optional[int]:
        body = self._sized_body(1)
        return None if body is None else body[0]

    def rps_choice(self) -> Optional[int]:
        return self._byte()

    def turn_choice(self) -> Optional[int]:
        return self._byte()

    def try_kick(self) -> Optional[int]:
        return self._byte()

    def rematch(self) -> Optional[int]:
        return self._byte()

    def player_info(self) -> Optional[str]:
        """The player's name, or None if the body has the wrong size."""
        body = self._sized_body(_NAME_BYTES)
        return None if body is None else _decode_utf16(body)

    def create_game(self) -> Optional[CreateGame]:
        body = self._sized_body(_CREATE_GAME.size)
        if body is None:
            return None
        info, name, password, notes = _CREATE_GAME.unpack(body)
        return CreateGame(
            host_info=HostInfo.unpack(info),
            name=_decode_utf16(name),
            password=_decode_utf16(password),
            notes=notes.split(b"\x00", 1)[0].decode("utf-8", errors="replace"),
        )

    def join_game(self) -> Optional[JoinGame]:
        body = self._sized_body(_JOIN_GAME.size)
        if body is None:
            return None
        version2, room_id, password, version = _JOIN_GAME.unpack(body)
        return JoinGame(version2, room_id, _decode_utf16(password), ClientVersion.unpack(version))

    def reader(self) -> BodyReader:
        """A reader over the body as far as the header's length allows."""
        return BodyReader(self.body)