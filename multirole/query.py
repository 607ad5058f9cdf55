"""Card query buffers as produced by the duel core: decoding, filtering and encoding."""

from __future__ import annotations

import struct
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import ClassVar, Optional

from multirole.constants import (
    POS_FACEUP,
    QUERY_ALIAS,
    QUERY_ATTACK,
    QUERY_ATTRIBUTE,
    QUERY_BASE_ATTACK,
    QUERY_BASE_DEFENSE,
    QUERY_CODE,
    QUERY_COUNTERS,
    QUERY_COVER,
    QUERY_DEFENSE,
    QUERY_END,
    QUERY_EQUIP_CARD,
    QUERY_IS_HIDDEN,
    QUERY_IS_PUBLIC,
    QUERY_LEVEL,
    QUERY_LINK,
    QUERY_LSCALE,
    QUERY_OVERLAY_CARD,
    QUERY_OWNER,
    QUERY_POSITION,
    QUERY_RACE,
    QUERY_RANK,
    QUERY_REASON,
    QUERY_REASON_CARD,
    QUERY_RSCALE,
    QUERY_STATUS,
    QUERY_TARGET_CARD,
    QUERY_TYPE,
)

_MASK32 = 0xFFFFFFFF
_LOC_INFO = struct.Struct("<BBII")


@dataclass(frozen=True)
class LocInfo:
    """Where a card is: controller, location, sequence and position."""

    con: int = 0
    loc: int = 0
    seq: int = 0
    pos: int = 0

    SIZE: ClassVar[int] = _LOC_INFO.size

    def pack(self) -> bytes:
        return _LOC_INFO.pack(
            self.con & 0xFF, self.loc & 0xFF, self.seq & _MASK32, self.pos & _MASK32
        )

    @classmethod
    def unpack(cls, data: bytes, offset: int = 0) -> LocInfo:
        try:
            return cls(*_LOC_INFO.unpack_from(data, offset))
        except struct.error as exc:
            raise ValueError("buffer too small for a location") from exc


@dataclass
class Query:
    """One decoded card query; only the fields whose flag is set carry meaning."""

    flags: int = 0
    code: int = 0
    pos: int = 0
    alias: int = 0
    type: int = 0
    level: int = 0
    rank: int = 0
    link: int = 0
    attribute: int = 0
    race: int = 0
    attack: int = 0
    defense: int = 0
    base_attack: int = 0
    base_defense: int = 0
    reason: int = 0
    owner: int = 0
    status: int = 0
    is_public: int = 0
    lscale: int = 0
    rscale: int = 0
    link_marker: int = 0
    reason_card: LocInfo = field(default_factory=LocInfo)
    equip_card: LocInfo = field(default_factory=LocInfo)
    is_hidden: int = 0
    cover: int = 0
    targets: list[LocInfo] = field(default_factory=list)
    overlays: list[int] = field(default_factory=list)
    counters: list[int] = field(default_factory=list)


_SCALARS: dict[int, tuple[str, str]] = {
    QUERY_CODE: ("code", "I"),
    QUERY_POSITION: ("pos", "I"),
    QUERY_ALIAS: ("alias", "I"),
    QUERY_TYPE: ("type", "I"),
    QUERY_LEVEL: ("level", "I"),
    QUERY_RANK: ("rank", "I"),
    QUERY_ATTRIBUTE: ("attribute", "I"),
    QUERY_RACE: ("race", "Q"),
    QUERY_ATTACK: ("attack", "i"),
    QUERY_DEFENSE: ("defense", "i"),
    QUERY_BASE_ATTACK: ("base_attack", "i"),
    QUERY_BASE_DEFENSE: ("base_defense", "i"),
    QUERY_REASON: ("reason", "I"),
    QUERY_OWNER: ("owner", "B"),
    QUERY_STATUS: ("status", "I"),
    QUERY_IS_PUBLIC: ("is_public", "B"),
    QUERY_LSCALE: ("lscale", "I"),
    QUERY_RSCALE: ("rscale", "I"),
    QUERY_IS_HIDDEN: ("is_hidden", "B"),
    QUERY_COVER: ("cover", "I"),
}

_LOC_FIELDS: dict[int, str] = {
    QUERY_REASON_CARD: "reason_card",
    QUERY_EQUIP_CARD: "equip_card",
}

_LIST_FIELDS: dict[int, str] = {
    QUERY_TARGET_CARD: "targets",
    QUERY_OVERLAY_CARD: "overlays",
    QUERY_COUNTERS: "counters",
}

# Fields only the card's controller may see unless the card is public or face-up.
_PRIVATE_FLAGS = frozenset(
    {
        QUERY_CODE,
        QUERY_ALIAS,
        QUERY_TYPE,
        QUERY_LEVEL,
        QUERY_RANK,
        QUERY_ATTRIBUTE,
        QUERY_RACE,
        QUERY_ATTACK,
        QUERY_DEFENSE,
        QUERY_BASE_ATTACK,
        QUERY_BASE_DEFENSE,
        QUERY_STATUS,
        QUERY_LSCALE,
        QUERY_RSCALE,
        QUERY_LINK,
    }
)


class _Reader:
    def __init__(self, data: bytes) -> None:
        self.data = bytes(data)
        self.offset = 0

    def read(self, fmt: str) -> tuple:
        try:
            values = struct.unpack_from("<" + fmt, self.data, self.offset)
        except struct.error as exc:
            raise ValueError("query buffer is truncated") from exc
        self.offset += struct.calcsize("<" + fmt)
        return values

    def read_loc_info(self) -> LocInfo:
        info = LocInfo.unpack(self.data, self.offset)
        self.offset += LocInfo.SIZE
        return info

    def skip(self, count: int) -> None:
        if self.offset + count > len(self.data):
            raise ValueError("query buffer is truncated")
        self.offset += count


def _read_one(reader: _Reader) -> Optional[Query]:
    (first,) = reader.read("H")
    if first == 0:
        return None
    reader.offset -= 2
    flags = 0
    values: dict[str, object] = {}
    lists: dict[str, list] = {name: [] for name in _LIST_FIELDS.values()}
    while True:
        size, flag = reader.read("HI")
        flags |= flag
        if flag in _SCALARS:
            name, fmt = _SCALARS[flag]
            (values[name],) = reader.read(fmt)
        elif flag in _LOC_FIELDS:
            values[_LOC_FIELDS[flag]] = reader.read_loc_info()
        elif flag in _LIST_FIELDS:
            (count,) = reader.read("I")
            target = lists[_LIST_FIELDS[flag]]
            for _ in range(count):
                if flag == QUERY_TARGET_CARD:
                    target.append(reader.read_loc_info())
                else:
                    target.append(reader.read("I")[0])
        elif flag == QUERY_LINK:
            values["link"], values["link_marker"] = reader.read("II")
        elif flag == QUERY_END:
            return Query(flags=flags, **values, **lists)
        else:
            if size < 4:
                raise ValueError("query entry size is smaller than its flag")
            reader.skip(size - 4)


def deserialize_single_query(buffer: bytes) -> Optional[Query]:
    """Decode the query of a single card; None when the buffer holds no card."""
    return _read_one(_Reader(buffer))


def deserialize_location_query(buffer: bytes) -> list[Optional[Query]]:
    """Decode every card query of a location buffer, which starts with its total size."""
    reader = _Reader(buffer)
    (total,) = reader.read("I")
    end = reader.offset + total
    queries: list[Optional[Query]] = []
    while reader.offset < end:
        queries.append(_read_one(reader))
    return queries


def _flag_is_public(query: Query, flag: int) -> bool:
    if query.flags & QUERY_IS_PUBLIC and query.is_public:
        return True
    if query.flags & QUERY_POSITION and query.pos & POS_FACEUP:
        return True
    return flag not in _PRIVATE_FLAGS


def _included_flags(query: Query, is_public: bool) -> Iterator[int]:
    for flag in (1 << bit for bit in range(32)):
        if query.flags & flag != flag:
            continue
        if flag == QUERY_REASON_CARD and query.reason_card.loc == 0:
            continue
        if flag == QUERY_EQUIP_CARD and query.equip_card.loc == 0:
            continue
        if query.flags & QUERY_IS_HIDDEN and query.is_hidden and not _flag_is_public(query, flag):
            continue
        if is_public and not _flag_is_public(query, flag):
            continue
        yield flag


def _payload(query: Query, flag: int) -> bytes:
    if flag in _SCALARS:
        name, fmt = _SCALARS[flag]
        return struct.pack("<" + fmt, getattr(query, name))
    if flag in _LOC_FIELDS:
        return getattr(query, _LOC_FIELDS[flag]).pack()
    if flag == QUERY_TARGET_CARD:
        return struct.pack("<I", len(query.targets)) + b"".join(t.pack() for t in query.targets)
    if flag in _LIST_FIELDS:
        items = getattr(query, _LIST_FIELDS[flag])
        return struct.pack(f"<I{len(items)}I", len(items), *items)
    if flag == QUERY_LINK:
        return struct.pack("<II", query.link, query.link_marker)
    return b""


def serialize_single_query(query: Optional[Query], is_public: bool) -> bytes:
    """Encode one card query, leaving out what must stay hidden.

    Private fields are dropped when the card is hidden, or for everyone when
    is_public is set, unless the card itself is public or face-up.
    """
    if query is None:
        return b"\x00\x00"
    parts = []
    for flag in _included_flags(query, is_public):
        payload = _payload(query, flag)
        parts.append(struct.pack("<HI", len(payload) + 4, flag))
        parts.append(payload)
    return b"".join(parts)


def serialize_location_query(queries: Iterable[Optional[Query]], is_public: bool) -> bytes:
    """Encode the queries of a whole location, prefixed with their total size."""
    body = b"".join(serialize_single_query(q, is_public) for q in queries)
    return struct.pack("<I", len(body)) + body