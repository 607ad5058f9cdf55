"""Structures shared between client and server messages, and the server version."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass, field


class AllowedCards(enum.IntEnum):
    OCG_ONLY = 0
    TCG_ONLY = 1
    OCG_TCG = 2
    WITH_PRERELEASE = 3
    ANY = 4


class ExtraRule(enum.IntFlag):
    SEALED_DUEL = 0x1
    BOOSTER_DUEL = 0x2
    DESTINY_DRAW = 0x4
    CONCENTRATION_DUEL = 0x8
    BOSS_DUEL = 0x10
    BATTLE_CITY = 0x20
    DUELIST_KINGDOM = 0x40
    DIMENSION_DUEL = 0x80
    TURBO_DUEL = 0x100
    RULE_OF_THE_DAY = 0x200
    COMMAND_DUEL = 0x400
    DECK_MASTER = 0x800
    ACTION_DUEL = 0x1000


def or_duel_flags(high: int, low: int) -> int:
    """Combine the high and low 32-bit duel flag words into one 64-bit value."""
    return (low & 0xFFFFFFFF) | ((high & 0xFFFFFFFF) << 32)


_CLIENT_VERSION = struct.Struct("<4B")


@dataclass(frozen=True)
class ClientVersion:
    client_major: int = 0
    client_minor: int = 0
    core_major: int = 0
    core_minor: int = 0

    SIZE = _CLIENT_VERSION.size

    def pack(self) -> bytes:
        return _CLIENT_VERSION.pack(
            self.client_major, self.client_minor, self.core_major, self.core_minor
        )

    @classmethod
    def unpack(cls, data: bytes) -> ClientVersion:
        if len(data) < _CLIENT_VERSION.size:
            raise ValueError("buffer too small for a client version")
        return cls(*_CLIENT_VERSION.unpack_from(data))


@dataclass(frozen=True)
class Boundary:
    min: int = 0
    max: int = 0


@dataclass(frozen=True)
class DeckLimits:
    main: Boundary = field(default_factory=Boundary)
    extra: Boundary = field(default_factory=Boundary)
    side: Boundary = field(default_factory=Boundary)


# Natural C alignment: three padding bytes after the u8 run and two at the end.
_HOST_INFO = struct.Struct("<I5B3xIBBHII4BiiiIiH6H2x")


@dataclass
class HostInfo:
    banlist_hash: int = 0
    allowed: int = 0
    mode: int = 0
    duel_rule: int = 0
    dont_check_deck_content: int = 0
    dont_shuffle_deck: int = 0
    starting_lp: int = 0
    starting_draw_count: int = 0
    draw_count_per_turn: int = 0
    time_limit_in_seconds: int = 0
    duel_flags_high: int = 0
    handshake: int = 0
    version: ClientVersion = field(default_factory=ClientVersion)
    t0_count: int = 0
    t1_count: int = 0
    best_of: int = 0
    duel_flags_low: int = 0
    forb: int = 0
    extra_rules: int = 0
    limits: DeckLimits = field(default_factory=DeckLimits)

    SIZE = _HOST_INFO.size

    def duel_flags(self) -> int:
        return or_duel_flags(self.duel_flags_high, self.duel_flags_low)

    def pack(self) -> bytes:
        v = self.version
        lim = self.limits
        return _HOST_INFO.pack(
            self.banlist_hash,
            self.allowed,
            self.mode,
            self.duel_rule,
            self.dont_check_deck_content,
            self.dont_shuffle_deck,
            self.starting_lp,
            self.starting_draw_count,
            self.draw_count_per_turn,
            self.time_limit_in_seconds,
            self.duel_flags_high,
            self.handshake,
            v.client_major,
            v.client_minor,
            v.core_major,
            v.core_minor,
            self.t0_count,
            self.t1_count,
            self.best_of,
            self.duel_flags_low,
            self.forb,
            self.extra_rules,
            lim.main.min,
            lim.main.max,
            lim.extra.min,
            lim.extra.max,
            lim.side.min,
            lim.side.max,
        )

    @classmethod
    def unpack(cls, data: bytes) -> HostInfo:
        if len(data) < _HOST_INFO.size:
            raise ValueError("buffer too small for host info")
        (
            banlist_hash, allowed, mode, duel_rule, dont_check, dont_shuffle,
            starting_lp, draw_start, draw_turn, time_limit, flags_high, handshake,
            c_major, c_minor, k_major, k_minor,
            t0, t1, best_of, flags_low, forb, extra_rules,
            main_min, main_max, extra_min, extra_max, side_min, side_max,
        ) = _HOST_INFO.unpack_from(data)
        return cls(
            banlist_hash=banlist_hash,
            allowed=allowed,
            mode=mode,
            duel_rule=duel_rule,
            dont_check_deck_content=dont_check,
            dont_shuffle_deck=dont_shuffle,
            starting_lp=starting_lp,
            starting_draw_count=draw_start,
            draw_count_per_turn=draw_turn,
            time_limit_in_seconds=time_limit,
            duel_flags_high=flags_high,
            handshake=handshake,
            version=ClientVersion(c_major, c_minor, k_major, k_minor),
            t0_count=t0,
            t1_count=t1,
            best_of=best_of,
            duel_flags_low=flags_low,
            forb=forb,
            extra_rules=extra_rules,
            limits=DeckLimits(
                Boundary(main_min, main_max),
                Boundary(extra_min, extra_max),
                Boundary(side_min, side_max),
            ),
        )


SERVER_VERSION = ClientVersion(41, 0, 11, 0)
"""Version checked against connecting clients and written to replays."""

SERVER_HANDSHAKE = 4043399681
"""Magic value the client's handshake must match."""