"""Banlists and the parser for banlist configuration text."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

BANLIST_HASH_MAGIC = 0x7DFCEE6A

_MASK32 = 0xFFFFFFFF
_INT_CHARS = "-0123456789"
_INT_RE = re.compile(r"-?\d+")
_DIGITS_RE = re.compile(r"\d+")


@dataclass
class Banlist:
    """A banlist: whether it is a whitelist, and the allowed count per card code."""

    whitelist: bool = False
    codes: dict[int, int] = field(default_factory=dict)


class BanlistParseError(ValueError):
    """Raised when a banlist line cannot be parsed."""

    def __init__(self, line: int, message: str) -> None:
        super().__init__(f"line {line}: {message}")
        self.line = line


def salt(hash_value: int, code: int, count: int) -> int:
    """Mix one card entry into a running 32-bit banlist hash."""
    code &= _MASK32
    left = ((code << 18) | (code >> 14)) & _MASK32
    right = ((code << ((27 + count) & 31)) | (code >> ((5 - count) & 31))) & _MASK32
    return (hash_value ^ left ^ right) & _MASK32


def _parse_card_line(line: str, lineno: int) -> tuple[int, int]:
    separator = line.find(" ")
    if separator == -1:
        raise BanlistParseError(lineno, "Card code separator not found")
    code_match = _DIGITS_RE.match(line, 0, separator)
    if code_match is None or int(code_match.group()) > _MASK32:
        raise BanlistParseError(lineno, "Could not parse code")
    code = int(code_match.group())
    if code == 0:
        raise BanlistParseError(lineno, "Card code cannot be 0")
    begin = next((i for i in range(separator, len(line)) if line[i] in _INT_CHARS), -1)
    if begin == -1:
        raise BanlistParseError(lineno, "Could not find count begin")
    end = begin
    while end < len(line) and line[end] in _INT_CHARS:
        end += 1
    count_match = _INT_RE.match(line, begin, end)
    if count_match is None:
        raise BanlistParseError(lineno, "Could not parse count")
    count = int(count_match.group())
    if not -(2**31) <= count < 2**31:
        raise BanlistParseError(lineno, "Could not parse count")
    return code, count


def parse_banlists(lines: Iterable[str]) -> dict[int, Banlist]:
    """Parse banlist text into banlists keyed by their hash.

    A list starts at a line beginning with '!'; lists whose hash equals the
    initial magic (no cards) are dropped, and the first list seen for a hash wins.
    """
    banlists: dict[int, Banlist] = {}
    hash_value = BANLIST_HASH_MAGIC
    whitelist = False
    codes: dict[int, int] = {}

    def conditionally_add() -> None:
        if hash_value == BANLIST_HASH_MAGIC:
            return
        banlists.setdefault(hash_value, Banlist(whitelist, dict(codes)))

    for lineno, raw in enumerate(lines, start=1):
        line = raw.rstrip("\n")
        if not line:
            continue
        if "$whitelist" in line:
            whitelist = True
            continue
        first = line[0]
        if first == "!":
            conditionally_add()
            hash_value = BANLIST_HASH_MAGIC
            whitelist = False
            codes.clear()
        elif first.isascii() and first.isdigit():
            code, count = _parse_card_line(line, lineno)
            hash_value = salt(hash_value, code, count)
            codes[code] = count
    conditionally_add()
    return banlists