"""Card database backed by SQLite, merging several card files into one."""

from __future__ import annotations

import contextlib
import os
import sqlite3
import threading
from dataclasses import dataclass
from typing import Union

from multirole.constants import TYPE_LINK

_MASK32 = 0xFFFFFFFF
_MASK64 = (1 << 64) - 1
_SETCODES = 4

_DB_SCHEMAS = """
CREATE TABLE "datas" (
    "id"        INTEGER,
    "ot"        INTEGER,
    "alias"     INTEGER,
    "setcode"   INTEGER,
    "type"      INTEGER,
    "atk"       INTEGER,
    "def"       INTEGER,
    "level"     INTEGER,
    "race"      INTEGER,
    "attribute" INTEGER,
    "category"  INTEGER,
    PRIMARY KEY("id")
);
CREATE TABLE "texts" (
    "id"    INTEGER,
    "name"  TEXT,
    "desc"  TEXT,
    "str1"  TEXT,
    "str2"  TEXT,
    "str3"  TEXT,
    "str4"  TEXT,
    "str5"  TEXT,
    "str6"  TEXT,
    "str7"  TEXT,
    "str8"  TEXT,
    "str9"  TEXT,
    "str10" TEXT,
    "str11" TEXT,
    "str12" TEXT,
    "str13" TEXT,
    "str14" TEXT,
    "str15" TEXT,
    "str16" TEXT,
    PRIMARY KEY("id")
);
"""

_ATTACH_STMT = "ATTACH ? AS toMerge"
_MERGE_STMTS = (
    "INSERT OR REPLACE INTO datas SELECT * FROM toMerge.datas",
    "INSERT OR REPLACE INTO texts SELECT * FROM toMerge.texts",
)
_DETACH_STMT = "DETACH toMerge"
_SEARCH_STMT = (
    "SELECT id,alias,setcode,type,atk,def,level,race,attribute "
    "FROM datas WHERE datas.id = ?"
)
_SEARCH2_STMT = "SELECT ot,category FROM datas WHERE datas.id = ?"


def _int(value) -> int:
    return int(value) if value is not None else 0


def _i32(value) -> int:
    return ((_int(value) & _MASK32) ^ 0x80000000) - 0x80000000


def _u32(value) -> int:
    return _int(value) & _MASK32


@dataclass(frozen=True)
class CardData:
    """The card data the duel core needs to create a card."""

    code: int = 0
    alias: int = 0
    setcodes: tuple[int, ...] = ()
    type: int = 0
    level: int = 0
    attribute: int = 0
    race: int = 0
    attack: int = 0
    defense: int = 0
    lscale: int = 0
    rscale: int = 0
    link_marker: int = 0


@dataclass(frozen=True)
class CardExtraData:
    """Card data the server uses itself: legality scope and category."""

    scope: int = 0
    category: int = 0


class CardDatabase:
    """A card database, in memory by default; lookups are cached per code."""

    def __init__(self, path: Union[str, os.PathLike] = ":memory:") -> None:
        self._db = sqlite3.connect(os.fspath(path), isolation_level=None, check_same_thread=False)
        try:
            self._db.executescript(_DB_SCHEMAS)
        except sqlite3.OperationalError:
            pass  # Tables already present in an existing file.
        self._db_lock = threading.Lock()
        self._data_cache: dict[int, CardData] = {}
        self._data_lock = threading.Lock()
        self._extra_cache: dict[int, CardExtraData] = {}
        self._extra_lock = threading.Lock()

    def merge(self, path: Union[str, os.PathLike]) -> bool:
        """Copy every card of another database file into this one; False if it cannot be attached."""
        with self._db_lock:
            try:
                self._db.execute(_ATTACH_STMT, (os.fspath(path),))
            except sqlite3.Error:
                return False
            for stmt in _MERGE_STMTS:
                with contextlib.suppress(sqlite3.Error):
                    self._db.execute(stmt)
            with contextlib.suppress(sqlite3.Error):
                self._db.execute(_DETACH_STMT)
            return True

    def data_from_code(self, code: int) -> CardData:
        """Card data for a code; an all-zero record when the code is unknown."""
        with self._data_lock:
            cached = self._data_cache.get(code)
            if cached is not None:
                return cached
            with self._db_lock:
                row = self._db.execute(_SEARCH_STMT, (_i32(code),)).fetchone()
            data = self._card_data_from_row(row) if row is not None else CardData()
            self._data_cache[code] = data
            return data

    def data_usage_done(self, data: CardData) -> bool:
        """Release a record the core is done with.

        Records stay cached for later lookups; returns whether the record
        is one this database handed out.
        """
        with self._data_lock:
            return any(cached is data for cached in self._data_cache.values())

    def extra_from_code(self, code: int) -> CardExtraData:
        """Scope and category for a code; zeros when the code is unknown."""
        with self._extra_lock:
            cached = self._extra_cache.get(code)
            if cached is not None:
                return cached
            with self._db_lock:
                row = self._db.execute(_SEARCH2_STMT, (_i32(code),)).fetchone()
            extra = CardExtraData(_u32(row[0]), _u32(row[1])) if row is not None else CardExtraData()
            self._extra_cache[code] = extra
            return extra

    def close(self) -> None:
        self._db.close()

    def __enter__(self) -> CardDatabase:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    @staticmethod
    def _card_data_from_row(row) -> CardData:
        code, alias, setcode, type_, atk, def_, level, race, attribute = row
        setcode_bits = _int(setcode) & _MASK64
        setcodes = tuple((setcode_bits >> (i * 16)) & 0xFFFF for i in range(_SETCODES))
        card_type = _u32(type_)
        defense = _i32(def_)
        is_link = card_type & TYPE_LINK != 0
        db_level = _i32(level)
        return CardData(
            code=_u32(code),
            alias=_u32(alias),
            setcodes=setcodes,
            type=card_type,
            level=db_level & 0x800000FF,
            attribute=_u32(attribute),
            race=_int(race) & _MASK64,
            attack=_i32(atk),
            defense=0 if is_link else defense,
            lscale=(db_level >> 24) & 0xFF,
            rscale=(db_level >> 16) & 0xFF,
            link_marker=(defense & _MASK32) if is_link else 0,
        )