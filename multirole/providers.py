"""Services that pick banlists, card databases and scripts out of updated repositories."""

from __future__ import annotations

import abc
import os
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from multirole.banlist import Banlist, parse_banlists
from multirole.carddb import CardDatabase
from multirole.logsinks import Level, ServiceType

PathLike = Union[str, os.PathLike]


@dataclass
class GitDiff:
    """Files changed by a repository update; a modified file appears in both lists."""

    removed: list[PathLike] = field(default_factory=list)
    added: list[PathLike] = field(default_factory=list)


class GitRepoObserver(abc.ABC):
    """Receives the files of a repository when it is first added and after each update."""

    @abc.abstractmethod
    def on_add(self, path: PathLike, file_list: list[PathLike]) -> None:
        """Handle every file of a newly added repository."""

    @abc.abstractmethod
    def on_diff(self, path: PathLike, diff: GitDiff) -> None:
        """Handle the files changed by an update."""


def _full_path(path: PathLike, fn: PathLike) -> str:
    return os.path.normpath(os.path.join(os.fspath(path), os.fspath(fn)))


class _Filtered:
    def __init__(self, log_handler, pattern: str, service: ServiceType) -> None:
        self._lh = log_handler
        self._regex = re.compile(pattern)
        self._service = service

    def _matches(self, fn: PathLike) -> bool:
        return self._regex.fullmatch(os.fspath(fn)) is not None

    def _info(self, text: str, *args) -> None:
        self._lh.log_service(self._service, Level.INFO, text, *args)

    def _error(self, text: str, *args) -> None:
        self._lh.log_service(self._service, Level.ERROR, text, *args)


class BanlistProvider(_Filtered, GitRepoObserver):
    """Keeps every banlist found in matching files, indexed by hash."""

    def __init__(self, log_handler, pattern: str) -> None:
        super().__init__(log_handler, pattern, ServiceType.BANLIST_PROVIDER)
        self._banlists: dict[int, Banlist] = {}
        self._lock = threading.Lock()

    def banlist_by_hash(self, hash_value: int) -> Optional[Banlist]:
        """The banlist with this hash, or None if none is known."""
        with self._lock:
            return self._banlists.get(hash_value)

    def on_add(self, path: PathLike, file_list: list[PathLike]) -> None:
        self._load(path, file_list)

    def on_diff(self, path: PathLike, diff: GitDiff) -> None:
        self._load(path, diff.added)

    def _load(self, path: PathLike, file_list: list[PathLike]) -> None:
        loaded: dict[int, Banlist] = {}
        for fn in file_list:
            if not self._matches(fn):
                continue
            full = _full_path(path, fn)
            self._info("Loading banlist file {}", full)
            try:
                with open(full, encoding="utf-8", errors="replace") as f:
                    loaded.update(parse_banlists(f.read().splitlines()))
            except Exception as exc:  # a bad file must not stop the others
                self._error("Could not load banlist file: {}", exc)
        with self._lock:
            self._banlists.update(loaded)


class DataProvider(_Filtered, GitRepoObserver):
    """Keeps one card database merged from every matching database file."""

    def __init__(self, log_handler, pattern: str) -> None:
        super().__init__(log_handler, pattern, ServiceType.DATA_PROVIDER)
        self._paths: set[str] = set()
        self._db = CardDatabase()
        self._lock = threading.Lock()

    def database(self) -> CardDatabase:
        """The current merged database."""
        with self._lock:
            return self._db

    def on_add(self, path: PathLike, file_list: list[PathLike]) -> None:
        self._paths.update(_full_path(path, fn) for fn in file_list if self._matches(fn))
        self._reload()

    def on_diff(self, path: PathLike, diff: GitDiff) -> None:
        self._paths.difference_update(
            _full_path(path, fn) for fn in diff.removed if self._matches(fn)
        )
        self._paths.update(_full_path(path, fn) for fn in diff.added if self._matches(fn))
        self._reload()

    def _reload(self) -> None:
        new_db = CardDatabase()
        for db_path in sorted(self._paths):
            self._info("Loading card database {}", db_path)
            if not new_db.merge(db_path):
                self._error("Could not merge database")
        with self._lock:
            self._db = new_db


class ScriptProvider(_Filtered, GitRepoObserver):
    """Keeps the contents of every matching script, indexed by file name."""

    def __init__(self, log_handler, pattern: str) -> None:
        super().__init__(log_handler, pattern, ServiceType.SCRIPT_PROVIDER)
        self._scripts: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def script_from_file_path(self, path: str) -> Optional[bytes]:
        """The script stored under this file name, or None."""
        with self._lock:
            return self._scripts.get(path)

    def on_add(self, path: PathLike, file_list: list[PathLike]) -> None:
        self._load(path, file_list)

    def on_diff(self, path: PathLike, diff: GitDiff) -> None:
        self._load(path, diff.added)

    def _load(self, path: PathLike, file_list: list[PathLike]) -> None:
        total = 0
        self._info("Loading {} script files", len(file_list))
        with self._lock:
            for fn in file_list:
                if not self._matches(fn):
                    continue
                full = _full_path(path, fn)
                try:
                    content = Path(full).read_bytes()
                except OSError:
                    self._error("Could not open script file {}", full)
                    continue
                self._scripts[Path(os.fspath(fn)).name] = content
                total += 1
        self._info("Total script files loaded: {}", total)