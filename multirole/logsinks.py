"""Log categories, the line format shared by text sinks, and the file and console sinks."""

from __future__ import annotations

import enum
import os
import sys
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import TextIO, Union


class ServiceType(enum.IntEnum):
    GIT_REPO = 0
    MULTIROLE = 1
    BANLIST_PROVIDER = 2
    CORE_PROVIDER = 3
    DATA_PROVIDER = 4
    LOG_HANDLER = 5
    REPLAY_MANAGER = 6
    SCRIPT_PROVIDER = 7


class Level(enum.IntEnum):
    INFO = 0
    WARN = 1
    ERROR = 2


class ErrorCategory(enum.IntEnum):
    CORE = 0
    OFFICIAL = 1
    SPEED = 2
    RUSH = 3
    UNOFFICIAL = 4


SVC_NAMES: dict[ServiceType, str] = {
    ServiceType.GIT_REPO: "GitRepository",
    ServiceType.MULTIROLE: "Multirole",
    ServiceType.BANLIST_PROVIDER: "BanlistProvider",
    ServiceType.CORE_PROVIDER: "CoreProvider",
    ServiceType.DATA_PROVIDER: "DataProvider",
    ServiceType.LOG_HANDLER: "LogHandler",
    ServiceType.REPLAY_MANAGER: "ReplayManager",
    ServiceType.SCRIPT_PROVIDER: "ScriptProvider",
}

LEVEL_NAMES: dict[Level, str] = {
    Level.INFO: "Info",
    Level.WARN: "Warning",
    Level.ERROR: "Error",
}

EC_NAMES: dict[ErrorCategory, str] = {
    ErrorCategory.CORE: "Core",
    ErrorCategory.OFFICIAL: "Official",
    ErrorCategory.SPEED: "Speed",
    ErrorCategory.RUSH: "Rush",
    ErrorCategory.UNOFFICIAL: "Unofficial",
}


@dataclass(frozen=True)
class SvcLogProps:
    """A message logged by a server service."""

    service: ServiceType
    level: Level


@dataclass(frozen=True)
class ECLogProps:
    """An error raised while running a duel."""

    category: ErrorCategory
    replay_id: int
    turn_counter: int


SinkLogProps = Union[SvcLogProps, ECLogProps]


def timestamp_now() -> datetime:
    """The current local time."""
    return datetime.now()


def format_timestamp(ts: datetime) -> str:
    """Render a timestamp as ``[YYYY-MM-DD HH:MM:SS.mmm]`` in local time."""
    if ts.tzinfo is not None:
        ts = ts.astimezone()
    return f"[{ts:%Y-%m-%d %H:%M:%S}.{ts.microsecond // 1000:03d}]"


def stream_format(stream: TextIO, ts: datetime, props: SinkLogProps, text: str) -> None:
    """Write one log line.

    Formats:
    ``[time] [Service:name] [Level:lvl] text`` and
    ``[time] [EC:cat] [ReplayID:id] [Turn:n] text``.
    """
    if isinstance(props, SvcLogProps):
        tags = (
            f" [Service:{SVC_NAMES[ServiceType(props.service)]}]"
            f" [Level:{LEVEL_NAMES[Level(props.level)]}]"
        )
    else:
        tags = (
            f" [EC:{EC_NAMES[ErrorCategory(props.category)]}]"
            f" [ReplayID:{props.replay_id}]"
            f" [Turn:{props.turn_counter}]"
        )
    stream.write(f"{format_timestamp(ts)}{tags} {text}\n")


class Sink:
    """A log destination; this base one discards everything."""

    def log(self, ts: datetime, props: SinkLogProps, text: str) -> None:
        """Discard the message."""


class FileSink(Sink):
    """Appends log lines to a file."""

    def __init__(self, path: Union[str, os.PathLike]) -> None:
        self._file = open(path, "a", encoding="utf-8")
        self._lock = threading.Lock()

    def log(self, ts: datetime, props: SinkLogProps, text: str) -> None:
        with self._lock:
            stream_format(self._file, ts, props, text)
            self._file.flush()

    def close(self) -> None:
        self._file.close()


class StderrSink(Sink):
    """Writes log lines to standard error, serialised by a shared lock."""

    def __init__(self, lock: threading.Lock) -> None:
        self._lock = lock

    def log(self, ts: datetime, props: SinkLogProps, text: str) -> None:
        with self._lock:
            stream_format(sys.stderr, ts, props, text)


class StdoutSink(Sink):
    """Writes log lines to standard output, serialised by a shared lock."""

    def __init__(self, lock: threading.Lock) -> None:
        self._lock = lock

    def log(self, ts: datetime, props: SinkLogProps, text: str) -> None:
        with self._lock:
            stream_format(sys.stdout, ts, props, text)