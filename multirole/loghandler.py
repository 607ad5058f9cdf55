"""Routes service and duel error messages to their configured sinks, and writes room logs."""

from __future__ import annotations

import os
import threading
import time
from pathlib import Path
from typing import Optional, Union

from multirole.discord import DiscordWebhookSink
from multirole.logsinks import (
    ECLogProps,
    ErrorCategory,
    FileSink,
    Level,
    ServiceType,
    Sink,
    StderrSink,
    StdoutSink,
    SvcLogProps,
    format_timestamp,
    timestamp_now,
)

_DEFAULT_RID_FORMAT = "\nReplay ID: {0}"

_SERVICE_SINK_NAMES: dict[ServiceType, str] = {
    ServiceType.GIT_REPO: "gitRepo",
    ServiceType.MULTIROLE: "multirole",
    ServiceType.BANLIST_PROVIDER: "banlistProvider",
    ServiceType.CORE_PROVIDER: "coreProvider",
    ServiceType.DATA_PROVIDER: "dataProvider",
    ServiceType.LOG_HANDLER: "logHandler",
    ServiceType.REPLAY_MANAGER: "replayManager",
    ServiceType.SCRIPT_PROVIDER: "scriptProvider",
}

_EC_SINK_NAMES: dict[ErrorCategory, str] = {
    ErrorCategory.CORE: "core",
    ErrorCategory.OFFICIAL: "official",
    ErrorCategory.SPEED: "speed",
    ErrorCategory.RUSH: "rush",
    ErrorCategory.UNOFFICIAL: "other",
}


def _format(text: str, args: tuple) -> str:
    return text.format(*args) if args else text


class RoomLogger:
    """Writes timestamped lines about one room to its own file."""

    def __init__(self, path: Union[str, os.PathLike]) -> None:
        try:
            self._file = open(path, "w", encoding="utf-8")
        except OSError as exc:
            raise RuntimeError(f"Room log file is not open: {exc}") from exc

    def log(self, text: str, *args) -> None:
        self._file.write(f"{format_timestamp(timestamp_now())} {_format(text, args)}\n")
        self._file.flush()

    def close(self) -> None:
        self._file.close()

    def __enter__(self) -> RoomLogger:
        return self

    def __exit__(self, *args) -> None:
        self.close()


class LogHandler:
    """Holds one sink per service and per duel error category, built from configuration."""

    def __init__(self, cfg: dict) -> None:
        room_cfg = cfg["roomLogging"]
        self.log_rooms = bool(room_cfg["enabled"])
        self.room_logs_dir = Path(room_cfg["path"])
        self._stderr_lock = threading.Lock()
        self._stdout_lock = threading.Lock()
        self._service_sinks = {
            svc: self._make_sink(cfg["serviceSinks"][name])
            for svc, name in _SERVICE_SINK_NAMES.items()
        }
        self._ec_sinks = {
            cat: self._make_sink(cfg["ecSinks"][name]) for cat, name in _EC_SINK_NAMES.items()
        }
        if not self.log_rooms:
            return
        if not self.room_logs_dir.exists():
            try:
                self.room_logs_dir.mkdir()
            except OSError as exc:
                raise RuntimeError("Could not create room logging directory") from exc
        if not self.room_logs_dir.is_dir():
            raise RuntimeError("Room logging path is a file, not a directory")

    def _make_sink(self, entry: dict) -> Sink:
        kind = entry["type"]
        props = entry["properties"]
        if kind == "discordWebhook":
            return DiscordWebhookSink(props["uri"], props.get("ridFormat", _DEFAULT_RID_FORMAT))
        if kind == "file":
            return FileSink(props["path"])
        if kind == "stderr":
            return StderrSink(self._stderr_lock)
        if kind == "stdout":
            return StdoutSink(self._stdout_lock)
        if kind == "null":
            return Sink()
        raise ValueError("Wrong type of sink!")

    def log_service(self, svc: ServiceType, level: Level, text: str, *args) -> None:
        """Log a service message; extra arguments fill ``{}`` fields in the text."""
        sink = self._service_sinks[ServiceType(svc)]
        sink.log(timestamp_now(), SvcLogProps(ServiceType(svc), Level(level)), _format(text, args))

    def log_error_category(
        self, category: ErrorCategory, replay_id: int, turn_counter: int, text: str, *args
    ) -> None:
        """Log an error that happened during a duel."""
        cat = ErrorCategory(category)
        self._ec_sinks[cat].log(
            timestamp_now(), ECLogProps(cat, replay_id, turn_counter), _format(text, args)
        )

    def make_room_logger(self, room_id: int) -> Optional[RoomLogger]:
        """A logger for a new room, or None if room logging is off or fails."""
        if not self.log_rooms:
            return None
        path = self.room_logs_dir / f"{time.time_ns()}-{room_id}.log"
        try:
            return RoomLogger(path)
        except RuntimeError as exc:
            self.log_service(
                ServiceType.LOG_HANDLER, Level.ERROR, "Cannot create room logger: {}", exc
            )
            return None