"""Replay persistence and the process-safe counter that hands out replay IDs."""

from __future__ import annotations

import os
import struct
import threading
from pathlib import Path
from typing import Optional, Union

from filelock import FileLock

from multirole.logsinks import Level, ServiceType

_ID = struct.Struct("<Q")
_MASK64 = (1 << 64) - 1


class ReplayManager:
    """Saves replays to a directory and allocates IDs from its ``lastId`` file."""

    def __init__(self, log_handler, save: bool, directory: Union[str, os.PathLike]) -> None:
        self._lh = log_handler
        self._enabled = bool(save)
        self._dir = Path(directory)
        self._last_id = self._dir / "lastId"
        self._lock_path = self._dir / "lastId.lock"
        self._thread_lock = threading.Lock()
        self._file_lock: Optional[FileLock] = None
        if not self._enabled:
            self._log(Level.INFO, "Not saving replays")
            return
        if not self._dir.exists():
            try:
                self._dir.mkdir()
            except OSError as exc:
                raise RuntimeError("Could not create replay directory") from exc
        if not self._dir.is_dir():
            raise RuntimeError("Replay path is a file, not a directory")
        if not self._last_id.exists():
            try:
                self._last_id.write_bytes(_ID.pack(1))
            except OSError as exc:
                raise RuntimeError("Error writing initial replay ID") from exc
        if not self._lock_path.exists():
            try:
                self._lock_path.touch()
            except OSError as exc:
                raise RuntimeError("Error creating replay ID lock file") from exc
        self._file_lock = FileLock(str(self._lock_path))
        with self._file_lock:
            try:
                data = self._last_id.read_bytes()
            except OSError:
                return
            if len(data) == _ID.size:
                self._log(Level.INFO, "Current replay ID: {}", _ID.unpack(data)[0])
                return
            self._log(
                Level.WARN, "lastId size is corrupted: {} instead of {}", len(data), _ID.size
            )

    def _log(self, level: Level, text: str, *args) -> None:
        self._lh.log_service(ServiceType.REPLAY_MANAGER, level, text, *args)

    def save(self, replay_id: int, data: bytes) -> None:
        """Write a replay as ``<id>.yrpX``; failures are logged, not raised."""
        if not self._enabled:
            return
        path = self._dir / f"{replay_id}.yrpX"
        try:
            path.write_bytes(bytes(data))
        except OSError:
            self._log(Level.ERROR, "Unable to save replay {}", path)

    def new_id(self) -> int:
        """Hand out the next replay ID; 0 when saving is off or the counter fails."""
        if not self._enabled or self._file_lock is None:
            return 0
        with self._thread_lock, self._file_lock:
            try:
                data = self._last_id.read_bytes()
            except OSError:
                self._log(Level.ERROR, "lastId cannot be opened for reading")
                return 0
            if len(data) != _ID.size:
                self._log(
                    Level.ERROR, "lastId size is corrupted: {} instead of {}", len(data), _ID.size
                )
                return 0
            (current,) = _ID.unpack(data)
            try:
                self._last_id.write_bytes(_ID.pack((current + 1) & _MASK64))
            except OSError:
                self._log(Level.ERROR, "Cannot write new replay ID")
                return 0
            return current