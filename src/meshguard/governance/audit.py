# Copyright (c) MeshGuard Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Guard Log

Append-only, timestamped record of every request the guard receives and
every response or error it sends. One session owns the file and is its
only writer; nothing is ever rewritten or rotated.

Each line reads ``[<timestamp>] <label>: <payload>``.
"""

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import IO, Any, Optional, Union

from pydantic import BaseModel, Field

from meshguard.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

LOG_FILE_NAME = "guard.log"


def _now() -> datetime:
    return datetime.now().astimezone()


class GuardLogEntry(BaseModel):
    """Single guard log line."""

    timestamp: datetime = Field(default_factory=_now)
    label: Optional[str] = None
    payload: str = ""

    def render(self) -> str:
        ts = self.timestamp.isoformat(timespec="seconds")
        if self.label:
            return f"[{ts}] {self.label}: {self.payload}"
        return f"[{ts}] {self.payload}"


class GuardLog:
    """
    Append-only guard log.

    Usage:
        with GuardLog.open_in(log_dir) as log:
            log.log("Guard proxy started")
            log.log_json("Received request", request)
    """

    def __init__(self, stream: IO[str], path: Optional[Path] = None):
        self._stream = stream
        self.path = path
        self.entries_written = 0

    @classmethod
    def open(cls, path: Union[str, Path]) -> "GuardLog":
        """Open ``path`` for appending, creating it (mode 0600) if needed."""
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True, mode=0o750)
            fd = os.open(path, os.O_CREAT | os.O_APPEND | os.O_WRONLY, 0o600)
        except OSError as e:
            raise ConfigurationError(f"error opening log file {path}: {e}") from e
        stream = os.fdopen(fd, "a", encoding="utf-8")
        logger.info("Logging to %s", path)
        return cls(stream, path=path)

    @classmethod
    def open_in(cls, log_dir: Union[str, Path]) -> "GuardLog":
        return cls.open(Path(log_dir) / LOG_FILE_NAME)

    @property
    def closed(self) -> bool:
        return self._stream.closed

    def write(self, entry: GuardLogEntry) -> None:
        if self._stream.closed:
            logger.debug("Guard log closed, dropping entry: %s", entry.payload)
            return
        self._stream.write(entry.render() + "\n")
        self._stream.flush()
        self.entries_written += 1

    def log(self, message: str) -> None:
        """Append a plain message."""
        self.write(GuardLogEntry(payload=message))

    def log_json(self, label: str, value: Any) -> None:
        """Append ``value`` as indented JSON under ``label``."""
        try:
            payload = json.dumps(value, indent=2, default=str)
        except (TypeError, ValueError) as e:
            self.log(f"Error marshaling {label}: {e}")
            return
        self.write(GuardLogEntry(label=label, payload=payload))

    def close(self) -> None:
        if not self._stream.closed:
            self._stream.close()

    def __enter__(self) -> "GuardLog":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
