# Copyright (c) MeshGuard Contributors. All rights reserved.
# Licensed under the MIT License.
"""Supervisor for the wrapped MCP server process."""

from __future__ import annotations

import logging
import subprocess
import sys
import threading
from typing import IO, List, Optional, Sequence

from meshguard.exceptions import ChildUnavailableError

logger = logging.getLogger(__name__)

_PUMP_CHUNK = 4096
_PUMP_JOIN_TIMEOUT = 1.0


class ChildProcess:
    """
    The MCP server the guard sits in front of.

    Started once per session with three pipes. The child's stderr is copied
    to the guard's own diagnostic stream by a single background thread so
    that server diagnostics stay visible.
    """

    def __init__(self, argv: Sequence[str], diagnostics: Optional[IO[bytes]] = None):
        """
        Args:
            argv: Program and arguments; ``argv[0]`` is resolved on PATH
            diagnostics: Binary stream receiving the child's stderr
                (defaults to the guard's own stderr)
        """
        if not argv:
            raise ChildUnavailableError("command to execute is required")
        self.argv: List[str] = list(argv)
        self._diagnostics = diagnostics
        self.process: Optional[subprocess.Popen] = None
        self._pump: Optional[threading.Thread] = None

    @property
    def stdin(self) -> IO[bytes]:
        return self._require().stdin

    @property
    def stdout(self) -> IO[bytes]:
        return self._require().stdout

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    @property
    def running(self) -> bool:
        return self.process is not None and self.process.poll() is None

    @property
    def returncode(self) -> Optional[int]:
        return self.process.poll() if self.process else None

    def _require(self) -> subprocess.Popen:
        if self.process is None:
            raise ChildUnavailableError("child process not started")
        return self.process

    def start(self) -> None:
        """Spawn the child and start pumping its stderr.

        Raises:
            ChildUnavailableError: The program could not be launched.
        """
        try:
            self.process = subprocess.Popen(
                self.argv,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except (OSError, ValueError) as e:
            raise ChildUnavailableError(f"error starting command {self.argv[0]!r}: {e}") from e

        logger.info("Target server started (PID: %d)", self.process.pid)
        self._pump = threading.Thread(
            target=self._pump_diagnostics,
            name=f"meshguard-stderr-{self.process.pid}",
            daemon=True,
        )
        self._pump.start()

    def _pump_diagnostics(self) -> None:
        source = self.process.stderr
        sink = self._diagnostics
        if sink is None:
            sink = getattr(sys.stderr, "buffer", None)
        try:
            while True:
                chunk = source.read1(_PUMP_CHUNK) if hasattr(source, "read1") else source.read(_PUMP_CHUNK)
                if not chunk:
                    break
                if sink is None:
                    sys.stderr.write(chunk.decode("utf-8", errors="replace"))
                    sys.stderr.flush()
                else:
                    sink.write(chunk)
                    sink.flush()
        except (OSError, ValueError) as e:
            # Pipe or sink closed underneath us while the child shuts down.
            logger.debug("Diagnostic pump stopped: %s", e)
        logger.debug("Child stderr closed")

    def close(self) -> None:
        """Kill the child if it is still running and release its pipes."""
        if self.process is None:
            return
        if self.process.poll() is None:
            logger.debug("Killing child process %d", self.process.pid)
            try:
                self.process.kill()
            except OSError as e:
                logger.warning("Error killing child process: %s", e)
        self.process.wait()
        for pipe in (self.process.stdin, self.process.stdout):
            if pipe is None:
                continue
            try:
                pipe.close()
            except OSError as e:
                logger.debug("Error closing child pipe: %s", e)
        if self._pump is not None:
            self._pump.join(timeout=_PUMP_JOIN_TIMEOUT)
            if not self._pump.is_alive() and self.process.stderr is not None:
                self.process.stderr.close()

    def __enter__(self) -> "ChildProcess":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
