# Copyright (c) MeshGuard Contributors. All rights reserved.
# Licensed under the MIT License.
"""
MeshGuard Session

A filtering proxy for stdio MCP servers. The session sits between one MCP
client (reading our stdin, writing our stdout) and one server child process:

- Hides tools, prompts and resources that the policy filters out of list
  results
- Answers calls/reads/gets of filtered entities with a "not found" error
  instead of forwarding them
- Forwards everything else unchanged
- Appends every request, response and error to the guard log

At most one request is outstanding to the child at a time: the Nth
request forwarded is answered by the Nth message the child writes.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import IO, Any, Mapping, Optional, Sequence, Union

from meshguard.config import default_log_dir
from meshguard.exceptions import (
    ChildUnavailableError,
    MeshGuardError,
    PolicyViolationError,
    ProtocolDecodeError,
)
from meshguard.governance.audit import GuardLog
from meshguard.governance.policy import GuardPolicy
from meshguard.proxy.child_process import ChildProcess
from meshguard.proxy.filters import ResponseFilter, is_list_method
from meshguard.proxy.gate import RequestGate
from meshguard.proxy.protocol import (
    METHOD_NOT_FOUND,
    SERVER_ERROR,
    MessageReader,
    Request,
    error_response,
    write_frame,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


class GuardSession:
    """
    One run of the guard: one client stream, one child process.

    The guard log is borrowed; closing it is left to the caller.
    """

    def __init__(
        self,
        command: Sequence[str],
        policy: GuardPolicy,
        audit_log: GuardLog,
        client_in: Optional[IO[bytes]] = None,
        client_out: Optional[IO[bytes]] = None,
        diagnostics: Optional[IO[bytes]] = None,
    ):
        """
        Args:
            command: Argument vector of the MCP server to wrap
            policy: Allow/deny rules, fixed for the session
            audit_log: Guard log to append to
            client_in: Binary stream of client requests (default: stdin)
            client_out: Binary stream for responses (default: stdout)
            diagnostics: Binary stream receiving the child's stderr
        """
        self.command = list(command)
        self.policy = policy
        self.audit_log = audit_log
        self.client_in = client_in if client_in is not None else sys.stdin.buffer
        self.client_out = client_out if client_out is not None else sys.stdout.buffer
        self.diagnostics = diagnostics

        self.gate = RequestGate(policy, audit_log)
        self.response_filter = ResponseFilter(policy, audit_log)
        self.child: Optional[ChildProcess] = None
        self.last_request_id: Any = None

    def run(self) -> int:
        """
        Launch the child and serve client requests until the client hangs up.

        Returns:
            ``EXIT_OK`` after a clean client disconnect.

        Raises:
            ChildUnavailableError: The child could not be started or exited
                while a request was outstanding.
            ProtocolDecodeError: The client sent something that is not a
                JSON-RPC message.
        """
        self.audit_log.log(f"Starting guard proxy for command: {' '.join(self.command)}")
        self.child = ChildProcess(self.command, diagnostics=self.diagnostics)
        try:
            self.child.start()
        except ChildUnavailableError as e:
            self.audit_log.log(f"Error starting child process: {e}")
            raise

        try:
            return self._serve(self.child)
        finally:
            self.child.close()
            self.audit_log.log("Guard proxy stopped")

    def _serve(self, child: ChildProcess) -> int:
        client_reader = MessageReader(self.client_in, source="client")
        child_reader = MessageReader(child.stdout, source="child")

        self.audit_log.log("Guard proxy started, waiting for requests...")
        logger.info("Guard proxy started, waiting for requests...")

        while True:
            logger.debug("Waiting for request...")
            try:
                frame = client_reader.read()
                if frame is None:
                    self.audit_log.log("Client disconnected (EOF)")
                    logger.info("Client disconnected")
                    return EXIT_OK
                request = Request.from_frame(frame)
            except ProtocolDecodeError as e:
                self.audit_log.log(f"Error decoding request: {e}")
                logger.error("Error decoding request: %s", e)
                raise

            self.audit_log.log_json("Received request", request.to_dict())
            logger.debug("Received request: %s (ID: %s)", request.method, request.id)
            self.last_request_id = request.id

            if request.is_notification:
                self.audit_log.log(f"Received notification: {request.method}")
                logger.debug("Consumed notification %s", request.method)
                continue

            try:
                self.gate.check(request)
            except PolicyViolationError as e:
                self._write_error(str(e))
                continue

            self._exchange(child, child_reader, request)

    def _exchange(self, child: ChildProcess, child_reader: MessageReader, request: Request) -> None:
        """Forward one request and relay the child's single reply."""
        try:
            write_frame(child.stdin, request.raw)
        except (OSError, ValueError) as e:
            self.audit_log.log(f"Error forwarding request to child: {e}")
            logger.error("Error forwarding request to child: %s", e)
            self._write_error(f"error forwarding request: {e}")
            return

        try:
            frame = child_reader.read()
            if frame is not None and not isinstance(frame.value, dict):
                raise ProtocolDecodeError(
                    f"expected a JSON object, got {type(frame.value).__name__}",
                    source="child",
                    raw=frame.raw,
                )
        except ProtocolDecodeError as e:
            self.audit_log.log(f"Error reading response from child: {e}")
            logger.warning("Error reading response from child: %s", e)
            self._write_error(f"error reading response: {e}")
            return

        if frame is None:
            self.audit_log.log("Child process disconnected (EOF)")
            logger.error("Child process disconnected unexpectedly")
            self._write_error("child process disconnected unexpectedly")
            raise ChildUnavailableError("child process disconnected unexpectedly")

        response = frame.value
        self._check_correlation(request, response)

        if is_list_method(request.method):
            response = self.response_filter.apply(request.method, response)
            self._send(response, label="Sending response")
        else:
            self._send(response, label="Sending response", raw=frame.raw)

    def _check_correlation(self, request: Request, response: Any) -> None:
        # Replies are matched by position, never by id.
        if isinstance(response, dict) and "id" in response and response["id"] != request.id:
            self.audit_log.log(
                f"Response id {response['id']!r} does not match request id {request.id!r}"
            )
            logger.warning(
                "Child replied with id %r to request id %r", response["id"], request.id
            )

    def _write_error(self, message: str) -> None:
        code = METHOD_NOT_FOUND if message == "method not found" else SERVER_ERROR
        self._send(
            error_response(self.last_request_id, message, code=code),
            label="Sending error response",
        )

    def _send(self, message: Any, label: str, raw: Optional[bytes] = None) -> None:
        self.audit_log.log_json(label, message)
        try:
            write_frame(self.client_out, raw if raw is not None else message)
        except (OSError, ValueError) as e:
            self.audit_log.log(f"Error sending response to client: {e}")
            logger.error("Error sending response to client: %s", e)


def run_guard(
    command: Sequence[str],
    allow: Optional[Mapping[str, Sequence[str]]] = None,
    deny: Optional[Mapping[str, Sequence[str]]] = None,
    log_path: Optional[Union[str, Path]] = None,
    policy: Optional[GuardPolicy] = None,
    client_in: Optional[IO[bytes]] = None,
    client_out: Optional[IO[bytes]] = None,
    diagnostics: Optional[IO[bytes]] = None,
) -> int:
    """
    Run a guard session to completion and return the process exit status.

    Either pass ``allow``/``deny`` pattern maps or a prebuilt ``policy``.
    ``log_path`` defaults to ``guard.log`` in the configured log directory.

    Returns:
        0 after a clean client disconnect, 1 on any fatal failure.
    """
    if policy is None:
        policy = GuardPolicy.from_patterns(allow, deny)
    audit_log = GuardLog.open(log_path) if log_path else GuardLog.open_in(default_log_dir())

    for line in policy.describe():
        logger.debug(line)

    session = GuardSession(
        command,
        policy,
        audit_log,
        client_in=client_in,
        client_out=client_out,
        diagnostics=diagnostics,
    )
    try:
        return session.run()
    except MeshGuardError as e:
        audit_log.log(f"Guard proxy failed: {e}")
        logger.error("Guard proxy failed: %s", e)
        return EXIT_FAILURE
    finally:
        audit_log.close()
