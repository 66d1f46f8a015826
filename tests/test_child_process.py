"""Tests for the child process supervisor."""

import io
import json
import sys
import time

import pytest

from meshguard.exceptions import ChildUnavailableError
from meshguard.proxy.child_process import ChildProcess


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return False


class TestChildProcess:
    def test_empty_command_rejected(self):
        with pytest.raises(ChildUnavailableError):
            ChildProcess([])

    def test_missing_program(self):
        child = ChildProcess(["/nonexistent/meshguard-test-binary"])
        with pytest.raises(ChildUnavailableError) as exc_info:
            child.start()
        assert "error starting command" in str(exc_info.value)

    def test_streams_require_start(self):
        child = ChildProcess(["true"])
        with pytest.raises(ChildUnavailableError):
            child.stdin

    def test_round_trip(self, server_command, record_path):
        with ChildProcess(server_command, diagnostics=io.BytesIO()) as child:
            assert child.running
            assert child.pid is not None

            request = {"jsonrpc": "2.0", "id": 1, "method": "tools/list"}
            child.stdin.write(json.dumps(request).encode() + b"\n")
            child.stdin.flush()
            response = json.loads(child.stdout.readline())

        assert response["id"] == 1
        assert [t["name"] for t in response["result"]["tools"]] == [
            "read_file", "write_file", "delete_all",
        ]

    def test_stderr_is_pumped(self, server_command):
        sink = io.BytesIO()
        child = ChildProcess(server_command + ["--chatty"], diagnostics=sink)
        child.start()
        try:
            assert _wait_for(lambda: b"fake server ready" in sink.getvalue())
        finally:
            child.close()

    def test_close_kills_running_child(self):
        child = ChildProcess(
            [sys.executable, "-c", "import time; time.sleep(60)"],
            diagnostics=io.BytesIO(),
        )
        child.start()
        assert child.running

        child.close()

        assert not child.running
        assert child.returncode is not None

    def test_close_after_exit_is_quiet(self):
        child = ChildProcess([sys.executable, "-c", "pass"], diagnostics=io.BytesIO())
        child.start()
        assert _wait_for(lambda: not child.running)

        child.close()

        assert child.returncode == 0

    def test_close_before_start(self):
        ChildProcess(["true"]).close()
