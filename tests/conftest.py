"""Shared fixtures for MeshGuard tests."""

import sys
from pathlib import Path

import pytest

from meshguard.governance import GuardLog

FAKE_SERVER = Path(__file__).parent / "fixtures" / "fake_mcp_server.py"


@pytest.fixture
def server_command():
    """Command line of the fake stdio MCP server."""
    return [sys.executable, str(FAKE_SERVER)]


@pytest.fixture
def record_path(tmp_path, monkeypatch):
    """File where the fake server records every message it receives."""
    path = tmp_path / "received.jsonl"
    monkeypatch.setenv("FAKE_MCP_RECORD", str(path))
    return path


@pytest.fixture
def log_path(tmp_path):
    return tmp_path / "logs" / "guard.log"


@pytest.fixture
def guard_log(log_path):
    log = GuardLog.open(log_path)
    yield log
    log.close()

