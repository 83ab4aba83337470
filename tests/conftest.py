"""Pytest configuration and fixtures."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from unittest import mock

import pytest

# Project root
PROJECT_ROOT = Path(__file__).parent.parent

# Add src to the Python path for uninstalled runs
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

FIXTURES_DIR = PROJECT_ROOT / "tests" / "fixtures"
FAKE_CLI_PATH = FIXTURES_DIR / "fake_cli.py"

from cmdexec.config import reload_config  # noqa: E402


@pytest.fixture
def fake_cli() -> list[str]:
    """Argv prefix that runs the fake program with the current interpreter."""
    return [sys.executable, str(FAKE_CLI_PATH)]


@pytest.fixture(autouse=True)
def fast_termination():
    """Short termination timeouts so cancellation tests finish quickly."""
    env = {"CMDEXEC_TERM_TIMEOUT": "0.5", "CMDEXEC_KILL_TIMEOUT": "0.5"}
    with mock.patch.dict(os.environ, env, clear=False):
        reload_config()
        yield
    reload_config()


def pid_alive(pid: int) -> bool:
    """Whether a process with ``pid`` still exists (zombies count as gone)."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    try:
        with open(f"/proc/{pid}/stat", encoding="utf-8") as f:
            return f.read().split(")")[-1].split()[0] != "Z"
    except OSError:
        return True
