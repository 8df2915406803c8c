"""
Pytest configuration and fixtures for dapshim tests.
"""
import socket
import sys
import tempfile
from pathlib import Path

import pytest

PYTHON_DIR = Path(__file__).resolve().parents[1]
if str(PYTHON_DIR) not in sys.path:
    sys.path.insert(0, str(PYTHON_DIR))


@pytest.fixture
def free_port() -> int:
    """A localhost TCP port that was free a moment ago."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def occupied_port():
    """A localhost TCP port held by a listening socket for the test's duration."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(1)
    try:
        yield sock.getsockname()[1]
    finally:
        sock.close()


@pytest.fixture
def remote_dir(monkeypatch):
    """Keep remote control sockets inside the test's temp dir (short path for AF_UNIX)."""
    directory = Path(tempfile.mkdtemp(prefix="dsh"))
    monkeypatch.setenv("DAPSHIM_REMOTE_CONTROL_DIR", str(directory))
    yield directory
    for entry in directory.iterdir():
        entry.unlink()
    directory.rmdir()
