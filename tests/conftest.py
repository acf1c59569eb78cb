"""
pytest configuration and fixtures.
"""

import dataclasses
import io
import os
import shutil
import tempfile
import threading
import time
from typing import Callable, Generator, Optional
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from usxfr import XferServer, XferConfig
from usxfr.core import StreamSink


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    """Poll predicate until it is true or timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def socket_dir() -> Generator[str, None, None]:
    """
    A short temporary directory for socket files.

    pytest's tmp_path can be longer than sun_path allows, so sockets
    live under /tmp directly.
    """
    base = "/tmp" if os.path.isdir("/tmp") else None
    path = tempfile.mkdtemp(prefix="usxfr-", dir=base)
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def socket_path(socket_dir: str) -> str:
    return os.path.join(socket_dir, "sv.sock")


@pytest.fixture
def config(socket_path: str) -> XferConfig:
    """Default test server configuration."""
    return XferConfig(
        socket_path=socket_path,
        poll_interval=0.05,
        log_level="DEBUG",
    )


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False  # Not a test class

    def __init__(self, server: XferServer, output: io.BytesIO):
        self.server = server
        self.output = output
        self.error: Optional[BaseException] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def path(self) -> str:
        return self.server.socket_path

    def _run(self):
        try:
            self.server.run(install_signal_handlers=False)
        except BaseException as e:
            self.error = e

    def start(self):
        """Start server in background thread and wait until it listens."""
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

        if not wait_for(lambda: self.server.is_listening or self.error is not None):
            raise RuntimeError("Server failed to start")
        if self.error is not None:
            raise self.error

    def wait_served(self, count: int, timeout: float = 5.0) -> bool:
        return wait_for(lambda: self.server.connections_served >= count, timeout)

    def join(self, timeout: float = 5.0) -> bool:
        """Wait for the server thread to exit on its own."""
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def stop(self):
        """Stop the server."""
        self.server.stop()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)


@pytest.fixture
def make_server(config: XferConfig):
    """Factory for started test servers; all are stopped at teardown."""
    started = []

    def factory(sink=None, **overrides) -> TestServer:
        output = io.BytesIO()
        if sink is None:
            sink = StreamSink(output)
        server = XferServer(dataclasses.replace(config, **overrides), sink=sink)
        test_srv = TestServer(server, output)
        test_srv.start()
        started.append(test_srv)
        return test_srv

    yield factory

    for test_srv in started:
        test_srv.stop()


@pytest.fixture
def test_server(make_server) -> TestServer:
    """A running server relaying into an in-memory buffer."""
    return make_server()
