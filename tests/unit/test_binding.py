"""
Unit tests for socket path binding and the listening endpoint.
"""

import logging
import os
import socket
import stat

import pytest

from usxfr.core import PathBinding, ListenerEndpoint, max_path_bytes
from usxfr.errors import AddressTooLong, StaleRemovalFailed, BindFailed, ListenFailed
from usxfr.core import binding as binding_module


def too_long_path(socket_dir: str) -> str:
    name = "x" * (max_path_bytes() + 1 - len(socket_dir) - 1)
    return os.path.join(socket_dir, name)


def bound_socket(path: str) -> socket.socket:
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    sock.bind(path)
    return sock


class TestPathBinding:
    """Tests for PathBinding."""

    def test_validate_accepts_max_length(self, socket_dir):
        path = os.path.join(socket_dir, "x" * (max_path_bytes() - len(socket_dir) - 1))
        assert len(os.fsencode(path)) == max_path_bytes()

        PathBinding(path).validate()

    def test_validate_rejects_too_long(self, socket_dir):
        path = too_long_path(socket_dir)

        with pytest.raises(AddressTooLong) as exc_info:
            PathBinding(path).validate()

        assert "too long" in str(exc_info.value)

    def test_length_counts_encoded_bytes(self, socket_dir):
        """Non-ASCII characters take more than one byte each."""
        binding = PathBinding(os.path.join(socket_dir, "é"))
        assert binding.encoded_length == len(socket_dir) + 1 + 2

    def test_remove_stale_file(self, socket_path):
        with open(socket_path, "w") as fh:
            fh.write("left over")

        PathBinding(socket_path).remove_stale()

        assert not os.path.exists(socket_path)

    def test_remove_stale_missing_is_fine(self, socket_path):
        PathBinding(socket_path).remove_stale()
        assert not os.path.exists(socket_path)

    def test_remove_stale_directory_fails(self, socket_path):
        os.mkdir(socket_path)

        with pytest.raises(StaleRemovalFailed) as exc_info:
            PathBinding(socket_path).remove_stale()

        assert exc_info.value.operation == f"remove-{socket_path}"
        assert isinstance(exc_info.value.os_error, OSError)

    def test_unlink_leaves_regular_files_alone(self, socket_path):
        with open(socket_path, "w") as fh:
            fh.write("not ours")

        PathBinding(socket_path).unlink()

        assert os.path.exists(socket_path)

    def test_too_long_is_not_reported_as_bind(self, socket_dir):
        with pytest.raises(AddressTooLong) as exc_info:
            PathBinding(too_long_path(socket_dir)).validate()

        assert exc_info.value.operation == "socket path"
        assert str(exc_info.value).startswith("socket path: too long:")

    def test_unlink_removes_claimed_socket(self, socket_path):
        binding = PathBinding(socket_path)
        sock = bound_socket(socket_path)
        binding.claim()

        binding.unlink()
        sock.close()

        assert not os.path.exists(socket_path)

    def test_unlink_keeps_socket_bound_by_someone_else(self, socket_path):
        """The path was taken over after we bound it."""
        binding = PathBinding(socket_path)
        ours = bound_socket(socket_path)
        binding.claim()

        os.remove(socket_path)
        theirs = bound_socket(socket_path)
        try:
            binding.unlink()
            assert stat.S_ISSOCK(os.stat(socket_path).st_mode)
        finally:
            ours.close()
            theirs.close()

    def test_unlink_error_is_logged(self, socket_path, monkeypatch, caplog):
        binding = PathBinding(socket_path)
        sock = bound_socket(socket_path)
        binding.claim()

        def denied(path):
            raise PermissionError(13, "Permission denied", path)

        try:
            with monkeypatch.context() as m:
                m.setattr(binding_module.os, "unlink", denied)
                with caplog.at_level(logging.WARNING):
                    binding.unlink()
        finally:
            sock.close()

        assert any("Permission denied" in r.getMessage() for r in caplog.records)
        assert os.path.exists(socket_path)


class TestListenerEndpoint:
    """Tests for ListenerEndpoint."""

    def test_open_creates_socket_file(self, socket_path):
        listener = ListenerEndpoint(PathBinding(socket_path), backlog=5)

        with listener:
            assert listener.is_open
            assert stat.S_ISSOCK(os.stat(socket_path).st_mode)
            assert listener.sock.family == socket.AF_UNIX

        assert not listener.is_open
        assert not os.path.exists(socket_path)

    def test_open_replaces_stale_file(self, socket_path):
        """A leftover from a crashed run does not block startup."""
        with open(socket_path, "w") as fh:
            fh.write("stale")

        with ListenerEndpoint(PathBinding(socket_path)):
            assert stat.S_ISSOCK(os.stat(socket_path).st_mode)

    def test_open_replaces_stale_socket(self, socket_path):
        # Bound but never closed cleanly: the file stays behind
        old = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        old.bind(socket_path)
        old.close()
        assert os.path.exists(socket_path)

        with ListenerEndpoint(PathBinding(socket_path)) as listener:
            assert listener.is_open

    def test_close_keeps_file_when_configured(self, socket_path):
        listener = ListenerEndpoint(PathBinding(socket_path), unlink_on_close=False)
        listener.open()
        listener.close()

        assert os.path.exists(socket_path)

    def test_close_is_idempotent(self, socket_path):
        listener = ListenerEndpoint(PathBinding(socket_path))
        listener.open()
        listener.close()
        listener.close()

    def test_too_long_creates_nothing(self, socket_dir, monkeypatch):
        path = too_long_path(socket_dir)
        listener = ListenerEndpoint(PathBinding(path))
        created = []
        monkeypatch.setattr(listener, "_create_socket", lambda: created.append(1))

        with pytest.raises(AddressTooLong):
            listener.open()

        assert created == []
        assert os.listdir(socket_dir) == []
        assert not listener.is_open

    def test_unremovable_entry_creates_no_socket(self, socket_path, monkeypatch):
        os.mkdir(socket_path)
        listener = ListenerEndpoint(PathBinding(socket_path))
        created = []
        monkeypatch.setattr(listener, "_create_socket", lambda: created.append(1))

        with pytest.raises(StaleRemovalFailed):
            listener.open()

        assert created == []

    def test_bind_fails_in_missing_directory(self, socket_dir):
        path = os.path.join(socket_dir, "missing", "sv.sock")

        with pytest.raises(BindFailed) as exc_info:
            ListenerEndpoint(PathBinding(path)).open()

        assert exc_info.value.operation == "bind"

    def test_socket_creation_failure(self, socket_path, monkeypatch):
        listener = ListenerEndpoint(PathBinding(socket_path))

        def fail():
            raise OSError(24, "Too many open files")

        monkeypatch.setattr(listener, "_create_socket", fail)

        with pytest.raises(BindFailed) as exc_info:
            listener.open()

        assert exc_info.value.operation == "socket"

    def test_listen_failure_closes_socket(self, socket_path, monkeypatch):
        listener = ListenerEndpoint(PathBinding(socket_path))
        real = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)

        class NoListen:
            def bind(self, path):
                real.bind(path)

            def listen(self, backlog):
                raise OSError(95, "Operation not supported")

            def close(self):
                real.close()

        monkeypatch.setattr(listener, "_create_socket", NoListen)

        with pytest.raises(ListenFailed):
            listener.open()

        assert real.fileno() == -1
        assert not listener.is_open
        assert not os.path.exists(socket_path)
