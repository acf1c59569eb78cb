"""
=============================================================================
LISTENING ENDPOINT
=============================================================================

The passive socket of the server. It is created once at startup and lives
until the server stops; it never carries data itself.

SOCKET LIFECYCLE (Server Side, AF_UNIX):
────────────────────────────────────────

    0. validate    Path must fit in sun_path       → AddressTooLong
       remove      Clear a stale file from last run → StaleRemovalFailed

    1. socket()    socket(AF_UNIX, SOCK_STREAM)     → BindFailed("socket")

    2. bind()      Create the socket file           → BindFailed
                   └─ EADDRINUSE: something is already bound there
                   └─ ENOENT/EACCES: directory missing or not writable

    3. listen()    Start queueing connections       → ListenFailed
                   └─ backlog = how many may wait while we are busy

Every failure here is SETUP_FATAL: the server never reaches its accept
loop. Whatever was created before the failure is closed again, so a
failed open() leaves no socket behind.

=============================================================================
"""

import socket
import logging
from typing import Optional

from ..errors import BindFailed, ListenFailed
from .binding import PathBinding


logger = logging.getLogger(__name__)


class ListenerEndpoint:
    """
    The listening AF_UNIX socket.

    Usage:
        with ListenerEndpoint(PathBinding("/tmp/us_xfr"), backlog=5) as listener:
            client, _ = listener.sock.accept()
    """

    def __init__(
        self,
        binding: PathBinding,
        backlog: int = 5,
        unlink_on_close: bool = True,
    ):
        self.binding = binding
        self.backlog = backlog
        self.unlink_on_close = unlink_on_close
        self._socket: Optional[socket.socket] = None

    @property
    def path(self) -> str:
        return self.binding.path

    @property
    def is_open(self) -> bool:
        return self._socket is not None

    @property
    def sock(self) -> socket.socket:
        """The bound, listening socket."""
        if self._socket is None:
            raise RuntimeError("Listener is not open")
        return self._socket

    def _create_socket(self) -> socket.socket:
        return socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)

    def open(self) -> socket.socket:
        """
        Validate, clean up, create, bind and listen.

        Returns:
            The listening socket.

        Raises:
            AddressTooLong, StaleRemovalFailed, BindFailed, ListenFailed
        """
        if self._socket is not None:
            return self._socket

        # Both checks run before any socket exists
        self.binding.validate()
        self.binding.remove_stale()

        try:
            sock = self._create_socket()
        except OSError as e:
            raise BindFailed("socket", os_error=e) from e

        try:
            sock.bind(self.path)
        except OSError as e:
            sock.close()
            logger.error(f"Failed to bind to {self.path}: {e}")
            raise BindFailed("bind", os_error=e) from e

        self.binding.claim()
        logger.info(f"Bound to {self.path}")

        try:
            sock.listen(self.backlog)
        except OSError as e:
            sock.close()
            self.binding.unlink()
            raise ListenFailed("listen", os_error=e) from e

        self._socket = sock
        logger.info(f"Listening on {self.path} (backlog={self.backlog})")
        return sock

    def close(self) -> None:
        """Close the socket and remove its file. Safe to call twice."""
        if self._socket is None:
            return

        try:
            self._socket.close()
        except OSError as e:
            logger.warning(f"Error closing listener: {e}")
        self._socket = None

        if self.unlink_on_close:
            self.binding.unlink()

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
