"""
=============================================================================
CONNECTION ACCEPTOR
=============================================================================

The main loop of the server: wait for a client, hand it over, repeat.

    ┌───────────────────────┐
    │   Listening Socket    │ ◄── Created once at startup
    │   /tmp/us_xfr         │     Never sends/receives data
    └───────────┬───────────┘
                │ accept()
                ▼
    ┌───────────────────────┐
    │  ConnectionHandle     │ ◄── One at a time. The next client waits
    │  (client socket)      │     in the backlog until this one is done.
    └───────────────────────┘

=============================================================================
STOPPING AN "INFINITE" LOOP
=============================================================================

A blocking accept() never returns if nobody connects, so a stop request
would never be noticed. The listening socket is given a short timeout
(poll_interval) instead:

    while not stopped:
        try:
            accept()          # Blocks for poll_interval at most
        except timeout:
            continue          # Nobody came; check the stop flag again

A timeout is not a failure. Any other accept() error is SERVER_FATAL:
the listening socket is assumed healthy for the whole lifetime of the
server, so there is nothing sensible to retry.

SIGINT (Ctrl+C) and SIGTERM (kill, systemd) are turned into a stop
request when the acceptor runs in the main thread.

=============================================================================
"""

import socket
import signal
import logging
import threading
from typing import Iterator, Optional

from ..errors import AcceptFailed
from .connection import ConnectionHandle
from .listener import ListenerEndpoint


logger = logging.getLogger(__name__)


class ConnectionAcceptor:
    """
    Produces ConnectionHandles from a listening endpoint.

    Usage:
        acceptor = ConnectionAcceptor(listener, poll_interval=1.0)
        for conn in acceptor.connections():   # Until acceptor.stop()
            relay.relay(conn)
    """

    def __init__(self, listener: ListenerEndpoint, poll_interval: float = 1.0):
        self.listener = listener
        self.poll_interval = poll_interval
        self.connections_accepted = 0

        # Set by stop(); checked between iterations
        self._stop_event = threading.Event()

        # Saved so they can be restored when embedded in a larger app
        self._original_handlers: dict = {}

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """
        Request the loop to end. Safe from any thread or a signal handler,
        and safe to call more than once.
        """
        if not self._stop_event.is_set():
            logger.info("Stop requested, no further connections will be accepted")
        self._stop_event.set()

    def accept(self) -> Optional[ConnectionHandle]:
        """
        Wait up to poll_interval for one client.

        Returns:
            A ConnectionHandle, or None if the wait timed out.

        Raises:
            AcceptFailed: If accept() itself fails.
        """
        sock = self.listener.sock

        try:
            sock.settimeout(self.poll_interval)
            client_socket, _ = sock.accept()
        except socket.timeout:
            return None
        except OSError as e:
            raise AcceptFailed("accept", os_error=e) from e

        self.connections_accepted += 1
        conn = ConnectionHandle(socket=client_socket)
        logger.info(f"[{conn.id}] Accepted connection #{self.connections_accepted}")
        return conn

    def connections(self) -> Iterator[ConnectionHandle]:
        """
        Yield accepted connections until stop() is called.

        The consumer must finish with each handle before asking for the
        next one; that is what keeps service strictly sequential.
        """
        while not self._stop_event.is_set():
            conn = self.accept()
            if conn is None:
                continue

            yield conn

    # ─────────────────────────────────────────────────────────────────────
    # SIGNALS
    # ─────────────────────────────────────────────────────────────────────

    def install_signal_handlers(self) -> bool:
        """
        Turn SIGINT/SIGTERM into stop(). Only possible in the main thread.

        Returns:
            True if the handlers were installed.
        """
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not in main thread, signal handlers not installed")
            return False

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.stop()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)
        return True

    def restore_signal_handlers(self) -> None:
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()
