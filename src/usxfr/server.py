"""
=============================================================================
TRANSFER SERVER
=============================================================================

Ties the core components together into a runnable server.

=============================================================================
LIFECYCLE
=============================================================================

    XferServer.run()
        │
        ├──► setup (once)                        faults: SETUP_FATAL
        │       PathBinding.validate()
        │       PathBinding.remove_stale()
        │       ListenerEndpoint.open()          socket/bind/listen
        │
        ├──► accept loop                         faults: SERVER_FATAL
        │       for conn in acceptor.connections():
        │           relay.relay(conn)            faults: classify()
        │               ├── LOGGED       → log, accept next client
        │               └── SERVER_FATAL → clean up, re-raise
        │
        └──► cleanup (always)
                restore signal handlers
                close listener, unlink socket file

There is no concurrency: the next client is accepted only after the
current relay pass has finished. A slow or silent client therefore holds
up everybody behind it. There are no read timeouts.

=============================================================================
"""

import logging
import threading
from typing import Optional

from .config import XferConfig
from .errors import XferError, Disposition, classify
from .core import (
    PathBinding,
    ListenerEndpoint,
    ConnectionAcceptor,
    StreamRelay,
    OutputSink,
)


logger = logging.getLogger(__name__)


class XferServer:
    """
    Iterative UNIX stream socket server that copies client data to a sink.

    Usage:
        server = XferServer(XferConfig(socket_path="/tmp/us_xfr"))
        server.run()               # Blocks until stop() or a fatal fault

    From another thread:
        server.wait_until_listening(timeout=5)
        ...
        server.stop()
    """

    def __init__(
        self,
        config: Optional[XferConfig] = None,
        sink: Optional[OutputSink] = None,
    ):
        self.config = config or XferConfig()
        self.config.validate()

        self._listener = ListenerEndpoint(
            PathBinding(self.config.socket_path),
            backlog=self.config.backlog,
            unlink_on_close=self.config.unlink_on_close,
        )
        self._acceptor = ConnectionAcceptor(
            self._listener,
            poll_interval=self.config.poll_interval,
        )
        self._relay = StreamRelay(
            sink,
            buffer_size=self.config.buffer_size,
            log_format=self.config.log_format,
        )

        self.connections_served = 0
        self.connections_failed = 0
        self._listening = threading.Event()

    @property
    def socket_path(self) -> str:
        return self.config.socket_path

    @property
    def is_listening(self) -> bool:
        return self._listening.is_set()

    def wait_until_listening(self, timeout: Optional[float] = None) -> bool:
        """Block until the listener is open. Returns False on timeout."""
        return self._listening.wait(timeout)

    def stop(self) -> None:
        """Ask the server to stop after the current connection."""
        self._acceptor.stop()

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(self, install_signal_handlers: bool = True) -> None:
        """
        Set up the listener and serve clients until stopped.

        Raises:
            XferError: Any SETUP_FATAL fault, or a SERVER_FATAL fault
                while serving.
        """
        self._setup_logging()

        logger.info(f"Starting transfer server on {self.socket_path}")
        self._listener.open()
        self._listening.set()

        if install_signal_handlers:
            self._acceptor.install_signal_handlers()

        try:
            self._serve()
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def _serve(self) -> None:
        for conn in self._acceptor.connections():
            try:
                self._relay.relay(conn)
            except XferError as e:
                if classify(e, self.config.failure_mode) is not Disposition.LOGGED:
                    logger.error(f"[{conn.id}] Fatal: {e}")
                    raise
                self.connections_failed += 1
                logger.error(f"[{conn.id}] Connection dropped: {e}")
            self.connections_served += 1

    def _shutdown(self) -> None:
        logger.info("Shutting down server...")
        self._acceptor.restore_signal_handlers()
        self._listening.clear()
        self._listener.close()
        logger.info(f"Server stopped after {self.connections_served} connections")

    def _setup_logging(self) -> None:
        """Configure logging based on config. All output goes to stderr."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("usxfr").setLevel(level)
