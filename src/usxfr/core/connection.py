"""
=============================================================================
CONNECTION HANDLE
=============================================================================

One accepted client. Created by the acceptor, consumed by the relay, and
closed before the next client is accepted. Never shared.

=============================================================================
A STREAM SOCKET IS A BYTE STREAM, NOT A MESSAGE PROTOCOL!
=============================================================================

    Client sends:
        write("hello ")
        write("world")

    Server might read ANY of these:
        read() → "hello world"   (both combined)
        read() → "hel"           (partial)
        read() → "lo world"      (the rest)

The relay therefore never assumes anything about chunk boundaries. It
reads whatever is there and forwards exactly that many bytes. The only
signal that carries meaning is a read of ZERO bytes: the client closed
its end, and the stream is complete.

=============================================================================
RELAY STATE MACHINE
=============================================================================

    AWAITING_DATA ──(n > 0)──► FORWARDING ──► AWAITING_DATA
          │
          ├──(n == 0)──► CLOSING ──► DONE
          │
          └──(error)───► ABORTED

A failing close() after end-of-stream still ends in DONE; it is only
logged.

=============================================================================
"""

import socket
import time
import uuid
import logging
from enum import Enum
from dataclasses import dataclass, field

from ..errors import ReadFailed, CloseFailed


logger = logging.getLogger(__name__)


class RelayState(Enum):
    """Lifecycle of one relay pass."""
    AWAITING_DATA = "awaiting_data"  # Blocked in read()
    FORWARDING = "forwarding"        # Writing the chunk to the sink
    CLOSING = "closing"              # End-of-stream seen, closing socket
    DONE = "done"                    # Finished normally
    ABORTED = "aborted"              # A read or write fault ended the pass


@dataclass
class ConnectionHandle:
    """
    Wraps an accepted client socket.

    Attributes:
        socket: The connected socket returned by accept().
        id: Short identifier for log correlation.
        state: Current relay state.
        accepted_at: When accept() returned this connection.
        bytes_relayed: Bytes forwarded to the sink so far.
        chunks: Number of non-empty reads.
    """

    socket: socket.socket
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: RelayState = RelayState.AWAITING_DATA
    accepted_at: float = field(default_factory=time.monotonic)
    bytes_relayed: int = 0
    chunks: int = 0
    _closed: bool = field(default=False, repr=False)

    def __post_init__(self):
        # The listener polls with a timeout; the client socket must block
        self.socket.setblocking(True)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def age(self) -> float:
        return time.monotonic() - self.accepted_at

    def read_into(self, buffer) -> int:
        """
        Read up to len(buffer) bytes into buffer.

        Returns:
            Number of bytes read; 0 means the client closed its end.

        Raises:
            ReadFailed: On any socket error, including a reset.
        """
        self.state = RelayState.AWAITING_DATA
        try:
            return self.socket.recv_into(buffer)
        except OSError as e:
            raise ReadFailed("read", os_error=e) from e

    def close(self) -> None:
        """
        Close the client socket.

        Raises:
            CloseFailed: If the OS reports an error on close.
        """
        if self._closed:
            return
        self._closed = True
        try:
            self.socket.close()
        except OSError as e:
            raise CloseFailed("close", os_error=e) from e
        logger.debug(f"[{self.id}] Connection closed after {self.bytes_relayed} bytes")

    def abort(self) -> None:
        """Close after a fault; the fault being handled takes precedence."""
        self.state = RelayState.ABORTED
        try:
            self.close()
        except CloseFailed as e:
            logger.debug(f"[{self.id}] Close after abort also failed: {e}")
