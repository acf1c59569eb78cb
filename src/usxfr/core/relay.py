"""
=============================================================================
STREAM RELAY
=============================================================================

Copies everything one client sends to the output sink, byte for byte.

    ┌──────────┐   read(buf, 4096)   ┌──────────────┐   write(buf[:n])   ┌────────┐
    │  client  │ ──────────────────► │ TransferBuf  │ ─────────────────► │  sink  │
    │  socket  │        n bytes      │  (bytearray) │     exactly n      │ stdout │
    └──────────┘                     └──────────────┘                    └────────┘

    n > 0   → forward exactly n bytes, read again
    n == 0  → client closed its end: close the socket, pass is DONE
    error   → ReadFailed

=============================================================================
SHORT WRITES ARE FAULTS, NOT RETRIES
=============================================================================

write() on a file descriptor may accept fewer bytes than it was given.
A robust copier would loop on the remainder. This relay deliberately
does not: if the sink takes fewer than n bytes (or fails outright), the
pass raises PartialWrite. Whether that stops the server or only this
connection is decided by the failure policy, not here.

=============================================================================
"""

import io
import os
import sys
import time
import json
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from ..errors import PartialWrite, CloseFailed
from .connection import ConnectionHandle, RelayState


logger = logging.getLogger(__name__)

# Per-connection transfer records, configurable separately:
#   logging.getLogger("usxfr.transfer").setLevel(logging.WARNING)
transfer_logger = logging.getLogger("usxfr.transfer")


# ═══════════════════════════════════════════════════════════════════════════
# OUTPUT SINKS
# ═══════════════════════════════════════════════════════════════════════════

class OutputSink(Protocol):
    """Anything that accepts bytes and reports how many it took."""

    def write(self, data) -> int:
        ...


class FileDescriptorSink:
    """
    Raw write(2) to a file descriptor. The default sink is standard output.

    Bytes go straight to the descriptor with no Python-level buffering, so
    output from sequential connections appears in order as it is relayed.
    """

    def __init__(self, fd: Optional[int] = None):
        self._fd = fd

    @property
    def fd(self) -> int:
        # Resolved on first use so a replaced sys.stdout is honored
        if self._fd is None:
            self._fd = sys.stdout.fileno()
        return self._fd

    def write(self, data) -> int:
        return os.write(self.fd, data)


class StreamSink:
    """Wraps a binary file object (e.g. sys.stdout.buffer or io.BytesIO)."""

    def __init__(self, stream: io.IOBase):
        self.stream = stream

    def write(self, data) -> int:
        written = self.stream.write(data)
        self.stream.flush()
        # Non-blocking raw streams return None when nothing could be written
        return 0 if written is None else written


# ═══════════════════════════════════════════════════════════════════════════
# TRANSFER RECORD
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class TransferRecord:
    """
    Outcome of one relay pass, emitted on the usxfr.transfer logger.

    connection_id:  ConnectionHandle.id
    bytes_relayed:  Bytes written to the sink
    chunks:         Non-empty reads
    duration_ms:    Time from first read to close
    state:          Final RelayState (DONE or ABORTED)
    close_error:    Text of a logged close failure, if any
    """

    connection_id: str
    bytes_relayed: int
    chunks: int
    duration_ms: float
    state: RelayState
    close_error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "connection_id": self.connection_id,
            "bytes_relayed": self.bytes_relayed,
            "chunks": self.chunks,
            "duration_ms": round(self.duration_ms, 2),
            "state": self.state.value,
            "close_error": self.close_error,
        }

    def to_text(self) -> str:
        text = (
            f"[{self.connection_id}] {self.state.value} "
            f"{self.bytes_relayed} bytes in {self.chunks} chunks "
            f"{self.duration_ms:.2f}ms"
        )
        if self.close_error:
            text += f" (close failed: {self.close_error})"
        return text


# ═══════════════════════════════════════════════════════════════════════════
# RELAY
# ═══════════════════════════════════════════════════════════════════════════

class StreamRelay:
    """
    Serves one connection at a time, from first read to close.

    Usage:
        relay = StreamRelay(FileDescriptorSink(), buffer_size=4096)
        record = relay.relay(conn)
    """

    def __init__(
        self,
        sink: Optional[OutputSink] = None,
        buffer_size: int = 4096,
        log_format: str = "text",
    ):
        self.sink = sink if sink is not None else FileDescriptorSink()
        self.buffer_size = buffer_size
        self.log_format = log_format

    def relay(self, conn: ConnectionHandle) -> TransferRecord:
        """
        Copy the connection's stream to the sink until end-of-stream.

        Returns:
            TransferRecord for the finished pass.

        Raises:
            ReadFailed: The socket read failed. The connection is closed.
            PartialWrite: The sink took fewer bytes than were read, or
                failed. The connection is closed.
        """
        buffer = bytearray(self.buffer_size)
        view = memoryview(buffer)
        start_time = time.monotonic()

        try:
            while True:
                n = conn.read_into(buffer)
                if n == 0:
                    break

                conn.state = RelayState.FORWARDING
                self._forward(view[:n], n)
                conn.bytes_relayed += n
                conn.chunks += 1
        except Exception:
            conn.abort()
            self._emit(self._record(conn, start_time))
            raise

        conn.state = RelayState.CLOSING
        close_error = None
        try:
            conn.close()
        except CloseFailed as e:
            logger.warning(f"[{conn.id}] {e}")
            close_error = e.reason
        conn.state = RelayState.DONE

        record = self._record(conn, start_time, close_error)
        self._emit(record)
        return record

    def _forward(self, chunk, n: int) -> None:
        try:
            written = self.sink.write(chunk)
        except OSError as e:
            raise PartialWrite(n, 0, os_error=e) from e

        if written != n:
            raise PartialWrite(n, written or 0)

    def _record(
        self,
        conn: ConnectionHandle,
        start_time: float,
        close_error: Optional[str] = None,
    ) -> TransferRecord:
        return TransferRecord(
            connection_id=conn.id,
            bytes_relayed=conn.bytes_relayed,
            chunks=conn.chunks,
            duration_ms=(time.monotonic() - start_time) * 1000,
            state=conn.state,
            close_error=close_error,
        )

    def _emit(self, record: TransferRecord) -> None:
        if self.log_format == "json":
            transfer_logger.info(json.dumps(record.to_dict()))
        else:
            transfer_logger.info(record.to_text())
