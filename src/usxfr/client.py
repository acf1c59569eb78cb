"""
=============================================================================
STREAM CLIENT
=============================================================================

The other half of the transfer: connect to the server's socket path, send
a byte stream, then close the write side so the server sees end-of-stream.

    $ usxfr-send < some_file          # Copies some_file to the server
    $ echo hello | usxfr-send -s /tmp/us_xfr

=============================================================================
HOW THE SERVER KNOWS WE'RE DONE
=============================================================================

There is no length prefix and no terminator. The client signals the end
of its data by shutting down its sending direction:

    sock.shutdown(SHUT_WR)   → server's next read() returns 0

=============================================================================
"""

import sys
import socket
import argparse
import logging
from typing import BinaryIO

from .config import DEFAULT_SOCKET_PATH, DEFAULT_BUFFER_SIZE


logger = logging.getLogger(__name__)


def _connect(path: str) -> socket.socket:
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        sock.connect(path)
    except OSError:
        sock.close()
        raise
    return sock


def send_stream(
    path: str,
    stream: BinaryIO,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
) -> int:
    """
    Copy a binary stream to the server until the stream is exhausted.

    Args:
        path: The server's socket path.
        stream: Readable binary file object.
        buffer_size: Chunk size for each read from the stream.

    Returns:
        Total bytes sent.

    Raises:
        OSError: If the connection or a send fails.
    """
    total = 0
    with _connect(path) as sock:
        while True:
            chunk = stream.read(buffer_size)
            if not chunk:
                break
            # sendall() loops until the whole chunk is out
            sock.sendall(chunk)
            total += len(chunk)

        sock.shutdown(socket.SHUT_WR)

    logger.debug(f"Sent {total} bytes to {path}")
    return total


def send_bytes(path: str, data: bytes) -> int:
    """Send one buffer and close. Returns len(data)."""
    with _connect(path) as sock:
        sock.sendall(data)
        sock.shutdown(socket.SHUT_WR)
    return len(data)


def main(argv=None):
    """CLI entry point: copy stdin to the server."""
    parser = argparse.ArgumentParser(
        description="Send standard input to a UNIX stream transfer server",
    )
    parser.add_argument(
        "--socket-path", "-s",
        default=DEFAULT_SOCKET_PATH,
        help=f"Server socket path (default: {DEFAULT_SOCKET_PATH})",
    )
    parser.add_argument(
        "--buffer-size",
        type=int,
        default=DEFAULT_BUFFER_SIZE,
        help=f"Read size in bytes (default: {DEFAULT_BUFFER_SIZE})",
    )
    args = parser.parse_args(argv)

    try:
        send_stream(args.socket_path, sys.stdin.buffer, args.buffer_size)
    except OSError as e:
        print(f"Error: {args.socket_path}: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
