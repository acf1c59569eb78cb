"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The building blocks of the transfer server, leaf to root:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  PathBinding         Owns the socket path; clears stale entries     │
    │         │                                                            │
    │         ▼                                                            │
    │  ListenerEndpoint    socket() → bind() → listen(backlog)            │
    │         │                                                            │
    │         ▼                                                            │
    │  ConnectionAcceptor  accept() loop, one ConnectionHandle at a time  │
    │         │                                                            │
    │         ▼                                                            │
    │  StreamRelay         read → write(sink) until end-of-stream         │
    └─────────────────────────────────────────────────────────────────────┘

Service is iterative: one client is served completely before the next
one is accepted. Clients that arrive meanwhile wait in the backlog.

=============================================================================
"""

from .binding import PathBinding, max_path_bytes
from .listener import ListenerEndpoint
from .connection import ConnectionHandle, RelayState
from .acceptor import ConnectionAcceptor
from .relay import (
    StreamRelay,
    OutputSink,
    FileDescriptorSink,
    StreamSink,
    TransferRecord,
)

__all__ = [
    "PathBinding",
    "max_path_bytes",
    "ListenerEndpoint",
    "ConnectionHandle",
    "RelayState",
    "ConnectionAcceptor",
    "StreamRelay",
    "OutputSink",
    "FileDescriptorSink",
    "StreamSink",
    "TransferRecord",
]
