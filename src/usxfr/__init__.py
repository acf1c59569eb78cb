"""
=============================================================================
USXFR - UNIX Domain Stream Socket Transfer Server
=============================================================================

An iterative server that listens on a UNIX domain socket and copies
everything each client sends to standard output.

=============================================================================
PROJECT OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         USXFR ARCHITECTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   client 1 ─┐                                                        │
    │   client 2 ─┼──► /tmp/us_xfr ──► accept ──► relay ──► stdout        │
    │   client 3 ─┘     (backlog 5)     (one at a time)                   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Data from successive clients is appended to the same sink, with nothing
in between. One client is served completely before the next is accepted.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    usxfr/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m usxfr)
    ├── server.py            # XferServer: wires everything together
    ├── config.py            # XferConfig dataclass, FailureMode
    ├── errors.py            # Fault taxonomy and classify()
    ├── client.py            # Companion sender (usxfr-send)
    └── core/
        ├── binding.py       # Socket path checks and stale cleanup
        ├── listener.py      # socket/bind/listen
        ├── acceptor.py      # accept loop with stop signal
        ├── connection.py    # ConnectionHandle, RelayState
        └── relay.py         # Byte-exact copy to the output sink

=============================================================================
QUICK START
=============================================================================

    from usxfr import XferServer, XferConfig

    server = XferServer(XferConfig(socket_path="/tmp/us_xfr"))
    server.run()    # Blocks; Ctrl+C stops it

    # Elsewhere:
    from usxfr.client import send_bytes
    send_bytes("/tmp/us_xfr", b"hello world")

=============================================================================
"""

__version__ = "1.0.0"

from .server import XferServer
from .config import XferConfig, FailureMode
from .errors import XferError, Disposition, classify

__all__ = [
    "XferServer",
    "XferConfig",
    "FailureMode",
    "XferError",
    "Disposition",
    "classify",
    "__version__",
]
