"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the UNIX stream transfer server.

=============================================================================
WHY A CONFIG OBJECT INSTEAD OF CONSTANTS?
=============================================================================

The classic version of this server hard-codes its socket path:

    #define SV_SOCK_PATH "/tmp/us_xfr"

That works for one process on one machine, but it means two servers (or
two tests) can never run side by side. Passing an explicit XferConfig into
the server lets every instance own its own rendezvous address.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m usxfr --socket-path /run/xfr.sock               │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── USXFR_SOCKET_PATH=/run/xfr.sock python -m usxfr           │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import os
from dataclasses import dataclass
from enum import Enum


class FailureMode(Enum):
    """
    How per-connection faults (read errors, short writes) are treated.

    STRICT:  The fault terminates the whole server. This is the behavior
             of the classic iterative server and stays the default.
    ISOLATE: The fault ends only the current connection; it is logged and
             the server goes back to accepting.
    """
    STRICT = "strict"
    ISOLATE = "isolate"


DEFAULT_SOCKET_PATH = "/tmp/us_xfr"
DEFAULT_BACKLOG = 5
DEFAULT_BUFFER_SIZE = 4096

LOG_FORMATS = ("text", "json")


@dataclass
class XferConfig:
    """
    Configuration for the transfer server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    SOCKET SETTINGS
    - socket_path, backlog, buffer_size

    FAILURE POLICY
    - failure_mode

    LIFECYCLE
    - poll_interval, unlink_on_close

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # SOCKET SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    socket_path: str = DEFAULT_SOCKET_PATH
    """
    Filesystem path clients connect to. Must fit in sockaddr_un.sun_path;
    that limit is checked when the listener opens, not here.
    """

    backlog: int = DEFAULT_BACKLOG
    """
    Pending connections the kernel queues while we serve the current one.
    """

    buffer_size: int = DEFAULT_BUFFER_SIZE
    """
    Size of the transfer buffer in bytes. Affects chunking only.
    """

    # ─────────────────────────────────────────────────────────────────────
    # FAILURE POLICY
    # ─────────────────────────────────────────────────────────────────────

    failure_mode: FailureMode = FailureMode.STRICT

    # ─────────────────────────────────────────────────────────────────────
    # LIFECYCLE
    # ─────────────────────────────────────────────────────────────────────

    poll_interval: float = 1.0
    """
    Seconds accept() waits before the loop re-checks for a stop request.
    """

    unlink_on_close: bool = True
    """
    Remove the socket file when the server stops gracefully.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"

    log_format: str = "text"
    """
    Format of per-connection transfer records: 'text' or 'json'.
    """

    @classmethod
    def from_env(cls) -> "XferConfig":
        """
        Create configuration from environment variables.

        USXFR_SOCKET_PATH   Socket path (default: /tmp/us_xfr)
        USXFR_BACKLOG       Listen backlog (default: 5)
        USXFR_BUFFER_SIZE   Transfer buffer size (default: 4096)
        USXFR_FAILURE_MODE  strict | isolate (default: strict)
        USXFR_LOG_LEVEL     Logging level (default: INFO)
        USXFR_LOG_FORMAT    text | json (default: text)
        """
        return cls(
            socket_path=os.getenv("USXFR_SOCKET_PATH", DEFAULT_SOCKET_PATH),
            backlog=int(os.getenv("USXFR_BACKLOG", str(DEFAULT_BACKLOG))),
            buffer_size=int(os.getenv("USXFR_BUFFER_SIZE", str(DEFAULT_BUFFER_SIZE))),
            failure_mode=FailureMode(os.getenv("USXFR_FAILURE_MODE", "strict").lower()),
            log_level=os.getenv("USXFR_LOG_LEVEL", "INFO"),
            log_format=os.getenv("USXFR_LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Fail fast at construction time rather than halfway through startup.
        """
        if not self.socket_path:
            raise ValueError("socket_path must not be empty")

        if self.backlog < 1:
            raise ValueError(f"backlog must be >= 1, got {self.backlog}")

        if self.buffer_size < 1:
            raise ValueError(f"buffer_size must be >= 1, got {self.buffer_size}")

        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(
                f"Invalid log_format: {self.log_format!r}. Must be one of {LOG_FORMATS}."
            )
