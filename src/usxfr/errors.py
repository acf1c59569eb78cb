"""
=============================================================================
FAULT TAXONOMY
=============================================================================

Every fallible step of the server raises one of the exceptions below.
Each exception knows its default DISPOSITION, i.e. how far the damage
spreads:

    ┌──────────────────────┬──────────────┬────────────────────────────────┐
    │ Condition            │ Disposition  │ Effect                         │
    ├──────────────────────┼──────────────┼────────────────────────────────┤
    │ AddressTooLong       │ SETUP_FATAL  │ no socket, no file created     │
    │ StaleRemovalFailed   │ SETUP_FATAL  │ startup aborted                │
    │ BindFailed           │ SETUP_FATAL  │ startup aborted                │
    │ ListenFailed         │ SETUP_FATAL  │ startup aborted                │
    │ AcceptFailed         │ SERVER_FATAL │ running server terminates      │
    │ ReadFailed           │ SERVER_FATAL │ (LOGGED in isolate mode)       │
    │ PartialWrite         │ SERVER_FATAL │ (LOGGED in isolate mode)       │
    │ CloseFailed          │ LOGGED       │ server keeps accepting         │
    └──────────────────────┴──────────────┴────────────────────────────────┘

The server never inspects errno values itself: it asks classify() what to
do and acts on the answer.

=============================================================================
"""

from enum import Enum
from typing import Optional

from .config import FailureMode


class Disposition(Enum):
    """How a fault affects the process."""
    SETUP_FATAL = "setup_fatal"    # Abort before serving any client
    SERVER_FATAL = "server_fatal"  # Abort the running server
    LOGGED = "logged"              # Report and continue


class XferError(Exception):
    """
    Base class for all server faults.

    Carries the name of the failed operation (usually the OS call, e.g.
    "bind") and the underlying OSError, so the CLI can print a diagnostic
    in the familiar "bind: [Errno 98] Address already in use" shape.
    """

    disposition = Disposition.SERVER_FATAL

    def __init__(
        self,
        operation: str,
        reason: Optional[str] = None,
        os_error: Optional[OSError] = None,
    ):
        self.operation = operation
        self.os_error = os_error
        self.reason = reason or (str(os_error) if os_error else "failed")
        super().__init__(f"{operation}: {self.reason}")


class AddressTooLong(XferError):
    disposition = Disposition.SETUP_FATAL


class StaleRemovalFailed(XferError):
    disposition = Disposition.SETUP_FATAL


class BindFailed(XferError):
    disposition = Disposition.SETUP_FATAL


class ListenFailed(XferError):
    disposition = Disposition.SETUP_FATAL


class AcceptFailed(XferError):
    disposition = Disposition.SERVER_FATAL


class ReadFailed(XferError):
    disposition = Disposition.SERVER_FATAL


class PartialWrite(XferError):
    """Raised when the sink accepted fewer bytes than were read."""

    disposition = Disposition.SERVER_FATAL

    def __init__(
        self,
        expected: int,
        written: int,
        os_error: Optional[OSError] = None,
    ):
        self.expected = expected
        self.written = written
        if os_error is not None:
            reason = f"partial/failed write ({os_error})"
        else:
            reason = f"partial/failed write ({written} of {expected} bytes)"
        super().__init__("write", reason, os_error)


class CloseFailed(XferError):
    disposition = Disposition.LOGGED


# Faults local to one connection; only these may be downgraded.
_CONNECTION_FAULTS = (ReadFailed, PartialWrite)


def classify(error: XferError, failure_mode: FailureMode = FailureMode.STRICT) -> Disposition:
    """
    Decide what a fault means for the process.

    Setup faults and accept faults keep their disposition in every mode;
    the listening socket is assumed healthy for the server's lifetime.
    Per-connection faults become LOGGED under FailureMode.ISOLATE.

    Args:
        error: The fault raised by one of the server components.
        failure_mode: The configured failure policy.

    Returns:
        The Disposition the server must act on.
    """
    if failure_mode is FailureMode.ISOLATE and isinstance(error, _CONNECTION_FAULTS):
        return Disposition.LOGGED
    return error.disposition
