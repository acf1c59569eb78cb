"""
=============================================================================
TRANSFER SERVER CLI ENTRY POINT
=============================================================================

    # Run with defaults (/tmp/us_xfr, backlog 5)
    python -m usxfr > received.bin

    # Custom socket path
    python -m usxfr --socket-path /tmp/my.sock

    # Keep serving when one client misbehaves
    python -m usxfr --isolate-failures

Standard output carries the relayed data, so every diagnostic goes to
standard error.

=============================================================================
EXIT STATUS
=============================================================================

    0   Stopped gracefully (SIGINT/SIGTERM)
    1   Setup or server fault; the failing operation and OS reason are
        printed, e.g. "Error: bind: [Errno 13] Permission denied"
    2   Invalid arguments or configuration

=============================================================================
"""

import argparse
import sys

from . import __version__
from .server import XferServer
from .config import XferConfig, FailureMode, LOG_FORMATS
from .errors import XferError


def build_parser(defaults: XferConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="usxfr",
        description="UNIX domain stream socket server that copies client data to stdout",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m usxfr > out.bin                  # Run with defaults
  python -m usxfr -s /tmp/my.sock            # Custom socket path
  python -m usxfr --isolate-failures         # Survive per-client faults
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # SOCKET ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--socket-path", "-s",
        default=defaults.socket_path,
        help=f"Socket path to listen on (default: {defaults.socket_path})"
    )

    parser.add_argument(
        "--backlog", "-b",
        type=int,
        default=defaults.backlog,
        help=f"Pending connection queue depth (default: {defaults.backlog})"
    )

    parser.add_argument(
        "--buffer-size",
        type=int,
        default=defaults.buffer_size,
        help=f"Transfer buffer size in bytes (default: {defaults.buffer_size})"
    )

    # ─────────────────────────────────────────────────────────────────────
    # POLICY AND LOGGING
    # ─────────────────────────────────────────────────────────────────────

    # Either flag overrides USXFR_FAILURE_MODE
    policy = parser.add_mutually_exclusive_group()

    policy.add_argument(
        "--isolate-failures",
        dest="failure_mode",
        action="store_const",
        const=FailureMode.ISOLATE,
        help="Drop only the affected connection on read/write faults"
    )

    policy.add_argument(
        "--strict-failures",
        dest="failure_mode",
        action="store_const",
        const=FailureMode.STRICT,
        help="Stop the server on read/write faults (default unless "
             "USXFR_FAILURE_MODE=isolate)"
    )

    parser.set_defaults(failure_mode=defaults.failure_mode)

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=defaults.log_level.upper(),
        help=f"Logging level (default: {defaults.log_level})"
    )

    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=defaults.log_format,
        help=f"Transfer record format (default: {defaults.log_format})"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"usxfr {__version__}"
    )

    return parser


def main(argv=None):
    """Parse arguments, build the server and run it until it stops."""
    try:
        defaults = XferConfig.from_env()
    except ValueError as e:
        print(f"Error: invalid environment configuration: {e}", file=sys.stderr)
        sys.exit(2)

    args = build_parser(defaults).parse_args(argv)

    config = XferConfig(
        socket_path=args.socket_path,
        backlog=args.backlog,
        buffer_size=args.buffer_size,
        failure_mode=args.failure_mode,
        log_level=args.log_level,
        log_format=args.log_format,
    )

    try:
        server = XferServer(config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    try:
        server.run()
    except XferError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
