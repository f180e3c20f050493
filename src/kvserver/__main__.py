"""
=============================================================================
KVSERVER COMMAND LINE
=============================================================================

    python -m kvserver                     # listen on :8080
    python -m kvserver --addr :9000        # all interfaces, port 9000
    python -m kvserver -a 127.0.0.1:8080   # loopback only
    kvserver --workers 8 --log-format json

Values not given on the command line fall back to the KVSERVER_*
environment variables (see ServerConfig.from_env), then to the defaults.

Exit status:
    0   clean shutdown (Ctrl+C / SIGTERM)
    1   the listen address could not be bound
    2   invalid arguments or configuration

=============================================================================
"""

import argparse
import logging
import os
import sys
from typing import Optional, Sequence

from . import __version__
from .config import ServerConfig, DEFAULT_ADDR
from .server import create_app


logger = logging.getLogger("kvserver")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kvserver",
        description="In-memory key-value store served over HTTP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Routes:
  GET /entry/:key            Read one entry
  GET /list                  Read every entry
  PUT /entry/:key/:value     Insert or replace an entry

Examples:
  kvserver                              # listen on :8080
  kvserver --addr 127.0.0.1:9000        # loopback, port 9000
  curl -X PUT localhost:8080/entry/color/red
        """,
    )

    parser.add_argument(
        "--addr", "-a",
        default=os.getenv("KVSERVER_ADDR", DEFAULT_ADDR),
        help=f"Listen address [host]:port (default: {DEFAULT_ADDR})",
    )
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=os.getenv("KVSERVER_WORKERS", "4"),
        help="Worker threads (default: 4, max will be 2x this)",
    )
    parser.add_argument(
        "--log-level", "-l",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=os.getenv("KVSERVER_LOG_LEVEL", "INFO").upper(),
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default=os.getenv("KVSERVER_LOG_FORMAT", "text"),
        help="Access log format (default: text)",
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"kvserver {__version__}",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Parse arguments, build the app and serve until shutdown.

    Returns 0 after a clean shutdown. Exits with status 1 if the address
    cannot be bound and 2 on bad arguments.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = ServerConfig.from_address(
            args.addr,
            min_workers=args.workers,
            max_workers=args.workers * 2,
            timeout=float(os.getenv("KVSERVER_TIMEOUT", "30")),
            log_level=args.log_level,
            log_format=args.log_format,
        )
    except ValueError as e:
        parser.error(str(e))

    app = create_app(config)

    try:
        app.run()
    except OSError as e:
        logger.critical(f"ListenAndServe: {e}")
        sys.exit(1)

    return 0


if __name__ == "__main__":
    sys.exit(main())
