"""
Command line front end.

    netthru --mode server [--port PORT]
    netthru --mode client --remoteip IP [--port PORT] [--secs SECS]
            [--nbytes NBYTES] [--msg MSG]

The server takes its directions from each client, so its only options
are where to listen and where to log.
"""

import argparse
import logging
import sys
from typing import List, Optional

from .client import ThroughputClient
from .config import DEFAULT_BYTES_PER_SEND, DEFAULT_SECS, Mode, Settings
from .errors import NetthruError, SetupError, TransferError, TransferTimeout
from .log import log_sink
from .protocol import DEFAULT_PORT
from .server import ThroughputServer


EXIT_OK = 0
EXIT_SETUP = 1
EXIT_USAGE = 2
EXIT_TRANSFER = 3
EXIT_TIMEOUT = 4
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="netthru",
        description="Measure TCP throughput between two hosts. Run one copy "
                    "in server mode and one in client mode.",
    )
    parser.add_argument("--mode", required=True, choices=[m.value for m in Mode],
                        help="Run as the sending server or the measuring client")
    parser.add_argument("--remoteip", default="",
                        help="IPv4 address of the server (client mode)")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT,
                        help=f"TCP port (default: {DEFAULT_PORT})")
    parser.add_argument("--secs", type=int, default=DEFAULT_SECS,
                        help=f"Seconds the server should send (default: {DEFAULT_SECS})")
    parser.add_argument("--nbytes", type=int, default=DEFAULT_BYTES_PER_SEND,
                        help=f"Bytes per send (default: {DEFAULT_BYTES_PER_SEND})")
    parser.add_argument("--msg", default="",
                        help="Arbitrary message for the server to log")
    parser.add_argument("--host", default="",
                        help="Address the server binds to (default: all interfaces)")
    parser.add_argument("--logfile", default=None,
                        help="Log file to append to (default: netthru<mode>.log)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    return parser


def parse_settings(argv: Optional[List[str]] = None) -> Settings:
    """Parse and validate arguments; exits with status 2 on bad input."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = Settings(
        mode=Mode(args.mode),
        remote_ip=args.remoteip,
        port=args.port,
        secs=args.secs,
        bytes_per_send=args.nbytes,
        msg=args.msg,
        logfile=args.logfile,
        host=args.host,
        verbose=args.verbose,
    )
    try:
        settings.validate()
    except ValueError as exc:
        parser.error(str(exc))
    return settings


def run(settings: Settings, logger: logging.Logger) -> int:
    """Run the configured mode and map failures to exit codes."""
    try:
        if settings.mode is Mode.SERVER:
            with ThroughputServer(settings.host, settings.port,
                                  inactivity_timeout=settings.inactivity_timeout,
                                  logger=logger) as server:
                server.serve_forever()
        else:
            client = ThroughputClient(settings.parameters(),
                                      inactivity_timeout=settings.inactivity_timeout,
                                      logger=logger)
            client.run()
    except SetupError as exc:
        logger.error(str(exc))
        return EXIT_SETUP
    except TransferTimeout:
        return EXIT_TIMEOUT
    except TransferError:
        return EXIT_TRANSFER
    except NetthruError as exc:
        logger.error(str(exc))
        return EXIT_SETUP
    except KeyboardInterrupt:
        logger.info("Stopped by user")
        return EXIT_INTERRUPTED
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    settings = parse_settings(argv)
    level = logging.DEBUG if settings.verbose else logging.INFO
    try:
        with log_sink(settings.logfile, level) as logger:
            return run(settings, logger)
    except SetupError as exc:
        print(exc, file=sys.stderr)
        return EXIT_SETUP


if __name__ == "__main__":
    sys.exit(main())
