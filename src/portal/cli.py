"""Command-line interface for the alumni portal service."""

import argparse
import logging
import sys
from typing import Optional, Sequence

from src.portal.config import Settings, load_settings
from src.portal.db import Database, DatabaseUnavailableError
from src.portal.logging_setup import configure_logging

logger = logging.getLogger("alumni_portal.cli")

_KNOWN_COMMANDS = {"serve", "init-db"}


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Alumni portal backend")
    subparsers = parser.add_subparsers(dest="command")
    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Create the portal tables")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP service")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: $HOST or 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, default=None, help="Listening port (default: $PORT or 3000)")

    args_list = list(argv) if argv is not None else sys.argv[1:]
    if args_list and args_list[0] not in _KNOWN_COMMANDS and args_list[0] not in ("-h", "--help"):
        args_list = ["serve", *args_list]
    return parser.parse_args(args_list)


def _initialise_database(settings: Settings) -> None:
    database = Database.from_settings(settings)
    database.connect(attempts=settings.db_connect_attempts, delay=settings.db_connect_delay)
    try:
        database.initialize()
    finally:
        database.close()


def _serve(settings: Settings, host: Optional[str], port: Optional[int]) -> None:
    import uvicorn

    from src.portal.main import create_app

    bind_host = host or settings.host
    bind_port = port or settings.port
    logger.info("Server running on http://%s:%s", bind_host, bind_port)
    uvicorn.run(create_app(settings), host=bind_host, port=bind_port, log_level=settings.log_level.lower())


# PUBLIC_INTERFACE
def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    settings = load_settings()
    configure_logging(settings.log_level)

    try:
        if args.command == "init-db":
            _initialise_database(settings)
        else:
            _serve(settings, getattr(args, "host", None), getattr(args, "port", None))
    except DatabaseUnavailableError as exc:
        logger.error("%s; aborting", exc)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
