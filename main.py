"""Command-line interface for the users service."""

from __future__ import annotations
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

try:
    import httpx
except ImportError as exc:  # pragma: no cover - exercised in environments missing deps
    raise SystemExit(
        "The 'httpx' package is required. Execute `pip install -e .` to install dependencies."
    ) from exc

from dotenv import load_dotenv

from usersapi.config import Settings
from usersapi.database import Database

logger = logging.getLogger("usersapi.main")

_DEFAULT_SERVICE_URL = "http://localhost:8081"
_CONFIG_FILE = "config.env"


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Users service utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Create the users table and exit")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP users service")
    serve_parser.add_argument(
        "--host",
        default=None,
        help="Bind address for the API (default: $HOST or 0.0.0.0)",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for the API (default: $PORT or 8081)",
    )

    list_parser = subparsers.add_parser("list", help="List users stored by a running service")
    list_parser.add_argument(
        "--service-url",
        default=None,
        help=f"Base URL of a running users service (default: {_DEFAULT_SERVICE_URL})",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "list"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _load_environment(config_file: str = _CONFIG_FILE) -> None:
    """Seed ``os.environ`` from ``config.env`` without overriding real variables."""

    path = Path(config_file)
    if path.is_file():
        load_dotenv(path, override=False)


def _initialise_database(settings: Settings) -> Database:
    database = Database(settings.database_path, log_statements=settings.development)
    database.initialize()
    logger.info("Database initialised at %s", settings.database_path)
    return database


def _serve(*, database: Database, settings: Settings, host: str | None, port: int | None) -> None:
    from usersapi.api import create_app
    import uvicorn

    bind_host = host or settings.host
    bind_port = port or settings.port
    logger.info("Server running on http://%s:%s", bind_host, bind_port)

    app = create_app(database=database, settings=settings)
    uvicorn.run(app, host=bind_host, port=bind_port, log_level=settings.log_level.lower())


def _list_users(service_url: str | None) -> int:
    base_url = (service_url or os.getenv("USERS_SERVICE_URL") or _DEFAULT_SERVICE_URL).rstrip("/")
    endpoint = base_url + "/users"

    try:
        response = httpx.get(endpoint, timeout=10.0)
    except httpx.HTTPError as exc:
        print(f"Failed to contact users service: {exc}")
        return 1

    if response.status_code == 404:
        print("No users are currently registered.")
        return 0
    if response.status_code != 200:
        print(f"Service responded with {response.status_code}: {response.text.strip()}")
        return 1

    try:
        users = response.json()
    except ValueError:
        print("Service returned an unexpected response format.")
        return 1

    print(f"{len(users)} user(s) found:")
    print(f"{'ID':>4}  {'First name':<20}  {'Last name':<20}  Created")
    print("-" * 72)
    for user in users:
        print(
            f"{user.get('id', '?'):>4}  {user.get('firstName', ''):<20}  "
            f"{user.get('lastName', ''):<20}  {user.get('created', '')}"
        )
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    _load_environment()
    settings = Settings.from_env()

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    args = _parse_args(argv)

    if args.command == "list":
        return _list_users(args.service_url)

    database = _initialise_database(settings)

    if args.command == "serve":
        _serve(database=database, settings=settings, host=args.host, port=args.port)
    elif args.command == "init-db":
        print("Database initialisation complete.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
