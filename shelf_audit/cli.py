"""Shelf audit CLI exposing service router."""

from __future__ import annotations

import argparse
import importlib
import logging
import sys
from typing import Sequence

from . import __version__
from .config import constants, settings


def _configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _load_service_main(name: str):
    module = importlib.import_module(f"shelf_audit.services.{name}")
    return getattr(module, "main")


def _ensure_settings() -> None:
    _ = settings.get_settings()


def main(argv: Sequence[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    parser = argparse.ArgumentParser(prog="shelf-audit")
    parser.add_argument(
        "--version",
        action="version",
        version=f"shelf_audit {__version__}",
        help="Show version",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=False)
    service_parser = subparsers.add_parser("service", help="Run a service by name")
    service_parser.add_argument(
        "--name",
        choices=constants.SERVICE_NAMES,
        required=True,
        help="Service to start",
    )
    service_parser.add_argument(
        "service_args",
        nargs=argparse.REMAINDER,
        help="Arguments forwarded to the service",
    )
    subparsers.add_parser("serve", help="Run the HTTP API (alias for service --name audit_api)")

    args = parser.parse_args(argv)
    if args.command in ("service", "serve"):
        _configure_logging(args.verbose)
        _ensure_settings()
        name = args.name if args.command == "service" else "audit_api"
        service_main = _load_service_main(name)
        forwarded = getattr(args, "service_args", None) or []
        if forwarded and forwarded[0] == "--":
            forwarded = forwarded[1:]
        service_main(forwarded)
        return 0
    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
