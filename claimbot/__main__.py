"""Claimbot process entry-point.

Usage:
    python -m claimbot [--list] [--log-level LEVEL] [--log-format FORMAT]

The acquisition logic lives in ``claimbot.acquisition``.  This module is
intentionally thin: it calls ``configure_logging()`` first so that every
subsequent import already has a working logger, then hands off to the
runner.

Exit status: ``0`` when the run reached its target (or ``--list``
succeeded), ``2`` when the run was aborted, ``1`` on a configuration or
provider error.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from pydantic import ValidationError

from claimbot.core import configure_logging
from claimbot.core.exceptions import ConfigError, ProviderError
from claimbot.core.settings import Settings

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_ABORTED = 2


def build_parser() -> argparse.ArgumentParser:
    """Return the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="claimbot",
        description="Keep launching OCI instances until capacity is won.",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List existing instances per availability domain and exit.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        metavar="LEVEL",
        help="Override LOG_LEVEL env var (DEBUG|INFO|WARNING|ERROR).",
    )
    parser.add_argument(
        "--log-format",
        default=None,
        metavar="FORMAT",
        help="Override LOG_FORMAT env var (text|json).",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry-point registered in ``pyproject.toml``."""
    args = build_parser().parse_args(argv)

    try:
        configure_logging(level=args.log_level, fmt=args.log_format)
    except ValueError as exc:
        print(f"claimbot: configuration error: {exc}", file=sys.stderr)  # noqa: T201
        return EXIT_ERROR

    logger = logging.getLogger(__name__)
    logger.info("Claimbot starting up")

    # Lazy import keeps startup fast when module is imported without running.
    from claimbot.acquisition.runner import run_acquisition, run_inventory  # noqa: PLC0415

    try:
        settings = Settings()
        if args.list:
            inventory = asyncio.run(run_inventory(settings))
            print(inventory.format_report() or "No availability domain found.")  # noqa: T201
            return EXIT_OK
        summary = asyncio.run(run_acquisition(settings))
    except (ConfigError, ValidationError) as exc:
        logger.critical("Configuration error: %s", exc)
        return EXIT_ERROR
    except ProviderError as exc:
        logger.critical("Provider error: %s", exc)
        return EXIT_ERROR
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting.")
        return EXIT_OK

    print(summary.format_report())  # noqa: T201
    return EXIT_ABORTED if summary.aborted else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
