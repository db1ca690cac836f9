"""Command-line entry point: run the setup wizard or check the configured database."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from pydantic import ValidationError

from .config import AppConfig, load_config
from .manager import ConnectionManager
from .wizard import ConsolePrompter, SetupAborted, SetupWizard

LOG = logging.getLogger(__name__)


def positive_int(value: str) -> int:
    """argparse type accepting integers of at least 1."""

    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="pgbootstrap", description=__doc__)
    parser.add_argument("--env-file", default=None, help="Env file holding the connection string")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    setup = commands.add_parser("setup", help="Resolve, verify and persist a connection string")
    setup.add_argument("--max-attempts", type=positive_int, default=None, help="Prompt cycles before giving up")
    setup.add_argument(
        "--no-create",
        dest="create_missing",
        action="store_false",
        help="Do not create the database when it is missing",
    )

    commands.add_parser("check", help="Open the pool, classify topology and close it again")
    return parser.parse_args(argv)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_config(env_file: str | None) -> AppConfig | None:
    try:
        return load_config(env_file)
    except ValidationError as exc:
        LOG.error("Invalid configuration: %s", exc)
        return None


async def run_setup(args: argparse.Namespace) -> int:
    config = _load_config(args.env_file)
    if config is None:
        return 1
    wizard = SetupWizard(
        config,
        ConsolePrompter(),
        max_attempts=args.max_attempts,
        create_missing=args.create_missing,
    )
    try:
        outcome = await wizard.resolve_connection_string()
    except SetupAborted as exc:
        LOG.error("%s", exc)
        return 1
    print(f"Connection string saved to {wizard.config.env_file} ({outcome.source.value}).")
    return 0


async def run_check(args: argparse.Namespace) -> int:
    config = _load_config(args.env_file)
    if config is None:
        return 1
    manager = ConnectionManager(config)
    async with manager:
        topology = manager.topology
        print(f"Connected; topology: {topology.value if topology else 'unknown'}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.verbose)
    runner = run_setup if args.command == "setup" else run_check
    return asyncio.run(runner(args))


__all__ = ["main", "parse_args", "positive_int"]
