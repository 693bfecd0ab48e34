"""Command line entry point.

    retained-cleaner [--config config.json]            discover, clear, verify
    retained-cleaner --test                            publish a test message to <topic>/test
    retained-cleaner --verify                          self-test on <topic>/verify
    retained-cleaner --pollute                         seed fixtures under <topic>/pollute

Config and connection errors exit with status 1. Per-topic failures are
reported on stdout and do not change the exit status.
"""

from __future__ import annotations

import argparse
import logging
import sys

from retained_cleaner import __version__, modes
from retained_cleaner.config import load_settings, resolve_config_path
from retained_cleaner.errors import ConfigError, ConnectError
from retained_cleaner.session import open_session

logger = logging.getLogger("retained_cleaner")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="retained-cleaner",
        description="Find and delete retained MQTT messages under a topic, then verify they are gone.",
    )
    parser.add_argument(
        "--config",
        help="path to the JSON config file (default: $RETAINED_CLEANER_CONFIG or config.json)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--test", action="store_true",
        help="publish a test message to <topic>/test instead of clearing retained",
    )
    mode.add_argument(
        "--verify", action="store_true",
        help="generate and clear retained messages under <topic>/verify and verify deletion",
    )
    mode.add_argument(
        "--pollute", action="store_true",
        help="generate retained messages under <topic>/pollute to test cleanup",
    )
    return parser


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    config_path = resolve_config_path(args.config)
    try:
        settings = load_settings(config_path)
    except ConfigError as exc:
        logger.error("Failed to load config: %s", exc)
        return 1

    try:
        with open_session(settings) as session:
            if args.pollute:
                modes.run_pollute(session, settings)
            elif args.test:
                modes.run_test(session, settings)
            elif args.verify:
                modes.run_verify(session, settings)
            else:
                modes.run_default(session, settings)
    except ConnectError as exc:
        logger.error("Connect error: %s", exc)
        return 1
    return 0
