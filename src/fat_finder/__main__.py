from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path

import redis

from fat_finder.finder import Finder
from fat_finder.finderconfig import FinderConfig
from fat_finder.finderconfig import write_new_config
from fat_finder.finderstore import FinderStore

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_CONFIG = "fat_finder.ini"

logger = logging.getLogger(__name__)


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Find large files, cache their size and age in Redis. Write sorted reports.",
    )
    parser.add_argument(
        "directory",
        type=str,
        nargs="?",
        help="The root directory to search.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help=f"The path to a configuration file. Default for --make-config: {DEFAULT_CONFIG}",
    )
    parser.add_argument(
        "--min-size",
        type=int,
        default=None,
        help="Minimum file size in megabytes. Overrides the config. Default: 200",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of concurrent file workers. Overrides the config. Default: 20",
    )
    parser.add_argument(
        "--debug",
        help="Enable debug logging.",
        default=False,
        action="store_true",
    )
    parser.add_argument(
        "--log-file",
        help="Enable logging to a file in the root directory.",
        default=False,
        action="store_true",
    )
    parser.add_argument(
        "--make-config",
        help="Create a default configuration file.",
        default=False,
        action="store_true",
    )
    return parser.parse_args(args)


def add_file_handler_to_logging(directory: str, config_name: str) -> None:
    """Add a file handler to the root logger writing into the given directory."""
    log_filepath = Path(directory).absolute() / f"{config_name}.log"
    file_handler = logging.FileHandler(log_filepath)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logging.getLogger().addHandler(file_handler)


def build_config(args: argparse.Namespace) -> FinderConfig:
    """
    Load the config file, if any, and apply command line overrides.

    Raises:
        ValueError: If the file cannot be read or a value is invalid.
    """
    config = FinderConfig(args.config)

    if args.min_size is not None:
        config.override("finder", "min_size_mb", args.min_size)

    if args.workers is not None:
        config.override("finder", "worker_count", args.workers)

    config.validate()
    return config


def main(*, cli_args: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(cli_args)

    if args.make_config:
        write_new_config(args.config or DEFAULT_CONFIG)
        return 0

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
    )

    if not args.directory or not os.path.isdir(args.directory):
        logger.error("Usage: fat-finder <directory> (got %r)", args.directory)
        return 1

    try:
        config = build_config(args)

    except ValueError as error:
        logger.error("%s", error)
        return 1

    if args.log_file:
        add_file_handler_to_logging(args.directory, config.config_name)

    with FinderStore.from_config(config) as store:
        try:
            store.ping()

        except redis.RedisError as error:
            logger.error("Error connecting to Redis: %s", error)
            return 1

        finder = Finder(config, store=store)

        try:
            finder.run(args.directory)

        except OSError as error:
            logger.error("Could not walk %s: %s", args.directory, error)
            return 1

        except KeyboardInterrupt:
            logger.info("Finder stopped")
            raise

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
