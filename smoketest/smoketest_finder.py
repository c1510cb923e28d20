"""
Run the full pipeline against a live Redis server.

Builds a directory tree of sparse files with random sizes and ages, runs the
finder over it and checks both reports are sorted. The Redis database given
by --db is used as-is, so point it at a scratch database.
"""
from __future__ import annotations

import argparse
import logging
import os
import random
import shutil
import time
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from string import ascii_lowercase

from fat_finder.finder import Finder
from fat_finder.finderconfig import FinderConfig
from fat_finder.finderstore import FinderStore

BASE_DIR: Path = Path(__file__).resolve().parent
TEST_DIR: Path = BASE_DIR / "smoketest_tree"
MB = 1024 * 1024
FILE_COUNT_RANGE: tuple[int, int] = (50, 200)
SIZE_RANGE_MB: tuple[int, int] = (1, 500)
MAX_DEPTH = 4
MAX_AGE_SECONDS = 365 * 24 * 60 * 60

logger = logging.getLogger(__name__)


def _name() -> str:
    """Create a random eight character name."""
    return "".join(random.choices(ascii_lowercase, k=8))


def _random_directory() -> Path:
    """Return a random, possibly nested, directory under the test root."""
    depth = random.randint(0, MAX_DEPTH)
    return TEST_DIR.joinpath(*(random.choice("abc") for _ in range(depth)))


def build_smoketest_tree() -> int:
    """Create sparse files of random size and age. Returns the file count."""
    file_count = random.randint(*FILE_COUNT_RANGE)
    now = int(time.time())
    logger.info("Creating %s files in %s", file_count, TEST_DIR)

    for _ in range(file_count):
        directory = _random_directory()
        directory.mkdir(parents=True, exist_ok=True)
        file_path = directory / f"{_name()}.bin"

        with open(file_path, "wb") as file_out:
            file_out.truncate(random.randint(*SIZE_RANGE_MB) * MB)

        mtime = now - random.randint(0, MAX_AGE_SECONDS)
        os.utime(file_path, (mtime, mtime))

    (TEST_DIR / "exclude_patterns.txt").write_text("*/c/*\n")
    return file_count


def destroy_smoketest_tree() -> None:
    """Delete the smoketest tree."""
    logger.debug("Deleting %s", TEST_DIR)
    shutil.rmtree(TEST_DIR, ignore_errors=True)


@contextmanager
def smoketest_runner() -> Generator[None, None, None]:
    """Build the tree on entry, remove it on exit."""
    build_smoketest_tree()
    try:
        yield None

    finally:
        destroy_smoketest_tree()


def _assert_descending(report: Path) -> None:
    values = [int(line.split(",", 1)[0]) for line in report.read_text().splitlines()]
    assert values == sorted(values, reverse=True), f"{report} is not sorted"
    logger.info("%s has %s sorted rows", report.name, len(values))


def main() -> int:
    """Run the smoketest finder."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--host", default="localhost")
    parser.add_argument("--port", type=int, default=6379)
    parser.add_argument("--db", type=int, default=15)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    config = FinderConfig()
    config.override("finder", "min_size_mb", 100)

    with smoketest_runner():
        with FinderStore(args.host, args.port, db=args.db) as store:
            store.ping()
            finder = Finder(config, store=store)
            reports = finder.run(str(TEST_DIR))

        for report in reports:
            _assert_descending(report)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
