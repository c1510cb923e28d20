from __future__ import annotations

import logging
import os
from configparser import ConfigParser

NEW_CONFIG = """\
[system]
# config_name is used to name the log file.
config_name = {filename}

[cache]
# Redis server holding the file records.
host = localhost
port = 6379
db = 0
socket_timeout = 5

[finder]
# Files smaller than this many megabytes are ignored.
min_size_mb = 200
worker_count = 20

# One pattern per line, `*` matches anything. Relative to the root directory.
exclude_file = exclude_patterns.txt

# Reports are written into the root directory.
size_report = fav.log
modtime_report = fav.log.sort

# Seconds between progress lines.
progress_interval = 1

    """

logger = logging.getLogger(__name__)


class FinderConfig:
    """Configuration for the Finder."""

    logger = logging.getLogger("fat_finder.FinderConfig")

    def __init__(self, filepath: str | None = None) -> None:
        """
        Load the configuration from the given file.

        Without a file every value falls back to its default.

        Raises:
            ValueError: If a file is given and cannot be read.
        """
        self._config = ConfigParser()

        if filepath is None:
            self.logger.debug("No config file given, using defaults")
            return

        success = self._config.read(filepath)

        if not success:
            raise ValueError(f"Could not read config file at {filepath}")

        self.logger.debug("Loaded config from %s", filepath)

    @property
    def config_name(self) -> str:
        """Return the name of the config."""
        return self._config.get("system", "config_name", fallback="fat_finder")

    @property
    def cache_host(self) -> str:
        """Return the hostname of the cache server."""
        return self._config.get("cache", "host", fallback="localhost")

    @property
    def cache_port(self) -> int:
        """Return the port of the cache server."""
        return self._config.getint("cache", "port", fallback=6379)

    @property
    def cache_db(self) -> int:
        """Return the database number on the cache server."""
        return self._config.getint("cache", "db", fallback=0)

    @property
    def cache_socket_timeout(self) -> float:
        """Return the connect and command timeout for the cache, in seconds."""
        return self._config.getfloat("cache", "socket_timeout", fallback=5.0)

    @property
    def min_size_mb(self) -> int:
        """Return the size threshold in megabytes."""
        return self._config.getint("finder", "min_size_mb", fallback=200)

    @property
    def min_size_bytes(self) -> int:
        """Return the size threshold in bytes."""
        return self.min_size_mb * 1024 * 1024

    @property
    def worker_count(self) -> int:
        """Return the number of concurrent file workers."""
        return self._config.getint("finder", "worker_count", fallback=20)

    @property
    def exclude_file(self) -> str:
        """Return the exclusion pattern file, relative to the root directory."""
        return self._config.get(
            "finder",
            "exclude_file",
            fallback="exclude_patterns.txt",
        )

    @property
    def size_report(self) -> str:
        """Return the file name of the size sorted report."""
        return self._config.get("finder", "size_report", fallback="fav.log")

    @property
    def modtime_report(self) -> str:
        """Return the file name of the modification time sorted report."""
        return self._config.get("finder", "modtime_report", fallback="fav.log.sort")

    @property
    def progress_interval(self) -> float:
        """Return the seconds between progress lines."""
        return self._config.getfloat("finder", "progress_interval", fallback=1.0)

    def override(self, section: str, option: str, value: object) -> None:
        """Set a value in memory, used for command line overrides."""
        if not self._config.has_section(section):
            self._config.add_section(section)
        self._config.set(section, option, str(value))

    def validate(self) -> None:
        """
        Read every typed value once and check its range.

        Raises:
            ValueError: If a value cannot be parsed or is out of range.
        """
        if not 0 < self.cache_port < 65536:
            raise ValueError(f"cache port must be 1 to 65535, got {self.cache_port}")
        if self.cache_db < 0:
            raise ValueError(f"cache db cannot be negative, got {self.cache_db}")
        if self.cache_socket_timeout <= 0:
            raise ValueError(
                f"socket_timeout must be positive, got {self.cache_socket_timeout}"
            )
        if self.min_size_mb < 0:
            raise ValueError(f"min_size_mb cannot be negative, got {self.min_size_mb}")
        if self.worker_count < 1:
            raise ValueError(f"worker_count must be at least 1, got {self.worker_count}")
        if self.progress_interval <= 0:
            raise ValueError(
                f"progress_interval must be positive, got {self.progress_interval}"
            )


def load_exclude_patterns(filepath: str) -> list[str]:
    """
    Read exclusion patterns, one per line. Blank lines are ignored.

    Only the line ending is removed, surrounding spaces are part of a pattern.

    A missing or unreadable file is not an error: a warning is logged and
    no patterns are returned.
    """
    try:
        with open(filepath, encoding="utf-8") as pattern_file:
            lines = pattern_file.read().splitlines()

    except OSError as error:
        logger.warning("Could not read exclude patterns: %s", error)
        return []

    patterns: list[str] = []
    for pattern in lines:
        if not pattern.strip():
            continue
        logger.info("Loaded exclude pattern: %s", pattern)
        patterns.append(pattern)

    return patterns


def write_new_config(filename: str) -> None:
    """Write a new config file if one does not exist."""
    if os.path.exists(filename):
        return

    config_name = os.path.splitext(os.path.basename(filename))[0]
    config = NEW_CONFIG.format(filename=config_name)

    with open(filename, "w") as config_file:
        config_file.write(config)
