from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

import redis

from .finderprogress import ProgressCounter
from .findermodel import EntryKind
from .findermodel import FileRecord
from .findermodel import Task
from .finderstore import hash_path

if TYPE_CHECKING:
    from .finderstore import CacheClient


class FileProcessor:
    """Record qualifying files in the cache, one task at a time."""

    logger = logging.getLogger(__name__)

    def __init__(self, store: CacheClient, counter: ProgressCounter) -> None:
        self._store = store
        self._counter = counter

    def dispatch(self, task: Task) -> None:
        """Route a task by the kind of entry it carries."""
        if task.kind is EntryKind.FILE:
            self.process(task.path)
        elif task.kind is EntryKind.DIRECTORY:
            self._process_directory(task.path)
        elif task.kind is EntryKind.SYMLINK:
            self._process_symlink(task.path)
        else:
            self.logger.info("Skipping unknown type: %s", task.path)

    def process(self, path: str) -> bool:
        """
        Stat a file and write its record and reverse path to the cache.

        Errors are logged and the file is skipped. The counter is only
        incremented when both cache writes were sent successfully.

        Returns:
            True if the file was recorded.
        """
        try:
            stat_result = os.stat(path)

        except OSError as error:
            self.logger.error("Error stating file: %s, Error: %s", path, error)
            return False

        try:
            record = FileRecord.from_stat(stat_result).to_bytes()

        except (ValueError, OverflowError) as error:
            self.logger.error("Error encoding: %s, File: %s", error, path)
            return False

        try:
            self._store.set_file(hash_path(path), record, path)

        except redis.RedisError as error:
            self.logger.error("Error writing cache for file: %s: %s", path, error)
            return False

        self._counter.increment()
        return True

    def _process_directory(self, path: str) -> None:
        self.logger.debug("Processing directory: %s", path)

    def _process_symlink(self, path: str) -> None:
        self.logger.debug("Processing symlink: %s", path)
