from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from typing import Callable

from .findermodel import EntryKind
from .findermodel import ExclusionRule
from .findermodel import Task
from .findermodel import is_excluded


class FinderWalker:
    """Walk a directory tree and hand qualifying entries to a callback."""

    logger = logging.getLogger(__name__)

    def __init__(self, rules: list[ExclusionRule], min_size_bytes: int) -> None:
        """
        Args:
            rules: Exclusion rules checked against the full path of each entry.
            min_size_bytes: Entries with a smaller lstat size are skipped.
        """
        self._rules = rules
        self._min_size_bytes = min_size_bytes

    def walk(self, root: str, on_entry: Callable[[Task], object]) -> int:
        """
        Visit every entry below root, root included, once each.

        An entry is handed to on_entry when no rule matches its full path and
        its lstat size is at least min_size_bytes. Excluded directories are
        still descended into, only the directory entry itself is skipped.
        Symlinks are never followed.

        Returns:
            The number of entries visited.

        Raises:
            OSError: If root cannot be opened as a directory.
        """
        root_entries = os.scandir(root)

        self._visit(root, on_entry)
        visited = 1
        stack: list[str] = []

        with root_entries as entries:
            visited += self._visit_listing(entries, stack, on_entry)

        while stack:
            dirpath = stack.pop()
            try:
                with os.scandir(dirpath) as entries:
                    visited += self._visit_listing(entries, stack, on_entry)

            except OSError as error:
                self.logger.error("Error reading directory: %s", error)

        self.logger.debug("Visited %s entries under %s", visited, root)
        return visited

    def _visit_listing(
        self,
        entries: Iterator[os.DirEntry[str]],
        stack: list[str],
        on_entry: Callable[[Task], object],
    ) -> int:
        """Visit one directory listing, pushing subdirectories onto the stack."""
        visited = 0
        for entry in entries:
            visited += 1
            self._visit(entry.path, on_entry)

            try:
                if entry.is_dir(follow_symlinks=False):
                    stack.append(entry.path)

            except OSError as error:
                self.logger.error("Error getting file info: %s", error)

        return visited

    def _visit(self, path: str, on_entry: Callable[[Task], object]) -> None:
        """Filter a single entry and dispatch it when it qualifies."""
        if is_excluded(path, self._rules):
            self.logger.debug("Ignoring excluded path '%s'", path)
            return

        try:
            stat_result = os.lstat(path)

        except OSError as error:
            # The entry vanished or cannot be read since it was listed
            self.logger.error("Error getting file info: %s", error)
            return

        if stat_result.st_size < self._min_size_bytes:
            return

        on_entry(Task(path=path, kind=EntryKind.from_mode(stat_result.st_mode)))
