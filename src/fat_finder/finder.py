from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import TYPE_CHECKING

import redis

from .finderconfig import FinderConfig
from .finderconfig import load_exclude_patterns
from .findermodel import ExclusionRule
from .findermodel import Task
from .finderpool import WorkerPool
from .finderprocessor import FileProcessor
from .finderprogress import ProgressCounter
from .finderprogress import ProgressReporter
from .finderreport import ReportGenerator
from .finderstore import FinderStore
from .finderwalk import FinderWalker

if TYPE_CHECKING:
    from .finderstore import CacheClient


class Finder:
    """Find large files under a directory, cache them and report on them."""

    logger = logging.getLogger(__name__)

    def __init__(
        self,
        config: FinderConfig,
        store: CacheClient | None = None,
        counter: ProgressCounter | None = None,
    ) -> None:
        """
        Initialize a new Finder.

        Args:
            config: The configuration to use for this finder.
            store: The cache to record files in. Built from config when omitted.
            counter: Counter of cached files. A new one is made when omitted.
        """
        self._config = config
        self._store = store if store is not None else FinderStore.from_config(config)
        self._counter = counter or ProgressCounter()
        self._processor = FileProcessor(self._store, self._counter)
        self._reporter = ReportGenerator(self._store)

    @property
    def processed_count(self) -> int:
        """Return the number of files cached so far."""
        return self._counter.value

    def run(self, root: str) -> list[Path]:
        """
        Walk root, wait for every file to be cached, then write both reports.

        Returns:
            The paths of the reports that were written.

        Raises:
            OSError: If root cannot be opened.
        """
        root = os.path.abspath(root)
        rules = self.load_rules(root)

        with ProgressReporter(self._counter, self._config.progress_interval):
            self.walk(root, rules)

        print(f"Final progress: {self._counter.value} files processed.", flush=True)

        return self.report(root)

    def load_rules(self, root: str) -> list[ExclusionRule]:
        """Load the exclusion rules from the pattern file of root."""
        filepath = os.path.join(root, self._config.exclude_file)
        return [ExclusionRule(pattern) for pattern in load_exclude_patterns(filepath)]

    def walk(self, root: str, rules: list[ExclusionRule]) -> None:
        """Walk root and record qualifying files. Returns after the pool drains."""
        self.logger.info("Walking %s", root)
        tic = time.perf_counter()

        walker = FinderWalker(rules, self._config.min_size_bytes)

        with WorkerPool(self._config.worker_count) as pool:

            def submit(task: Task) -> None:
                pool.submit(self._processor.dispatch, task)

            visited = walker.walk(root, submit)

        toc = time.perf_counter()
        self.logger.info("Walk finished in %s seconds", toc - tic)
        self.logger.info("Visited %s entries", visited)

    def report(self, root: str) -> list[Path]:
        """Write the size and modification time reports into root."""
        written: list[Path] = []
        reports = (
            (self._config.size_report, False, "Saved data to %s"),
            (self._config.modtime_report, True, "Saved sorted data to %s"),
        )

        for output_name, sort_by_mod_time, message in reports:
            try:
                output = self._reporter.generate(root, output_name, sort_by_mod_time)

            except (OSError, redis.RedisError) as error:
                self.logger.error("Error saving to %s: %s", output_name, error)
                continue

            print(message % output, flush=True)
            written.append(output)

        return written
