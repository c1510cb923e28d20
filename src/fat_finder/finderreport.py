from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

import redis

from .findermodel import FileRecord
from .findermodel import ReportRow
from .finderstore import reverse_key

if TYPE_CHECKING:
    from .finderstore import CacheClient


class ReportGenerator:
    """Build sorted report files from the full contents of the cache."""

    logger = logging.getLogger(__name__)

    def __init__(self, store: CacheClient) -> None:
        self._store = store

    def generate(self, root: str, output_name: str, sort_by_mod_time: bool) -> Path:
        """
        Write a report of every cached file into root/output_name.

        Rows are sorted largest first, or most recently modified first when
        sort_by_mod_time is set. Any existing report is replaced.

        Args:
            root: Directory the report is written to and paths are relative to.
            output_name: File name of the report.
            sort_by_mod_time: Sort and print modification times instead of sizes.

        Returns:
            The path of the written report.

        Raises:
            OSError: If the report cannot be written.
            redis.RedisError: If the cache scan itself fails.
        """
        rows = self.build_rows(root, sort_by_mod_time)
        output = Path(root) / output_name

        with open(output, "w", encoding="utf-8", errors="surrogateescape") as file_out:
            for row in rows:
                file_out.write(row.as_report_line() + "\n")

        self.logger.debug("Wrote %d rows to %s", len(rows), output)
        return output

    def build_rows(self, root: str, sort_by_mod_time: bool) -> list[ReportRow]:
        """Return the report rows, sorted descending by the chosen key."""
        records = self.load_records()

        if sort_by_mod_time:
            ordered = sorted(records, key=lambda p: records[p].mod_time, reverse=True)
        else:
            ordered = sorted(records, key=lambda p: records[p].size, reverse=True)

        return [
            ReportRow(
                relative_path=os.path.relpath(path, root),
                sort_key=(
                    records[path].mod_timestamp
                    if sort_by_mod_time
                    else records[path].size
                ),
            )
            for path in ordered
        ]

    def load_records(self) -> dict[str, FileRecord]:
        """
        Scan the cache and return every resolvable record keyed by its path.

        Keys without a reverse path entry, including the reverse path keys
        themselves, and keys whose value cannot be read or decoded are dropped.
        """
        records: dict[str, FileRecord] = {}
        for key in self._store.scan_keys():
            try:
                raw_path = self._store.get(reverse_key(key))
                if raw_path is None:
                    continue

                value = self._store.get(key)
                if value is None:
                    continue

                records[os.fsdecode(raw_path)] = FileRecord.from_bytes(value)

            except (redis.RedisError, ValueError) as error:
                self.logger.debug("Dropping key %s from report: %s", key, error)

        self.logger.debug("Loaded %d records from cache", len(records))
        return records
