from __future__ import annotations

import dataclasses
import enum
import json
import os
import re
import stat
from datetime import datetime
from datetime import timezone


class EntryKind(enum.Enum):
    """Classification of a filesystem entry, taken from an lstat mode."""

    DIRECTORY = "directory"
    FILE = "file"
    SYMLINK = "symlink"
    OTHER = "other"

    @classmethod
    def from_mode(cls, mode: int) -> EntryKind:
        """Classify a st_mode value. Symlinks are never resolved."""
        if stat.S_ISLNK(mode):
            return cls.SYMLINK
        if stat.S_ISDIR(mode):
            return cls.DIRECTORY
        if stat.S_ISREG(mode):
            return cls.FILE
        return cls.OTHER


@dataclasses.dataclass(frozen=True)
class Task:
    """A unit of work for the pool: one qualifying entry."""

    path: str
    kind: EntryKind


@dataclasses.dataclass(frozen=True)
class FileRecord:
    """Size and modification time of a file as stored in the cache."""

    size: int
    mod_time: datetime

    def __post_init__(self) -> None:
        if self.size < 0:
            raise ValueError(f"File size cannot be negative: {self.size}")
        if self.mod_time.tzinfo is None:
            raise ValueError("Modification time must be timezone aware")

    @classmethod
    def from_stat(cls, stat_result: os.stat_result) -> FileRecord:
        """Build a record from the result of os.stat()."""
        mod_time = datetime.fromtimestamp(stat_result.st_mtime, tz=timezone.utc)
        return cls(size=stat_result.st_size, mod_time=mod_time)

    @property
    def mod_timestamp(self) -> int:
        """Modification time as Unix epoch seconds."""
        return int(self.mod_time.timestamp())

    def to_bytes(self) -> bytes:
        """Serialize the record for storage."""
        payload = {"size": self.size, "mod_time": self.mod_time.isoformat()}
        return json.dumps(payload, separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> FileRecord:
        """
        Deserialize a stored record.

        Raises:
            ValueError: If the data is not a valid serialized record.
        """
        try:
            payload = json.loads(data)
            return cls(
                size=int(payload["size"]),
                mod_time=datetime.fromisoformat(payload["mod_time"]),
            )

        except (TypeError, KeyError, UnicodeDecodeError) as error:
            raise ValueError(f"Invalid file record: {error}") from error


@dataclasses.dataclass(frozen=True)
class ReportRow:
    """One line of a report file."""

    relative_path: str
    sort_key: int

    def as_report_line(self) -> str:
        """Return the line in `<value>,"./<path>"` format, without newline."""
        return f'{self.sort_key},"./{self.relative_path}"'


class ExclusionRule:
    """A wildcard pattern that vetoes any path it matches."""

    def __init__(self, pattern: str) -> None:
        """
        Compile the pattern. `*` matches any substring, everything else is literal.

        The pattern is not anchored: it matches if it is found anywhere in
        the path, so `*.tmp` also excludes `big.tmp.bak`.
        """
        self.pattern = pattern
        parts = (re.escape(part) for part in pattern.split("*"))
        self._regex = re.compile(".*".join(parts))

    def __repr__(self) -> str:
        return f"ExclusionRule({self.pattern!r})"

    def matches(self, path: str) -> bool:
        """True if the pattern is found in the path."""
        return self._regex.search(path) is not None


def is_excluded(path: str, rules: list[ExclusionRule]) -> bool:
    """True if any rule matches the path."""
    return any(rule.matches(path) for rule in rules)
