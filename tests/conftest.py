from __future__ import annotations

import os
import threading
from collections.abc import Iterator
from typing import Callable

import pytest
import redis

from fat_finder.finderstore import reverse_key


class FakeStore:
    """In-memory stand-in for FinderStore."""

    def __init__(self) -> None:
        self.data: dict[str, bytes] = {}
        self.failing_paths: set[str] = set()
        self._lock = threading.Lock()

    def set_file(self, key: str, record: bytes, path: str) -> None:
        if path in self.failing_paths:
            raise redis.ConnectionError(f"Simulated failure for {path}")

        with self._lock:
            self.data[key] = record
            self.data[reverse_key(key)] = os.fsencode(path)

    def get(self, key: str) -> bytes | None:
        return self.data.get(key)

    def scan_keys(self) -> Iterator[str]:
        yield from list(self.data)


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


def _make_file(path: os.PathLike[str] | str, size: int, mtime: int | None = None) -> str:
    """Create a sparse file of the given size, optionally setting its mtime."""
    with open(path, "wb") as file_out:
        file_out.truncate(size)

    if mtime is not None:
        os.utime(path, (mtime, mtime))

    return str(path)


@pytest.fixture
def make_file() -> Callable[..., str]:
    return _make_file
