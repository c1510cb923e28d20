from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from types import TracebackType


class ProgressCounter:
    """A thread safe count of successfully cached files."""

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def increment(self) -> int:
        """Add one to the counter and return the new value."""
        with self._lock:
            self._value += 1
            return self._value

    @property
    def value(self) -> int:
        """Return the current count."""
        with self._lock:
            return self._value


class ProgressReporter:
    """Print the counter to stdout at a fixed interval from a background thread."""

    logger = logging.getLogger(__name__)

    def __init__(self, counter: ProgressCounter, interval: float = 1.0) -> None:
        self._counter = counter
        self._interval = interval
        self._stop_flag = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            name="fat-finder-progress",
            daemon=True,
        )

    def __enter__(self) -> ProgressReporter:
        """Start reporting."""
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """Stop reporting."""
        self.stop()

    def start(self) -> None:
        self.logger.debug("Reporting progress every %s seconds", self._interval)
        self._thread.start()

    def stop(self) -> None:
        self._stop_flag.set()
        if self._thread.is_alive():
            self._thread.join()

    def _run(self) -> None:
        """Thread handler: print a progress line each interval until stopped."""
        while not self._stop_flag.wait(self._interval):
            print(f"Progress: {self._counter.value} files processed.", flush=True)
