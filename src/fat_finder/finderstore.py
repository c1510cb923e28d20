from __future__ import annotations

import hashlib
import logging
import os
from collections.abc import Iterator
from typing import TYPE_CHECKING

import redis

if TYPE_CHECKING:
    from types import TracebackType
    from typing import Protocol

    class _FinderConfig(Protocol):
        @property
        def cache_host(self) -> str:
            ...

        @property
        def cache_port(self) -> int:
            ...

        @property
        def cache_db(self) -> int:
            ...

        @property
        def cache_socket_timeout(self) -> float:
            ...

    class CacheClient(Protocol):
        def set_file(self, key: str, record: bytes, path: str) -> None:
            ...

        def get(self, key: str) -> bytes | None:
            ...

        def scan_keys(self) -> Iterator[str]:
            ...


PATH_KEY_PREFIX = "path:"


def hash_path(path: str) -> str:
    """Return the SHA-256 hex digest of a path, used as its cache key."""
    return hashlib.sha256(os.fsencode(path)).hexdigest()


def reverse_key(key: str) -> str:
    """Return the key holding the original path for a hashed key."""
    return f"{PATH_KEY_PREFIX}{key}"


class FinderStore:
    """Redis backed cache of file records keyed by path hash."""

    logger = logging.getLogger(__name__)

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        *,
        db: int = 0,
        socket_timeout: float = 5,
        client: redis.Redis | None = None,
    ) -> None:
        """
        Initialize a new FinderStore.

        The underlying client is not contacted until the first command. Use
        ping() to fail early when the server is unreachable. The client uses
        a connection pool and is safe to share between worker threads.

        Args:
            host: Hostname of the Redis server.
            port: Port of the Redis server.

        Keyword Args:
            db: Database number to select.
            socket_timeout: Seconds to wait on connect and on each command.
            client: An already built client. Overrides the other arguments.
        """
        self.logger.debug("Initializing FinderStore at %s:%s/%s", host, port, db)
        self._client = client if client is not None else redis.Redis(
            host=host,
            port=port,
            db=db,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )

    @classmethod
    def from_config(cls, config: _FinderConfig) -> FinderStore:
        """Build a FinderStore from the given configuration."""
        return cls(
            config.cache_host,
            config.cache_port,
            db=config.cache_db,
            socket_timeout=config.cache_socket_timeout,
        )

    def __enter__(self) -> FinderStore:
        """Enter a context manager."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """Exit a context manager."""
        self.close()

    def close(self) -> None:
        """Release the client's connections."""
        self._client.close()

    def ping(self) -> None:
        """
        Check the server is reachable.

        Raises:
            redis.RedisError
        """
        self._client.ping()
        self.logger.debug("Cache server is reachable")

    def set_file(self, key: str, record: bytes, path: str) -> None:
        """
        Write a record and its reverse path entry in one round trip.

        The two writes are pipelined, not wrapped in MULTI/EXEC. If the
        round trip fails either key may or may not have been written.

        Raises:
            redis.RedisError
        """
        pipe = self._client.pipeline(transaction=False)
        pipe.set(key, record)
        pipe.set(reverse_key(key), os.fsencode(path))
        pipe.execute()

    def get(self, key: str) -> bytes | None:
        """
        Return the value stored at key, or None when the key does not exist.

        Keys returned by scan_keys() that were not valid UTF-8 are sent back
        as their original bytes.

        Raises:
            redis.RedisError
        """
        return self._client.get(_encode_key(key))

    def scan_keys(self) -> Iterator[str]:
        """
        Lazily yield every key in the database, in no particular order.

        Each call starts a new SCAN cursor. Bytes that are not valid UTF-8
        are decoded with surrogateescape, so keys written by other programs
        never stop the scan.

        Raises:
            redis.RedisError
        """
        for key in self._client.scan_iter(match="*"):
            if isinstance(key, bytes):
                key = key.decode("utf-8", "surrogateescape")
            yield key


def _encode_key(key: str) -> str | bytes:
    """Return key unchanged, or its raw bytes when it holds escaped bytes."""
    try:
        key.encode("utf-8")

    except UnicodeEncodeError:
        return key.encode("utf-8", "surrogateescape")

    return key
