"""Thread-safe connection pools shared by the servers' data and RPC clients."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterator, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")

KEEPALIVE_INTERVAL_SECONDS = 60.0
DEFAULT_IDLE_SECONDS = 5.0


class PoolClosedError(RuntimeError):
    """Raised when a connection is requested from a closed pool."""


class ConnectionPool(Generic[T]):
    """A fixed set of connections handed out one caller at a time.

    The pool opens ``size`` connections with ``factory`` up front; a factory
    call that fails is logged and skipped, so the pool may hold fewer.
    ``get_connection`` blocks until a connection is free or the pool closes.
    """

    def __init__(self, factory: Callable[[], T], size: int):
        if size < 0:
            raise ValueError(f"pool size must not be negative: {size!r}")
        self._factory = factory
        self._size = size
        self._idle: deque[T] = deque()
        self._cond = threading.Condition()
        self._closed = False
        for _ in range(size):
            try:
                conn = factory()
            except Exception:
                log.exception("failed to open a pooled connection")
                continue
            self._idle.append(conn)

    @property
    def closed(self) -> bool:
        return self._closed

    def get_connection(self) -> T:
        """Take a free connection, waiting for one if needed.

        Raises PoolClosedError once the pool has been closed.
        """
        with self._cond:
            self._cond.wait_for(lambda: self._closed or bool(self._idle))
            if self._closed:
                raise PoolClosedError("connection pool is closed")
            return self._idle.popleft()

    def return_connection(self, conn: T) -> None:
        """Give a connection back; it is dropped if the pool is closed."""
        with self._cond:
            if self._closed:
                return
            self._idle.append(conn)
            self._cond.notify()

    @contextmanager
    def connection(self) -> Iterator[T]:
        """Borrow a connection for the duration of a ``with`` block."""
        conn = self.get_connection()
        try:
            yield conn
        finally:
            self.return_connection(conn)

    def close(self) -> None:
        """Stop handing out connections and wake every waiting caller."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def __len__(self) -> int:
        with self._cond:
            return len(self._idle)

    def __enter__(self) -> "ConnectionPool[T]":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


@dataclass
class KeepAliveConnection(Generic[T]):
    """A pooled connection with the time it was last known to be alive."""

    conn: T
    last_used: float


class KeepAlivePool(ConnectionPool[KeepAliveConnection[T]]):
    """A pool that pings idle connections and reopens the ones that fail.

    A background thread runs :meth:`check_connections` every minute until the
    pool is closed. Connections used within ``idle_seconds`` are left alone.
    """

    def __init__(
        self,
        factory: Callable[[], T],
        size: int,
        ping: Callable[[T], Any],
        idle_seconds: float = DEFAULT_IDLE_SECONDS,
    ):
        self._raw_factory = factory
        self._ping = ping
        self._idle_seconds = idle_seconds
        self._stopped = threading.Event()
        super().__init__(self._open, size)
        self._keepalive_thread = threading.Thread(
            target=self._keepalive_loop, name="pool-keepalive", daemon=True
        )
        self._keepalive_thread.start()

    def _open(self) -> KeepAliveConnection[T]:
        return KeepAliveConnection(self._raw_factory(), time.time())

    def _keepalive_loop(self) -> None:
        while not self._stopped.wait(KEEPALIVE_INTERVAL_SECONDS):
            self.check_connections()

    def check_connections(self, now: float | None = None) -> None:
        """Ping every idle connection unused for ``idle_seconds`` or longer.

        A connection whose ping raises is replaced by a fresh one; if that
        cannot be opened either, it is dropped from the pool.
        """
        if now is None:
            now = time.time()
        with self._cond:
            if self._closed:
                return
            checked: deque[KeepAliveConnection[T]] = deque()
            while self._idle:
                entry = self._idle.popleft()
                if now - entry.last_used < self._idle_seconds:
                    checked.append(entry)
                    continue
                try:
                    self._ping(entry.conn)
                except Exception as exc:
                    log.warning("Error keeping connection alive: %s", exc)
                    try:
                        entry.conn = self._raw_factory()
                    except Exception:
                        log.exception("failed to reopen a pooled connection")
                        continue
                entry.last_used = now
                checked.append(entry)
            self._idle = checked
            if checked:
                self._cond.notify_all()

    def close(self) -> None:
        self._stopped.set()
        super().close()