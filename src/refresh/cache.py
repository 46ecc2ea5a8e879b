"""
Shared holder for the latest CacheSnapshot.
One writer (the refresh scheduler), many concurrent readers (request handlers).
"""
import threading
from contextlib import contextmanager
from typing import Iterator

from src.refresh.snapshot import EMPTY_SNAPSHOT, CacheSnapshot


class ReadWriteLock:
    """Many readers or one writer. A waiting writer blocks new readers so writes are not starved."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class SnapshotCache:
    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._snapshot: CacheSnapshot = EMPTY_SNAPSHOT

    def write(self, snapshot: CacheSnapshot) -> None:
        with self._lock.write_locked():
            self._snapshot = snapshot

    def read(self) -> CacheSnapshot:
        """Return the latest snapshot (EMPTY_SNAPSHOT before the first write). Snapshots are immutable."""
        with self._lock.read_locked():
            return self._snapshot
