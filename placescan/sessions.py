from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterator, List

from .models import ScanSession


class ReadWriteLock:
    """Many readers or one writer. Writers are preferred once waiting."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
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
    def write(self) -> Iterator[None]:
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


class ScanSessions:
    """In-progress scans keyed by place id. Not persisted."""

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._sessions: Dict[int, ScanSession] = {}

    def begin_or_touch(self, place_id: int, scope_label: str) -> ScanSession:
        with self._lock.write():
            session = self._sessions.get(place_id)
            if session is None:
                session = ScanSession(
                    place_id=place_id,
                    started_at=datetime.now(timezone.utc),
                )
                self._sessions[place_id] = session
            session.progress = f"receiving {scope_label}"
            return session.model_copy()

    def list(self) -> List[ScanSession]:
        with self._lock.read():
            return [s.model_copy() for s in self._sessions.values()]

    def get(self, place_id: int) -> ScanSession | None:
        with self._lock.read():
            session = self._sessions.get(place_id)
            return session.model_copy() if session is not None else None

    def cancel(self, place_id: int) -> bool:
        with self._lock.write():
            return self._sessions.pop(place_id, None) is not None

    # Finalize clears unconditionally; same operation, different intent.
    clear = cancel

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._sessions)
