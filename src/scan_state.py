#!/usr/bin/env python3
import threading
from typing import Optional


class ScanState:
    """Progress cursor plus the single-flight guard for scan cycles.

    The cursor is None until the first cycle sets it to the chain head.
    Mutations happen only between try_begin_cycle() and end_cycle().
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._in_flight = False
        self._cursor: Optional[int] = None

    @property
    def cursor(self) -> Optional[int]:
        return self._cursor

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def initialized(self) -> bool:
        return self._cursor is not None

    def try_begin_cycle(self) -> bool:
        with self._lock:
            if self._in_flight:
                return False
            self._in_flight = True
            return True

    def end_cycle(self):
        with self._lock:
            self._in_flight = False

    def initialize(self, height: int):
        if self._cursor is not None:
            raise RuntimeError(f"Cursor already initialized at {self._cursor}")
        self._cursor = int(height)

    def advance(self, blocks: int) -> int:
        if self._cursor is None:
            raise RuntimeError("Cursor not initialized")
        if blocks < 0:
            raise ValueError(f"Cursor cannot move backwards (advance by {blocks})")
        self._cursor += blocks
        return self._cursor
