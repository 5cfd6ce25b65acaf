# crowdwatch/services/rapid_inflow.py
"""
Rapid-inflow detection: N entries on the same Area within a W-second sliding window.

The windows live in process memory only. They are lost on restart and are not shared
between worker processes, so running several workers needs sticky routing by area id.
Each window holds at most N timestamps; old ones are evicted on every insert.
"""

import threading
import time
from collections import deque
from typing import Callable, Dict, Optional

from crowdwatch.utils.logger import get_logger

logger = get_logger(__name__)


class _Window:
    __slots__ = ("lock", "entries")

    def __init__(self, maxlen: int):
        self.lock = threading.Lock()
        self.entries = deque(maxlen=maxlen)


class RapidInflowWindow:
    def __init__(self, count: int = 10, seconds: float = 30,
                 clock: Callable[[], float] = time.monotonic):
        if count < 1:
            raise ValueError("count must be >= 1")
        if seconds <= 0:
            raise ValueError("seconds must be > 0")
        self.count = count
        self.seconds = seconds
        self._clock = clock
        self._windows: Dict[int, _Window] = {}
        self._registry_lock = threading.Lock()

    def _window_for(self, area_id: int) -> _Window:
        with self._registry_lock:
            window = self._windows.get(area_id)
            if window is None:
                window = self._windows[area_id] = _Window(self.count)
            return window

    def record_entry(self, area_id: int, now: Optional[float] = None) -> bool:
        """Record one entry and report whether the window now holds >= count entries."""
        if now is None:
            now = self._clock()
        cutoff = now - self.seconds
        window = self._window_for(area_id)
        with window.lock:
            window.entries.append(now)
            while window.entries and window.entries[0] < cutoff:
                window.entries.popleft()
            size = len(window.entries)
        if size >= self.count:
            logger.debug(f"[INFLOW] area={area_id} {size} entries within {self.seconds}s")
            return True
        return False

    def size(self, area_id: int) -> int:
        with self._registry_lock:
            window = self._windows.get(area_id)
        if window is None:
            return 0
        with window.lock:
            return len(window.entries)

    def forget(self, area_id: int):
        """Drop the window of a deleted or reset Area."""
        with self._registry_lock:
            self._windows.pop(area_id, None)
