#!filepath: simcollect/observability/timer.py
import threading
import time
from typing import Dict, Hashable


class Timer:
    """
    高精度计时器（线程安全）
    - start(key)
    - end(key) → 返回耗时秒数
    - key 可以是任意 hashable（例如 RunCoordinate），并发 run 互不干扰
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._start: Dict[Hashable, float] = {}
        self._lock = threading.Lock()

    def start(self, key: Hashable):
        if not self.enabled:
            return
        with self._lock:
            self._start[key] = time.perf_counter()

    def end(self, key: Hashable) -> float:
        if not self.enabled:
            return 0.0
        with self._lock:
            started = self._start.pop(key, None)
        if started is None:
            return 0.0
        return time.perf_counter() - started
