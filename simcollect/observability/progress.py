#!filepath: simcollect/observability/progress.py
import threading
from typing import Dict, Tuple

from simcollect import logs


class ProgressReporter:
    """
    最轻量进度系统（不会影响 pytest、CI，不依赖 Rich/TQDM）

    advance() 可被多个 run 线程并发调用。
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._tasks: Dict[str, Tuple[int, int]] = {}
        self._lock = threading.Lock()

    def start(self, task: str, total: int, unit: str = ""):
        if not self.enabled:
            return
        with self._lock:
            self._tasks[task] = (0, total)
        logs.info(f"[Progress] {task} started total={total} {unit}")

    def advance(self, task: str, step: int = 1, unit: str = "") -> int:
        if not self.enabled:
            return 0
        with self._lock:
            current, total = self._tasks.get(task, (0, 0))
            current += step
            self._tasks[task] = (current, total)
        self.update(task, current, total, unit)
        return current

    def update(self, task: str, current: int, total: int, unit: str = ""):
        if not self.enabled:
            return
        pct = f" ({current / total:.1%})" if total else ""
        logs.info(f"[Progress] {task}: {current}/{total} {unit}{pct}")

    def done(self, task: str):
        if not self.enabled:
            return
        with self._lock:
            self._tasks.pop(task, None)
        logs.info(f"[Progress] {task} done")

    def current(self, task: str) -> int:
        with self._lock:
            return self._tasks.get(task, (0, 0))[0]
