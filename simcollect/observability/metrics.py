#!filepath: simcollect/observability/metrics.py
import threading
from dataclasses import dataclass, field
from typing import Any, Dict

from simcollect import logs


@dataclass
class MetricRecorder:
    """
    - record()    : 冷路径，写入并打日志
    - increment() : 热路径计数（route 每条 record 调用），不打日志
    """

    enabled: bool = True
    metrics: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self._lock = threading.Lock()

    def record(self, name: str, value: Any):
        if not self.enabled:
            return
        with self._lock:
            self.metrics[name] = value
        logs.info(f"[Metric] {name} = {value}")

    def increment(self, name: str, delta: int = 1):
        if not self.enabled:
            return
        with self._lock:
            self.metrics[name] = self.metrics.get(name, 0) + delta

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self.metrics)
