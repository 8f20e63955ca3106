#!filepath: simcollect/observability/instrumentation.py
from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, Hashable

from simcollect.observability.metrics import MetricRecorder
from simcollect.observability.progress import ProgressReporter
from simcollect.observability.timeline_reporter import TimelineReporter
from simcollect.observability.timer import Timer


@dataclass
class Instrumentation:
    """
    Router 的可选横切关注点。

    设计铁律：
    1. run_started / run_finished 记录每个 run 的 wall-time（timeline）
    2. record_routed 只做计数，不在热路径打日志
    3. 所有方法线程安全（多个 run 并发）
    4. Router 行为不依赖 inst 是否启用
    """

    enabled: bool = True

    def __post_init__(self):
        self.progress = ProgressReporter(enabled=self.enabled)
        self._timer = Timer(enabled=self.enabled)
        self.metrics = MetricRecorder(enabled=self.enabled)

        # timeline: OrderedDict[run_key, elapsed_seconds]
        self.timeline: Dict[Hashable, float] = OrderedDict()
        self._lock = threading.Lock()

    # ---------------------------------------------------------
    # run scope
    # ---------------------------------------------------------
    def run_started(self, key: Hashable) -> None:
        self._timer.start(key)

    def run_finished(self, key: Hashable) -> None:
        if not self.enabled:
            return
        elapsed = self._timer.end(key)
        with self._lock:
            self.timeline[key] = elapsed

    def record_routed(self, kind: str) -> None:
        self.metrics.increment(f"routed.{kind}")

    def record_metric(self, name: str, value) -> None:
        """冷路径：实验结束时的汇总指标（会打日志）"""
        self.metrics.record(name, value)

    # ---------------------------------------------------------
    # Timeline 输出（冷路径）
    # ---------------------------------------------------------
    def generate_timeline_report(self, title: str):
        with self._lock:
            snapshot = dict(self.timeline)
        TimelineReporter(snapshot, title).print()


# -------------------------------------------------------------
# No-op Instrumentation（禁用 observability）
# -------------------------------------------------------------
class NoOpInstrumentation:
    """Instrumentation disabled 时使用。"""

    def run_started(self, key: Hashable) -> None:
        pass

    def run_finished(self, key: Hashable) -> None:
        pass

    def record_routed(self, kind: str) -> None:
        pass

    def record_metric(self, name: str, value) -> None:
        pass

    def generate_timeline_report(self, title: str):
        pass

