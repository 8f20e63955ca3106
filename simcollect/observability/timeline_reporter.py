#!filepath: simcollect/observability/timeline_reporter.py
from typing import Dict, Hashable

from simcollect import logs


class TimelineReporter:
    """
    Experiment Timeline 报告：
    - run → 耗时秒数
    - 冷路径，仅在 close_experiment 后调用
    """

    def __init__(self, timeline: Dict[Hashable, float], title: str, top: int = 10):
        self.timeline = timeline
        self.title = title
        self.top = top

    def print(self):
        logs.info(f"[Timeline] ===== Experiment timeline for {self.title} =====")

        ranked = sorted(self.timeline.items(), key=lambda kv: kv[1], reverse=True)
        for name, sec in ranked[: self.top]:
            logs.info(f"[Timeline] {str(name):<30} {sec:>8.3f}s")
        if len(ranked) > self.top:
            logs.info(f"[Timeline] ... {len(ranked) - self.top} more runs")

        total = sum(self.timeline.values())
        logs.info(f"[Timeline] Runs{'':<26} {len(ranked):>8d}")
        logs.info(f"[Timeline] Total{'':<25} {total:>8.3f}s")
        logs.info("[Timeline] ===========================================")
