# simcollect/sinks/stat_sink.py
from __future__ import annotations

import threading
from typing import Dict

import pandas as pd

from simcollect.core.coordinate import RunCoordinate
from simcollect.core.ledger import ProgressLedger
from simcollect.core.records import OutputRecord
from simcollect.dispatch.router import kind_tag
from simcollect.dispatch.sink import BaseSink
from simcollect.stats.descriptive import DescriptiveStat, MutableStat, combine_stats


class StatSink(BaseSink):
    """
    跨 run 聚合：某一 kind 的某个数值字段 → 每个 scenario 一个 DescriptiveStat

    - per-run 先累加到独立的 MutableStat（run 之间隔离，无锁）
    - close_simulation 时合并进 scenario 级累加器（加锁）
    - 未 close 的 run 不计入结果：崩溃 / 失败的半截 run 不污染统计
    """

    def __init__(self, kind, field: str):
        self.kind = kind_tag(kind)
        self.field = field
        self._lock = threading.Lock()
        self._per_run: Dict[RunCoordinate, MutableStat] = {}
        self._per_scenario: Dict[int, MutableStat] = {}

    def get_handled_kinds(self):
        return frozenset({self.kind})

    def open_experiment(self, ledger: ProgressLedger) -> None:
        with self._lock:
            self._per_run.clear()
            self._per_scenario.clear()

    def open_simulation(self, coord: RunCoordinate) -> None:
        with self._lock:
            self._per_run[coord] = MutableStat()

    def handle(self, record: OutputRecord) -> None:
        value = getattr(record, self.field)
        # 同一个 run 的 handle 由 router 串行调用，此处不需要锁
        self._per_run[record.coord].add(value)

    def close_simulation(self, coord: RunCoordinate) -> None:
        with self._lock:
            run_stat = self._per_run.pop(coord, None)
            if run_stat is None or run_stat.size() == 0:
                return
            scenario = self._per_scenario.get(coord.scenario_id, MutableStat())
            self._per_scenario[coord.scenario_id] = combine_stats(scenario, run_stat)

    # --------------------------------------------------
    # results
    # --------------------------------------------------
    def stats(self) -> Dict[int, DescriptiveStat]:
        with self._lock:
            return {s: acc.to_stat() for s, acc in sorted(self._per_scenario.items())}

    def overall(self) -> DescriptiveStat:
        with self._lock:
            return combine_stats(*self._per_scenario.values()).to_stat()

    def to_frame(self) -> pd.DataFrame:
        rows = [{"scenario_id": s, **stat.as_dict()} for s, stat in self.stats().items()]
        columns = ["scenario_id", "count", "mean", "variance", "standard_deviation", "min", "max"]
        return pd.DataFrame(rows, columns=columns).set_index("scenario_id")

    def __repr__(self) -> str:
        return f"StatSink({self.kind}.{self.field})"
