# simcollect/sinks/status_sink.py
from __future__ import annotations

import threading

from simcollect import logs
from simcollect.core.ledger import ProgressLedger
from simcollect.core.records import RecordKind, SimulationStatusRecord
from simcollect.dispatch.sink import BaseSink
from simcollect.observability.progress import ProgressReporter


class SimulationStatusSink(BaseSink):
    """
    run 完成进度：

      - expected = 网格总数 - ledger 中已完成数
      - 每条 SimulationStatus record 推进一次进度
      - 失败的 run 以 warning 记录
    """

    handled_kinds = frozenset({RecordKind.SIMULATION_STATUS})

    TASK = "Experiment"

    def __init__(self, total_runs: int, progress: ProgressReporter | None = None):
        if total_runs < 0:
            raise ValueError(f"negative run count: {total_runs}")
        self.total_runs = total_runs
        self.progress = progress if progress is not None else ProgressReporter()
        self._lock = threading.Lock()
        self.expected = 0
        self.succeeded = 0
        self.failed = 0
        self.elapsed = 0.0

    def open_experiment(self, ledger: ProgressLedger) -> None:
        with self._lock:
            self.expected = max(self.total_runs - len(ledger), 0)
            self.succeeded = 0
            self.failed = 0
            self.elapsed = 0.0
        self.progress.start(self.TASK, self.expected, "runs")

    def handle(self, record: SimulationStatusRecord) -> None:
        with self._lock:
            if record.successful:
                self.succeeded += 1
            else:
                self.failed += 1
            self.elapsed += record.duration

        if not record.successful:
            logs.warning(f"[SimulationStatus] run {record.coord} failed after {record.duration:.3f}s")
        self.progress.advance(self.TASK, unit="runs")

    def close_experiment(self) -> None:
        with self._lock:
            done = self.succeeded + self.failed
            mean = self.elapsed / done if done else 0.0
            logs.info(
                f"[SimulationStatus] succeeded={self.succeeded} failed={self.failed} "
                f"expected={self.expected} mean_run_time={mean:.3f}s"
            )
        self.progress.done(self.TASK)
