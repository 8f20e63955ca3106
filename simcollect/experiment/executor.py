# simcollect/experiment/executor.py
from __future__ import annotations

import os
import threading
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from time import perf_counter
from typing import Callable, Dict, Iterable, List, Optional

from simcollect import logs
from simcollect.core.coordinate import RunCoordinate
from simcollect.core.ledger import ProgressLedger
from simcollect.core.records import OutputRecord, SimulationStatusRecord
from simcollect.dispatch.router import DispatchRouter

# engine 签名：simulate(coord, emit)，emit 即 router.route
Simulate = Callable[[RunCoordinate, Callable[[OutputRecord], None]], None]


@dataclass
class ExperimentSummary:
    completed: List[RunCoordinate] = field(default_factory=list)
    failed: Dict[RunCoordinate, str] = field(default_factory=dict)
    skipped: List[RunCoordinate] = field(default_factory=list)

    def __post_init__(self):
        self._lock = threading.Lock()

    def mark_done(self, coord: RunCoordinate) -> None:
        with self._lock:
            self.completed.append(coord)

    def mark_failed(self, coord: RunCoordinate, reason: str) -> None:
        with self._lock:
            self.failed[coord] = reason


class _RunFailure(Exception):
    def __init__(self, coord: RunCoordinate, error: BaseException):
        super().__init__(str(error))
        self.coord = coord
        self.error = error


class ExperimentExecutor:
    """
    ExperimentExecutor（最小 run driver）

    目标：
    - 驱动 router 完整生命周期（open_experiment → runs → close_experiment）
    - ledger 中已完成的 run 不再调度
    - 每个 run 结束后发出一条 SimulationStatusRecord（供 ledger writer / 进度）
    - 不定义调度策略：顺序执行或线程池，仅此而已
    """

    @staticmethod
    def run(
            *,
            coords: Iterable[RunCoordinate],
            simulate: Simulate,
            router: DispatchRouter,
            ledger: Optional[ProgressLedger] = None,
            max_workers: int | None = None,
            fail_fast: bool = False,
            produce_status_output: bool = True,
    ) -> ExperimentSummary:
        ledger = ledger if ledger is not None else ProgressLedger.empty()
        summary = ExperimentSummary()

        pending: List[RunCoordinate] = []
        for coord in coords:
            if ledger.is_completed(coord):
                summary.skipped.append(coord)
            else:
                pending.append(coord)

        logs.info(
            f"[ExperimentExecutor] start "
            f"runs={len(pending)} skipped={len(summary.skipped)}"
        )

        def handler(coord: RunCoordinate) -> None:
            ExperimentExecutor._run_one(coord, simulate, router, summary, fail_fast, produce_status_output)

        first_failure: _RunFailure | None = None
        # open 失败时 experiment() 会先释放已 open 的 sink 再抛出；退出时必定 close_experiment
        with router.experiment(ledger):
            try:
                if pending:
                    workers = ExperimentExecutor._resolve_workers(pending, max_workers)
                    if workers == 1:
                        ExperimentExecutor._run_sequential(pending, handler)
                    else:
                        ExperimentExecutor._run_parallel(pending, handler, workers)
            except _RunFailure as e:
                first_failure = e

        logs.info(
            f"[ExperimentExecutor] done "
            f"completed={len(summary.completed)} failed={len(summary.failed)} "
            f"skipped={len(summary.skipped)}"
        )
        router.inst.record_metric("runs.completed", len(summary.completed))
        router.inst.record_metric("runs.failed", len(summary.failed))
        router.inst.record_metric("runs.skipped", len(summary.skipped))

        if first_failure is not None:
            raise first_failure.error
        return summary

    # ---------------- internal ----------------

    @staticmethod
    def _resolve_workers(items: list, max_workers: int | None) -> int:
        cpu = os.cpu_count() or 1
        if max_workers is None:
            return min(cpu, len(items))
        return max(1, min(max_workers, len(items)))

    @staticmethod
    def _run_sequential(items: List[RunCoordinate], handler: Callable[[RunCoordinate], None]) -> None:
        for item in items:
            handler(item)

    @staticmethod
    def _run_parallel(items: List[RunCoordinate], handler: Callable[[RunCoordinate], None], workers: int) -> None:
        logs.info(f"[ExperimentExecutor] run parallel | workers={workers}")

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="run") as pool:
            futures = [pool.submit(handler, item) for item in items]
            done, not_done = wait(futures, return_when=FIRST_EXCEPTION)
            for fut in not_done:
                fut.cancel()
        # 已开始的 run 在 with 退出时跑完；只取第一个失败
        for fut in futures:
            if not fut.cancelled() and fut.exception() is not None:
                raise fut.exception()

    @staticmethod
    def _run_one(
            coord: RunCoordinate,
            simulate: Simulate,
            router: DispatchRouter,
            summary: ExperimentSummary,
            fail_fast: bool,
            produce_status_output: bool,
    ) -> None:
        router.open_run(coord)
        start = perf_counter()
        error: BaseException | None = None
        try:
            try:
                simulate(coord, router.route)
            except Exception as e:
                error = e
                logs.exception(f"[ExperimentExecutor] simulation failure for run {coord}")

            if produce_status_output:
                router.route(
                    SimulationStatusRecord(
                        coord=coord,
                        duration=perf_counter() - start,
                        successful=error is None,
                    )
                )
        finally:
            router.close_run(coord)

        if error is None:
            summary.mark_done(coord)
            return

        summary.mark_failed(coord, f"{type(error).__name__}: {error}")
        if fail_fast:
            raise _RunFailure(coord, error)
