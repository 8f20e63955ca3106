# simcollect/dispatch/router.py
from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from simcollect import logs
from simcollect.core.coordinate import RunCoordinate
from simcollect.core.ledger import ProgressLedger
from simcollect.core.records import OutputRecord
from simcollect.dispatch.sink import OutputSink
from simcollect.observability.instrumentation import Instrumentation, NoOpInstrumentation
from simcollect.utils.errors import LifecycleError, SinkFailure


class ExperimentState(str, Enum):
    NOT_STARTED = "not_started"
    OPENING = "opening"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class RunPhase(str, Enum):
    OPENING = "opening"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


def kind_tag(kind) -> str:
    """RecordKind / str → 统一的 str tag（Enum 的 hash 与其 value 不同）。"""
    return kind.value if isinstance(kind, Enum) else str(kind)


@dataclass
class SinkRegistration:
    """
    {sink, interested_kinds}

    interested_kinds 在 open_experiment 时写入一次，之后只读（无需加锁）。
    """

    sink: OutputSink
    interested_kinds: FrozenSet[str] = frozenset()


@dataclass
class _RunState:
    coord: RunCoordinate
    resumed: bool
    phase: RunPhase = RunPhase.OPENING
    subscribers: Tuple[SinkRegistration, ...] = ()
    by_kind: Dict[str, Tuple[OutputSink, ...]] = field(default_factory=dict)
    # 同一个 run 的 open / route / close 串行；不同 run 之间互不阻塞
    lock: threading.Lock = field(default_factory=threading.Lock)


class DispatchRouter:
    """
    DispatchRouter：OutputRecord → 订阅了该 kind 的所有 OutputSink

    生命周期：
        NOT_STARTED → open_experiment → OPEN
            { open_run → route* → close_run }*   （不同 run 可并发）
        close_experiment → CLOSED

    设计铁律：
      1. 每个 sink 的 kind 集合只在 open_experiment 查询一次并缓存
      2. Router 从不伪造、也从不自行丢弃 record；
         ledger 中已完成的 run 是否投递，由每个 sink 的 accepts_run() 决定
      3. 分发 sink 调用时不持有跨 run 共享的锁：一个卡住的 sink 只拖住经过它的 run
      4. sink 抛出的异常包装为 SinkFailure 交给调用方（不重试、不吞）
      5. 调用顺序错误 → LifecycleError
    """

    def __init__(
        self,
        sinks: Iterable[OutputSink] = (),
        inst: Instrumentation | None = None,
    ):
        self.inst: Instrumentation | NoOpInstrumentation = (
            inst if inst is not None else NoOpInstrumentation()
        )
        self._registrations: List[SinkRegistration] = []
        self._ledger: ProgressLedger = ProgressLedger.empty()
        self._state = ExperimentState.NOT_STARTED
        # 只保护 _state / _runs 的短临界区，绝不在持有时调用 sink
        self._state_lock = threading.Lock()
        self._runs: Dict[RunCoordinate, _RunState] = {}
        self._closed_runs = 0
        # open_experiment 成功的 sink；close_experiment 只关闭这些
        self._experiment_opened: List[SinkRegistration] = []

        for sink in sinks:
            self.register(sink)

    # --------------------------------------------------
    # registration
    # --------------------------------------------------
    def register(self, sink: OutputSink) -> None:
        if sink is None:
            raise ValueError("null output sink")
        with self._state_lock:
            if self._state is not ExperimentState.NOT_STARTED:
                raise LifecycleError("sinks must be registered before open_experiment")
            if any(reg.sink is sink for reg in self._registrations):
                raise LifecycleError(f"sink already registered: {sink!r}")
            self._registrations.append(SinkRegistration(sink))

    @property
    def sinks(self) -> List[OutputSink]:
        return [reg.sink for reg in self._registrations]

    @property
    def state(self) -> ExperimentState:
        return self._state

    @property
    def ledger(self) -> ProgressLedger:
        return self._ledger

    def interested_kinds(self, sink: OutputSink) -> FrozenSet[str]:
        for reg in self._registrations:
            if reg.sink is sink:
                return reg.interested_kinds
        raise KeyError(f"sink not registered: {sink!r}")

    def open_runs(self) -> List[RunCoordinate]:
        with self._state_lock:
            return sorted(c for c, r in self._runs.items() if r.phase is not RunPhase.CLOSED)

    # --------------------------------------------------
    # experiment scope
    # --------------------------------------------------
    def open_experiment(self, ledger: Optional[ProgressLedger] = None) -> None:
        with self._state_lock:
            if self._state is not ExperimentState.NOT_STARTED:
                raise LifecycleError(f"open_experiment in state {self._state.value}")
            self._state = ExperimentState.OPENING

        self._ledger = ledger if ledger is not None else ProgressLedger.empty()

        # ① kind 集合：只查询一次
        for reg in self._registrations:
            try:
                kinds = reg.sink.get_handled_kinds()
            except Exception as e:
                raise SinkFailure(reg.sink, "get_handled_kinds") from e
            reg.interested_kinds = frozenset(kind_tag(k) for k in kinds)

        # ② 转发 ledger，由各 sink 自行对账既有输出
        for reg in self._registrations:
            try:
                reg.sink.open_experiment(self._ledger)
            except Exception as e:
                raise SinkFailure(reg.sink, "open_experiment") from e
            self._experiment_opened.append(reg)

        with self._state_lock:
            self._state = ExperimentState.OPEN

        logs.info(
            f"[DispatchRouter] experiment opened | sinks={len(self._registrations)} "
            f"completed_runs={len(self._ledger)}"
        )

    def close_experiment(self) -> None:
        with self._state_lock:
            if self._state not in (ExperimentState.OPEN, ExperimentState.OPENING):
                raise LifecycleError(f"close_experiment in state {self._state.value}")
            still_open = sorted(c for c, r in self._runs.items() if r.phase is not RunPhase.CLOSED)
            if still_open:
                raise LifecycleError(f"close_experiment with open runs: {', '.join(map(str, still_open))}")
            self._state = ExperimentState.CLOSING

        # 每个 sink 都必须有机会释放资源；第一个失败在最后抛出
        first_failure: SinkFailure | None = None
        for reg in self._experiment_opened:
            try:
                reg.sink.close_experiment()
            except Exception as e:
                logs.error(f"[DispatchRouter] close_experiment failed for {reg.sink!r}: {e}")
                if first_failure is None:
                    first_failure = SinkFailure(reg.sink, "close_experiment")
                    first_failure.__cause__ = e

        with self._state_lock:
            self._state = ExperimentState.CLOSED

        logs.info(f"[DispatchRouter] experiment closed | runs={self._closed_runs}")

        if first_failure is not None:
            raise first_failure

    # --------------------------------------------------
    # run scope
    # --------------------------------------------------
    def open_run(self, coord: RunCoordinate) -> None:
        with self._state_lock:
            self._require_open("open_run")
            existing = self._runs.get(coord)
            if existing is not None and existing.phase is not RunPhase.CLOSED:
                raise LifecycleError(f"run {coord} is already open")
            run = _RunState(coord=coord, resumed=self._ledger.is_completed(coord))
            self._runs[coord] = run
            # 新建的锁，持有 state_lock 时获取不会阻塞
            run.lock.acquire()

        try:
            try:
                subscribers = self._accepting(coord)
            except SinkFailure:
                # 没有任何 sink 被 open，撤销该 run
                run.phase = RunPhase.CLOSED
                self._discard(run)
                raise

            opened: List[SinkRegistration] = []
            try:
                for reg in subscribers:
                    try:
                        reg.sink.open_simulation(coord)
                    except Exception as e:
                        raise SinkFailure(reg.sink, "open_simulation", coord) from e
                    opened.append(reg)
            except SinkFailure:
                # 回滚：已 open 的 sink 收到 close_simulation，run 被撤销
                run.phase = RunPhase.CLOSING
                self._close_simulations(coord, opened)
                run.phase = RunPhase.CLOSED
                self._discard(run)
                raise

            run.subscribers = tuple(opened)
            run.by_kind = self._index_by_kind(run.subscribers)
            run.phase = RunPhase.OPEN
        finally:
            run.lock.release()

        self.inst.run_started(coord)
        if run.resumed:
            logs.debug(
                f"[DispatchRouter] run {coord} opened (completed in ledger) | "
                f"sinks={len(run.subscribers)}/{len(self._registrations)}"
            )
        else:
            logs.debug(f"[DispatchRouter] run {coord} opened")

    def route(self, record: OutputRecord) -> None:
        coord = record.coord
        with self._state_lock:
            run = self._runs.get(coord)

        if run is None:
            raise LifecycleError(f"route for run {coord} which is not open")

        kind = kind_tag(record.kind)
        with run.lock:
            if run.phase is not RunPhase.OPEN:
                raise LifecycleError(f"route for run {coord} in phase {run.phase.value}")
            for sink in run.by_kind.get(kind, ()):
                try:
                    sink.handle(record)
                except Exception as e:
                    raise SinkFailure(sink, "handle", coord) from e

        self.inst.record_routed(kind)

    def close_run(self, coord: RunCoordinate) -> None:
        with self._state_lock:
            run = self._runs.get(coord)

        if run is None:
            raise LifecycleError(f"close_run for run {coord} which is not open")

        with run.lock:
            if run.phase is not RunPhase.OPEN:
                raise LifecycleError(f"close_run for run {coord} in phase {run.phase.value}")
            run.phase = RunPhase.CLOSING
            first_failure = self._close_simulations(coord, run.subscribers)
            run.phase = RunPhase.CLOSED

        self._discard(run)
        with self._state_lock:
            self._closed_runs += 1

        self.inst.run_finished(coord)
        logs.debug(f"[DispatchRouter] run {coord} closed")

        if first_failure is not None:
            raise first_failure

    # --------------------------------------------------
    # context managers
    # --------------------------------------------------
    @contextmanager
    def experiment(self, ledger: Optional[ProgressLedger] = None):
        try:
            self.open_experiment(ledger)
        except SinkFailure:
            # 已 open 的 sink 需要释放资源；原始失败优先抛出
            try:
                self.close_experiment()
            except SinkFailure as e:
                logs.error(f"[DispatchRouter] close after failed open_experiment: {e}")
            raise
        try:
            yield self
        finally:
            self.close_experiment()

    @contextmanager
    def run(self, coord: RunCoordinate):
        self.open_run(coord)
        try:
            yield self
        finally:
            self.close_run(coord)

    # --------------------------------------------------
    # internal
    # --------------------------------------------------
    def _require_open(self, operation: str) -> None:
        if self._state is not ExperimentState.OPEN:
            raise LifecycleError(f"{operation} in state {self._state.value}")

    def _accepting(self, coord: RunCoordinate) -> List[SinkRegistration]:
        subscribers: List[SinkRegistration] = []
        for reg in self._registrations:
            try:
                accepted = reg.sink.accepts_run(coord, self._ledger)
            except Exception as e:
                raise SinkFailure(reg.sink, "accepts_run", coord) from e
            if accepted:
                subscribers.append(reg)
        return subscribers

    def _close_simulations(
        self,
        coord: RunCoordinate,
        subscribers: Iterable[SinkRegistration],
    ) -> SinkFailure | None:
        """每个 sink 都收到 close_simulation；返回第一个失败（已记日志）。"""
        first_failure: SinkFailure | None = None
        for reg in subscribers:
            try:
                reg.sink.close_simulation(coord)
            except Exception as e:
                logs.error(f"[DispatchRouter] close_simulation failed for {reg.sink!r} {coord}: {e}")
                if first_failure is None:
                    first_failure = SinkFailure(reg.sink, "close_simulation", coord)
                    first_failure.__cause__ = e
        return first_failure

    def _discard(self, run: _RunState) -> None:
        with self._state_lock:
            if self._runs.get(run.coord) is run:
                del self._runs[run.coord]

    @staticmethod
    def _index_by_kind(subscribers: Tuple[SinkRegistration, ...]) -> Dict[str, Tuple[OutputSink, ...]]:
        index: Dict[str, List[OutputSink]] = {}
        for reg in subscribers:
            for kind in reg.interested_kinds:
                index.setdefault(kind, []).append(reg.sink)
        return {kind: tuple(sinks) for kind, sinks in index.items()}
