# tests/experiment/test_executor.py
import pytest

from simcollect.core.coordinate import RunCoordinate, coordinate_grid
from simcollect.core.ledger import ProgressLedger, read_ledger
from simcollect.core.records import InventoryRecord, SimulationStatusRecord
from simcollect.dispatch.router import DispatchRouter, ExperimentState
from simcollect.dispatch.sink import BaseSink
from simcollect.experiment.executor import ExperimentExecutor
from simcollect.observability.instrumentation import Instrumentation
from simcollect.sinks.ledger_writer import ProgressLedgerWriter
from simcollect.utils.errors import SinkFailure


def emit_two(coord, emit):
    emit(InventoryRecord(coord=coord, amount=1.0))
    emit(InventoryRecord(coord=coord, amount=2.0))


def maybe_fail(coord, emit):
    emit(InventoryRecord(coord=coord, amount=1.0))
    if coord.scenario_id == 2:
        raise RuntimeError("boom")


@pytest.mark.parametrize("workers", [1, 4])
def test_executor_runs_grid(counting_sink, workers):
    router = DispatchRouter([counting_sink])
    grid = list(coordinate_grid(2, 3))

    summary = ExperimentExecutor.run(coords=grid, simulate=emit_two, router=router, max_workers=workers)

    assert sorted(summary.completed) == grid
    assert summary.failed == {}
    assert counting_sink.handle_count() == 12
    assert router.state is ExperimentState.CLOSED


def test_executor_skips_completed(counting_sink):
    router = DispatchRouter([counting_sink])
    done = RunCoordinate(2, 1)

    summary = ExperimentExecutor.run(
        coords=coordinate_grid(2, 1),
        simulate=emit_two,
        router=router,
        ledger=ProgressLedger([done]),
        max_workers=1,
    )

    assert summary.skipped == [done]
    assert done not in counting_sink.handled


def test_executor_partial_failure(counting_sink):
    router = DispatchRouter([counting_sink])

    summary = ExperimentExecutor.run(
        coords=coordinate_grid(3, 1), simulate=maybe_fail, router=router, max_workers=2
    )

    assert sorted(summary.completed) == [RunCoordinate(1, 1), RunCoordinate(3, 1)]
    assert list(summary.failed) == [RunCoordinate(2, 1)]
    assert "RuntimeError" in summary.failed[RunCoordinate(2, 1)]
    # 失败的 run 也会被正常关闭
    assert counting_sink.call_names()["close_simulation"] == 3


def test_executor_fail_fast_closes_experiment(counting_sink):
    router = DispatchRouter([counting_sink])

    with pytest.raises(RuntimeError, match="boom"):
        ExperimentExecutor.run(
            coords=coordinate_grid(3, 1), simulate=maybe_fail, router=router, max_workers=1, fail_fast=True
        )

    assert router.state is ExperimentState.CLOSED
    # 顺序执行：(3,1) 从未开始
    assert RunCoordinate(3, 1) not in counting_sink.handled


def test_resume_after_failure_via_ledger_file(tmp_path, make_sink):
    path = tmp_path / "progress.tsv"
    grid = list(coordinate_grid(3, 2))

    # 第一次执行：scenario 2 失败
    ledger, writer = ProgressLedgerWriter.load(path)
    first = make_sink()
    ExperimentExecutor.run(
        coords=grid, simulate=maybe_fail, router=DispatchRouter([first, writer]), ledger=ledger, max_workers=3
    )
    assert read_ledger(path).completed() == [c for c in grid if c.scenario_id != 2]

    # 第二次执行：只重跑 scenario 2
    ledger, writer = ProgressLedgerWriter.load(path)
    second = make_sink()
    summary = ExperimentExecutor.run(
        coords=grid, simulate=emit_two, router=DispatchRouter([second, writer]), ledger=ledger, max_workers=3
    )

    assert sorted(summary.completed) == [RunCoordinate(2, 1), RunCoordinate(2, 2)]
    assert set(second.handled) == {RunCoordinate(2, 1), RunCoordinate(2, 2)}
    assert read_ledger(path).completed() == grid


class RefusesToOpen(BaseSink):
    handled_kinds = frozenset({"Inventory"})

    def __init__(self, stage: str):
        self.stage = stage

    def open_experiment(self, ledger):
        if self.stage == "experiment":
            raise OSError("disk full")

    def open_simulation(self, coord):
        if self.stage == "simulation":
            raise OSError("disk full")

    def handle(self, record):
        pass


def test_open_simulation_failure_reaches_caller_and_releases_sinks(counting_sink):
    router = DispatchRouter([counting_sink, RefusesToOpen("simulation")])

    with pytest.raises(SinkFailure) as err:
        ExperimentExecutor.run(coords=coordinate_grid(1, 1), simulate=emit_two, router=router, max_workers=1)

    assert err.value.operation == "open_simulation"
    assert isinstance(err.value.__cause__, OSError)
    calls = counting_sink.call_names()
    assert calls["close_simulation"] == 1
    assert calls["close_experiment"] == 1
    assert router.state is ExperimentState.CLOSED


def test_open_experiment_failure_releases_opened_sinks(counting_sink):
    router = DispatchRouter([counting_sink, RefusesToOpen("experiment")])

    with pytest.raises(SinkFailure) as err:
        ExperimentExecutor.run(coords=coordinate_grid(2, 1), simulate=emit_two, router=router, max_workers=1)

    assert err.value.operation == "open_experiment"
    assert counting_sink.call_names()["close_experiment"] == 1
    assert counting_sink.call_names()["open_simulation"] == 0


def test_open_experiment_failure_closes_ledger_file(tmp_path):
    ledger, writer = ProgressLedgerWriter.load(tmp_path / "progress.tsv")
    router = DispatchRouter([writer, RefusesToOpen("experiment")])

    with pytest.raises(SinkFailure):
        ExperimentExecutor.run(coords=coordinate_grid(1, 1), simulate=emit_two, router=router, ledger=ledger)

    # 文件句柄已释放
    with pytest.raises(RuntimeError, match="not open"):
        writer.handle(SimulationStatusRecord(coord=RunCoordinate(1, 1), duration=0.0, successful=True))


def test_summary_recorded_as_metrics(counting_sink):
    inst = Instrumentation(enabled=True)
    router = DispatchRouter([counting_sink], inst=inst)

    ExperimentExecutor.run(
        coords=coordinate_grid(3, 1),
        simulate=maybe_fail,
        router=router,
        ledger=ProgressLedger([RunCoordinate(3, 1)]),
        max_workers=1,
    )

    metrics = inst.metrics.snapshot()
    assert metrics["runs.completed"] == 1
    assert metrics["runs.failed"] == 1
    assert metrics["runs.skipped"] == 1
    assert metrics["routed.Inventory"] == 2
