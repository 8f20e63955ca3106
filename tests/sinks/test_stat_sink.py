# tests/sinks/test_stat_sink.py
import statistics
from concurrent.futures import ThreadPoolExecutor

import pytest

from simcollect.core.coordinate import RunCoordinate, coordinate_grid
from simcollect.core.records import InventoryRecord, RecordKind
from simcollect.dispatch.router import DispatchRouter
from simcollect.sinks.stat_sink import StatSink


def _amounts(coord):
    return [coord.scenario_id * 10.0 + coord.replication_id + t for t in range(5)]


def _run(router, coord):
    with router.run(coord):
        for amount in _amounts(coord):
            router.route(InventoryRecord(coord=coord, amount=amount))


def test_stats_per_scenario_across_concurrent_runs():
    sink = StatSink(RecordKind.INVENTORY, "amount")
    router = DispatchRouter([sink])
    grid = list(coordinate_grid(3, 4))

    with router.experiment():
        with ThreadPoolExecutor(max_workers=6) as pool:
            list(pool.map(lambda c: _run(router, c), grid))

    stats = sink.stats()
    assert sorted(stats) == [1, 2, 3]
    for scenario_id, stat in stats.items():
        values = [v for c in grid if c.scenario_id == scenario_id for v in _amounts(c)]
        assert stat.size() == len(values) == 20
        assert stat.mean == pytest.approx(statistics.fmean(values))
        assert stat.variance == pytest.approx(statistics.variance(values))
        assert stat.min == min(values)
        assert stat.max == max(values)

    assert sink.overall().size() == 60


def test_unclosed_run_not_counted():
    sink = StatSink("Inventory", "amount")
    router = DispatchRouter([sink])
    router.open_experiment()

    c = RunCoordinate(1, 1)
    router.open_run(c)
    router.route(InventoryRecord(coord=c, amount=5.0))

    assert sink.stats() == {}
    router.close_run(c)
    assert sink.stats()[1].mean == 5.0


def test_to_frame_has_one_row_per_scenario():
    sink = StatSink("Inventory", "amount")
    router = DispatchRouter([sink])

    with router.experiment():
        for c in coordinate_grid(2, 2):
            _run(router, c)

    frame = sink.to_frame()
    assert list(frame.index) == [1, 2]
    assert list(frame.columns) == ["count", "mean", "variance", "standard_deviation", "min", "max"]
    assert frame.loc[1, "count"] == 10


def test_declared_kind_is_normalised():
    assert StatSink(RecordKind.INVENTORY, "amount").get_handled_kinds() == frozenset({"Inventory"})
