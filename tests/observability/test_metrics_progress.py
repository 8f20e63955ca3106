#!filepath: tests/observability/test_metrics_progress.py
import threading

from simcollect.observability.metrics import MetricRecorder
from simcollect.observability.progress import ProgressReporter


def test_metric_record():
    m = MetricRecorder(enabled=True)
    m.record("runs", 12)

    assert m.metrics["runs"] == 12


def test_metric_increment_concurrent():
    m = MetricRecorder(enabled=True)

    def work():
        for _ in range(1000):
            m.increment("routed.Inventory")

    threads = [threading.Thread(target=work) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert m.snapshot()["routed.Inventory"] == 4000


def test_metric_disabled():
    m = MetricRecorder(enabled=False)
    m.record("x", 1)
    m.increment("y")

    # Nothing should be recorded
    assert m.metrics == {}


def test_progress_advance():
    p = ProgressReporter(enabled=True)
    p.start("Experiment", 3, "runs")
    p.advance("Experiment")
    assert p.advance("Experiment") == 2
    p.done("Experiment")
    assert p.current("Experiment") == 0


def test_progress_disabled():
    p = ProgressReporter(enabled=False)
    # Should not crash, and should do nothing
    p.start("Task", 10)
    assert p.advance("Task") == 0
    p.done("Task")
