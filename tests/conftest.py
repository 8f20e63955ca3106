# tests/conftest.py
from __future__ import annotations

import threading
from collections import Counter, defaultdict
from typing import Dict, List

import pytest
from loguru import logger

from simcollect.core.coordinate import RunCoordinate
from simcollect.core.ledger import ProgressLedger
from simcollect.core.records import OutputRecord
from simcollect.dispatch.sink import OutputSink


@pytest.fixture(autouse=True)
def disable_file_logger():
    logger.remove()
    logger.add(lambda msg: None)  # or sys.stderr
    yield


class CountingSink(OutputSink):
    """
    线程安全的 sink stub：记录所有调用，按 coord 计数 handle
    """

    def __init__(self, kinds=("Inventory",), name: str = "counting"):
        self.kinds = set(kinds)
        self.name = name
        self._lock = threading.Lock()
        self.calls: List[tuple] = []
        self.handled: Dict[RunCoordinate, List[OutputRecord]] = defaultdict(list)
        self.kind_queries = 0

    def _log(self, *call):
        with self._lock:
            self.calls.append(call)

    def open_experiment(self, ledger: ProgressLedger) -> None:
        self._log("open_experiment", len(ledger))

    def open_simulation(self, coord: RunCoordinate) -> None:
        self._log("open_simulation", coord)

    def close_simulation(self, coord: RunCoordinate) -> None:
        self._log("close_simulation", coord)

    def close_experiment(self) -> None:
        self._log("close_experiment")

    def handle(self, record: OutputRecord) -> None:
        with self._lock:
            self.handled[record.coord].append(record)
        self._log("handle", record.coord, record.kind)

    def get_handled_kinds(self):
        with self._lock:
            self.kind_queries += 1
        return set(self.kinds)

    # ---------- 断言辅助 ----------
    def handle_count(self) -> int:
        return sum(len(v) for v in self.handled.values())

    def call_names(self) -> Counter:
        return Counter(call[0] for call in self.calls)

    def __repr__(self) -> str:
        return f"CountingSink({self.name})"


# ✅ 关键：fixture 定义
@pytest.fixture
def counting_sink() -> CountingSink:
    return CountingSink()


@pytest.fixture
def coord() -> RunCoordinate:
    return RunCoordinate(1, 1)


@pytest.fixture
def make_sink():
    def _make(kinds=("Inventory",), name: str = "counting") -> CountingSink:
        return CountingSink(kinds=kinds, name=name)

    return _make
