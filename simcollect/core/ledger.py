# simcollect/core/ledger.py
from __future__ import annotations

from pathlib import Path
from typing import FrozenSet, Iterable, Iterator, List

from simcollect import logs
from simcollect.core.coordinate import RunCoordinate
from simcollect.utils.filesystem import FileSystem


class ProgressLedger:
    """
    ProgressLedger（只读）

    上一次（可能崩溃的）实验执行中【完整成功】的 RunCoordinate 集合。

    契约：
      - 在 ledger 中的 run：不得重新 open，不得向已消费过的 sink 重复投递 record
      - 不在 ledger 中的 run：视为未完成，必须完整重跑
      - openExperiment 时构造一次，之后只读
    """

    __slots__ = ("_completed",)

    def __init__(self, completed: Iterable[RunCoordinate] = ()):
        self._completed: FrozenSet[RunCoordinate] = frozenset(completed)

    @classmethod
    def empty(cls) -> "ProgressLedger":
        return cls()

    @classmethod
    def builder(cls) -> "ProgressLedgerBuilder":
        return ProgressLedgerBuilder()

    # -------------------------------------------------
    # query
    # -------------------------------------------------
    def is_completed(self, coord: RunCoordinate) -> bool:
        return coord in self._completed

    def completed(self) -> List[RunCoordinate]:
        """按 (scenario, replication) 排序的已完成 run。"""
        return sorted(self._completed)

    def scenario_ids(self) -> List[int]:
        return sorted({c.scenario_id for c in self._completed})

    def replication_ids(self, scenario_id: int) -> List[int]:
        return sorted(c.replication_id for c in self._completed if c.scenario_id == scenario_id)

    def __contains__(self, coord: object) -> bool:
        return coord in self._completed

    def __iter__(self) -> Iterator[RunCoordinate]:
        return iter(self.completed())

    def __len__(self) -> int:
        return len(self._completed)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProgressLedger):
            return NotImplemented
        return self._completed == other._completed

    def __hash__(self) -> int:
        return hash(self._completed)

    def __repr__(self) -> str:
        return f"ProgressLedger(completed={len(self._completed)})"


class ProgressLedgerBuilder:
    """
    可复用 builder：build() 之后一律重置（无论成功与否）。
    """

    def __init__(self) -> None:
        self._coords: set[RunCoordinate] = set()

    def add(self, coord: RunCoordinate) -> "ProgressLedgerBuilder":
        if coord is None:
            raise ValueError("null run coordinate")
        self._coords.add(coord)
        return self

    def build(self) -> ProgressLedger:
        try:
            return ProgressLedger(self._coords)
        finally:
            self._coords = set()


# -------------------------------------------------
# durable format: "scenario\treplication" per line
# -------------------------------------------------
def format_entry(coord: RunCoordinate) -> str:
    return f"{coord.scenario_id}\t{coord.replication_id}\n"


def parse_entry(line: str) -> RunCoordinate:
    parts = line.split("\t")
    if len(parts) != 2:
        raise ValueError(f"malformed ledger line: {line!r}")
    return RunCoordinate(int(parts[0]), int(parts[1]))


def read_ledger(path: str | Path) -> ProgressLedger:
    """
    读取 ledger 文件。

    - 文件不存在 → 空 ledger
    - 遇到第一条无法解析的行即停止：崩溃时写了一半的末行不可信，
      只有完整写出的条目才算完成
    """
    builder = ProgressLedgerBuilder()
    count = 0
    for line in FileSystem.iter_lines(path):
        try:
            coord = parse_entry(line)
        except (ValueError, TypeError):
            logs.warning(f"[Ledger] stop at malformed line {count + 1} in {path}: {line!r}")
            break
        builder.add(coord)
        count += 1

    ledger = builder.build()
    logs.info(f"[Ledger] loaded {len(ledger)} completed runs from {path}")
    return ledger
