# simcollect/core/coordinate.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator


@dataclass(frozen=True, order=True, slots=True)
class RunCoordinate:
    """
    RunCoordinate（FROZEN）

    实验网格中一次 simulation run 的唯一标识：
      - scenario_id    : 场景编号（从 1 开始）
      - replication_id : 重复编号（从 1 开始）

    结构相等，可作 dict key；排序按 (scenario, replication)。
    """

    scenario_id: int
    replication_id: int

    def __post_init__(self) -> None:
        for name in ("scenario_id", "replication_id"):
            value = getattr(self, name)
            # bool 是 int 的子类，显式排除
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"{name} must be int, got {type(value).__name__}")
            if value < 1:
                raise ValueError(f"{name} must be positive, got {value}")

    def __str__(self) -> str:
        return f"({self.scenario_id},{self.replication_id})"


def coordinate_grid(scenario_count: int, replication_count: int) -> Iterator[RunCoordinate]:
    """
    枚举 scenario × replication 网格（scenario 外层，replication 内层）。
    """
    if scenario_count < 0 or replication_count < 0:
        raise ValueError("negative grid dimension")
    for s in range(1, scenario_count + 1):
        for r in range(1, replication_count + 1):
            yield RunCoordinate(s, r)
