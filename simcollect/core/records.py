# simcollect/core/records.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar

from simcollect.core.coordinate import RunCoordinate


class RecordKind(str, Enum):
    """
    内置 record kind。

    str Enum：sink 可以直接声明 "Inventory" 这样的字符串，
    与 RecordKind.INVENTORY 比较相等、hash 相同。
    """

    SIMULATION_STATUS = "SimulationStatus"
    LOG = "Log"
    INVENTORY = "Inventory"
    DEBUG = "Debug"

    def __str__(self) -> str:
        return self.value


# -------------------------
# Base
# -------------------------
@dataclass(frozen=True)
class OutputRecord:
    """
    所有 output record 的基类（不可变）。

    契约：
      - 每个 record 都带产出它的 RunCoordinate
      - 子类通过 class 级 `kind` 声明类别（sink 按 kind 订阅，不做类型判断）
      - frozen：跨线程传递无需同步
    """

    kind: ClassVar[str] = ""

    coord: RunCoordinate

    @property
    def scenario_id(self) -> int:
        return self.coord.scenario_id

    @property
    def replication_id(self) -> int:
        return self.coord.replication_id


# -------------------------
# Simulation status
# -------------------------
@dataclass(frozen=True)
class SimulationStatusRecord(OutputRecord):
    kind: ClassVar[str] = RecordKind.SIMULATION_STATUS.value

    duration: float = 0.0
    successful: bool = False

    def __post_init__(self) -> None:
        if self.duration < 0:
            raise ValueError(f"negative duration: {self.duration}")


# -------------------------
# Log
# -------------------------
class LogStatus(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


@dataclass(frozen=True)
class LogRecord(OutputRecord):
    kind: ClassVar[str] = RecordKind.LOG.value

    status: LogStatus = LogStatus.INFO
    message: str = ""


# -------------------------
# Resource inventory sample
# -------------------------
@dataclass(frozen=True)
class InventoryRecord(OutputRecord):
    kind: ClassVar[str] = RecordKind.INVENTORY.value

    resource_id: str = ""
    region_id: str = ""
    amount: float = 0.0
    time: float = 0.0


# -------------------------
# Debug
# -------------------------
@dataclass(frozen=True)
class DebugRecord(OutputRecord):
    kind: ClassVar[str] = RecordKind.DEBUG.value

    message: str = ""
