# simcollect/dispatch/sink.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AbstractSet, ClassVar, FrozenSet

from simcollect.core.coordinate import RunCoordinate
from simcollect.core.ledger import ProgressLedger
from simcollect.core.records import OutputRecord


class OutputSink(ABC):
    """
    OutputSink 契约（线程安全是硬前提）

    生命周期（由 DispatchRouter 驱动）：
        open_experiment(ledger)
          { open_simulation(coord) → handle(record)* → close_simulation(coord) }*
        close_experiment()

    设计铁律：
      - get_handled_kinds() 纯函数，每次实验执行只被查询一次
      - handle() 不得无限阻塞；缓冲 / flush 最晚在 close_simulation / close_experiment
      - 不同 RunCoordinate 的内部状态相互隔离；
        若跨 run 聚合（例如 DescriptiveStat），聚合本身必须并发安全
      - Router 不检测 sink 的线程安全违例
    """

    @abstractmethod
    def open_experiment(self, ledger: ProgressLedger) -> None:
        """
        实验开始（阻塞）。与 ledger 一致的既有输出应保留，其余应清除。
        """

    @abstractmethod
    def open_simulation(self, coord: RunCoordinate) -> None:
        """run 开始（阻塞）。"""

    @abstractmethod
    def close_simulation(self, coord: RunCoordinate) -> None:
        """
        该 run 不会再有 handle 调用（阻塞）；per-run 数据应在此 flush。
        """

    @abstractmethod
    def close_experiment(self) -> None:
        """实验结束（阻塞）；释放全部资源。"""

    @abstractmethod
    def handle(self, record: OutputRecord) -> None:
        """处理一条 record；不要求阻塞。"""

    @abstractmethod
    def get_handled_kinds(self) -> AbstractSet[str]:
        """本 sink 订阅的 record kind 集合。"""

    def accepts_run(self, coord: RunCoordinate, ledger: ProgressLedger) -> bool:
        """
        断点续跑决策：该 run 的生命周期调用与 record 是否投递给本 sink。

        默认：ledger 中已完成的 run 不再处理。需要重放的 sink 可覆盖。
        """
        return not ledger.is_completed(coord)


class BaseSink(OutputSink):
    """
    便捷基类：生命周期默认 do nothing，订阅集合由 class 属性声明。
    """

    handled_kinds: ClassVar[FrozenSet[str]] = frozenset()

    def open_experiment(self, ledger: ProgressLedger) -> None:
        pass

    def open_simulation(self, coord: RunCoordinate) -> None:
        pass

    def close_simulation(self, coord: RunCoordinate) -> None:
        pass

    def close_experiment(self) -> None:
        pass

    def get_handled_kinds(self) -> AbstractSet[str]:
        return frozenset(str(k) for k in self.handled_kinds)

    def __repr__(self) -> str:
        return self.__class__.__name__
