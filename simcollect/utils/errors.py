# simcollect/utils/errors.py
from __future__ import annotations

from typing import Any, Optional


class UserInputError(RuntimeError):
    """
    Raised for invalid user-provided config (counts, paths, etc).
    Should NOT print traceback.
    """


class StatConstructionError(ValueError):
    """
    DescriptiveStat 构造失败：某个不变量被违反。
    永远直接抛给调用方，不做任何修正。
    """

    def __init__(self, invariant: str, message: str):
        super().__init__(f"[{invariant}] {message}")
        self.invariant = invariant


class LifecycleError(RuntimeError):
    """
    Router 生命周期调用顺序错误（编程错误，不重试）。
    """


class SinkFailure(RuntimeError):
    """
    Sink 在 handle / 生命周期调用中抛出的异常。

    Router 不重试、不吞掉，只包装后交给 orchestrator 决定。
    原始异常通过 __cause__ 保留。
    """

    def __init__(self, sink: Any, operation: str, coord: Optional[Any] = None):
        where = f" for {coord}" if coord is not None else ""
        super().__init__(f"sink {sink!r} failed in {operation}{where}")
        self.sink = sink
        self.operation = operation
        self.coord = coord
