# simcollect/stats/summation.py
from __future__ import annotations


class CompensatedSummation:
    """
    Kahan 补偿求和。

    累计舍入误差 O(1) ulp，与项数无关（朴素求和为 O(n)）。
    非有限值（inf / nan）原样传播，作为上游数值故障的信号，不做截断。

    非线程安全：跨 run 聚合时由调用方加锁。
    """

    __slots__ = ("_sum", "_error")

    def __init__(self) -> None:
        self._sum = 0.0
        self._error = 0.0

    def add(self, value: float) -> None:
        corrected = value - self._error
        new_sum = self._sum + corrected
        self._error = (new_sum - self._sum) - corrected
        self._sum = new_sum

    def get_sum(self) -> float:
        return self._sum

    def __float__(self) -> float:
        return self._sum

    def __repr__(self) -> str:
        return f"CompensatedSummation(sum={self._sum!r}, error={self._error!r})"
