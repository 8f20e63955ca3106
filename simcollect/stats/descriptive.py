# simcollect/stats/descriptive.py
from __future__ import annotations

import math
from typing import Iterable, Optional

from simcollect.stats.summation import CompensatedSummation
from simcollect.utils.errors import StatConstructionError


class DescriptiveStat:
    """
    DescriptiveStat（FINAL / FROZEN）

    {mean, variance, standard_deviation, min, max, count} 的不可变快照。

    设计铁律：
      - 只能通过 DescriptiveStatBuilder.build() 构造（构造时校验不变量）
      - standard_deviation 在构造时由 sqrt(variance) 推导，之后不再重算
      - count == 0 时所有统计量访问器返回 None（undefined）
      - 值对象：结构相等
    """

    __slots__ = ("_mean", "_variance", "_standard_deviation", "_min", "_max", "_count")

    def __init__(self, mean: float, variance: float, minimum: float, maximum: float, count: int):
        self._mean = float(mean)
        self._variance = float(variance)
        self._standard_deviation = math.sqrt(self._variance) if self._variance >= 0 else math.nan
        self._min = float(minimum)
        self._max = float(maximum)
        self._count = int(count)

    def __setattr__(self, name, value):
        if hasattr(self, "_count"):
            raise AttributeError("DescriptiveStat is immutable")
        object.__setattr__(self, name, value)

    # ---------------------------------------------------------
    # accessors
    # ---------------------------------------------------------
    def _defined(self, value: float) -> Optional[float]:
        return value if self._count > 0 else None

    @property
    def mean(self) -> Optional[float]:
        return self._defined(self._mean)

    @property
    def variance(self) -> Optional[float]:
        return self._defined(self._variance)

    @property
    def standard_deviation(self) -> Optional[float]:
        return self._defined(self._standard_deviation)

    @property
    def min(self) -> Optional[float]:
        return self._defined(self._min)

    @property
    def max(self) -> Optional[float]:
        return self._defined(self._max)

    @property
    def count(self) -> int:
        return self._count

    def size(self) -> int:
        return self._count

    def as_dict(self) -> dict:
        return {
            "count": self._count,
            "mean": self.mean,
            "variance": self.variance,
            "standard_deviation": self.standard_deviation,
            "min": self.min,
            "max": self.max,
        }

    # ---------------------------------------------------------
    # value object
    # ---------------------------------------------------------
    def _key(self) -> tuple:
        return (self._mean, self._variance, self._standard_deviation, self._min, self._max, self._count)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DescriptiveStat):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __repr__(self) -> str:
        return (
            f"DescriptiveStat(mean={self._mean}, variance={self._variance}, "
            f"standard_deviation={self._standard_deviation}, max={self._max}, "
            f"min={self._min}, size={self._count})"
        )


class DescriptiveStatBuilder:
    """
    可变 scaffold → 不可变快照。

    setter 不做任何校验；build() 统一校验并且【无论成功失败】都把 scaffold
    重置为空状态，同一个 builder 可以连续构造多个 stat（失败后也可直接复用）。

    非线程安全。
    """

    def __init__(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self._mean = 0.0
        self._variance = 0.0
        self._max = 0.0
        self._min = 0.0
        self._size = 0

    # ----------- setters -----------
    def set_mean(self, mean: float) -> "DescriptiveStatBuilder":
        self._mean = mean
        return self

    def set_variance(self, variance: float) -> "DescriptiveStatBuilder":
        self._variance = variance
        return self

    def set_max(self, maximum: float) -> "DescriptiveStatBuilder":
        self._max = maximum
        return self

    def set_min(self, minimum: float) -> "DescriptiveStatBuilder":
        self._min = minimum
        return self

    def set_size(self, size: int) -> "DescriptiveStatBuilder":
        self._size = size
        return self

    # ----------- build -----------
    def build(self) -> DescriptiveStat:
        try:
            self._validate()
            return DescriptiveStat(self._mean, self._variance, self._min, self._max, self._size)
        finally:
            self._reset()

    def _validate(self) -> None:
        if self._size < 0:
            raise StatConstructionError("size_negative", f"negative size {self._size}")

        if self._size == 1:
            # min, max, mean 必须相等，方差为 0
            if self._min != self._max:
                raise StatConstructionError("size_one_consistency", "size = 1 implies min = max")
            if self._min != self._mean:
                raise StatConstructionError("size_one_consistency", "size = 1 implies min = mean = max")
            if self._variance != 0:
                raise StatConstructionError("size_one_consistency", "size = 1 implies variance = 0")

        elif self._size > 1:
            if self._min > self._max:
                raise StatConstructionError("size_many_ordering", "min exceeds max")
            if self._min > self._mean:
                raise StatConstructionError("size_many_ordering", "min exceeds mean")
            if self._mean > self._max:
                raise StatConstructionError("size_many_ordering", "mean exceeds max")
            if self._variance < 0:
                raise StatConstructionError("variance_negative", "variance cannot be negative")


class MutableStat:
    """
    增量统计累加器（非线程安全）

    - mean 来自补偿求和 / n
    - variance 为样本方差（n-1 分母），由 Welford 递推保证数值稳定
    - 多个累加器可通过 combine_stats 合并（Chan 并行合并公式）
    """

    __slots__ = ("_count", "_sum", "_running_mean", "_m2", "_min", "_max")

    def __init__(self) -> None:
        self._count = 0
        self._sum = CompensatedSummation()
        self._running_mean = 0.0
        self._m2 = 0.0
        self._min = math.inf
        self._max = -math.inf

    @classmethod
    def of(cls, values: Iterable[float]) -> "MutableStat":
        stat = cls()
        for v in values:
            stat.add(v)
        return stat

    def add(self, value: float) -> None:
        value = float(value)
        self._count += 1
        self._sum.add(value)

        delta = value - self._running_mean
        self._running_mean += delta / self._count
        self._m2 += delta * (value - self._running_mean)

        if value < self._min:
            self._min = value
        if value > self._max:
            self._max = value

    def size(self) -> int:
        return self._count

    def _mean(self) -> float:
        mean = self._sum.get_sum() / self._count
        if self._count > 1 and math.isfinite(mean):
            # 浮点舍入可能让均值越出 [min, max] 1 ulp
            mean = min(max(mean, self._min), self._max)
        return mean

    def _variance(self) -> float:
        if self._count < 2:
            return 0.0
        return max(self._m2 / (self._count - 1), 0.0)

    def to_stat(self) -> DescriptiveStat:
        builder = DescriptiveStatBuilder()
        if self._count == 0:
            return builder.build()

        builder.set_size(self._count)
        builder.set_mean(self._mean())
        builder.set_variance(self._variance())
        builder.set_min(self._min)
        builder.set_max(self._max)
        return builder.build()

    def __repr__(self) -> str:
        return f"MutableStat(size={self._count})"


def combine_stats(*stats: MutableStat) -> MutableStat:
    """
    合并多个 MutableStat，结果等价于把所有样本加入同一个累加器。
    输入不被修改。
    """
    result = MutableStat()
    for other in stats:
        if other._count == 0:
            continue

        n_a = result._count
        n_b = other._count
        n = n_a + n_b

        delta = other._running_mean - result._running_mean
        result._running_mean += delta * n_b / n
        result._m2 += other._m2 + delta * delta * n_a * n_b / n
        result._count = n
        result._sum.add(other._sum.get_sum())
        result._min = min(result._min, other._min)
        result._max = max(result._max, other._max)
    return result
