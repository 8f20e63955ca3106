from simcollect.stats.summation import CompensatedSummation
from simcollect.stats.descriptive import (
    DescriptiveStat,
    DescriptiveStatBuilder,
    MutableStat,
    combine_stats,
)

__all__ = [
    "CompensatedSummation",
    "DescriptiveStat",
    "DescriptiveStatBuilder",
    "MutableStat",
    "combine_stats",
]
