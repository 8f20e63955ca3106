# simcollect/config/experiment_config.py
from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field


class ExperimentConfig(BaseModel):
    """
    ExperimentConfig

    语义：
      - 实验网格大小（scenario × replication，id 从 1 开始）
      - 并发度 / 失败策略
      - ledger 路径（None = 不做断点续跑）
    """

    scenario_count: int = Field(1, ge=1)
    replication_count: int = Field(1, ge=1)

    # None = min(cpu, runs)
    max_workers: Optional[int] = Field(None, ge=1)

    ledger_path: Optional[Path] = None

    # 仅控制控制台进度 sink；SimulationStatusRecord 总是产出（ledger writer 依赖它）
    report_progress: bool = True
    fail_fast: bool = False
