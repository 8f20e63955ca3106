#!filepath: simcollect/config/app_config.py
import os

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel

from .experiment_config import ExperimentConfig
from .log_config import LogConfig


def project_root() -> str:
    """
    返回项目根目录（基于当前文件位置推导）:
    simcollect/config/app_config.py → simcollect/config → simcollect → project_root
    """
    return os.path.abspath(os.path.join(os.path.dirname(__file__), "../../"))


def default_config_path() -> str:
    return os.path.join(os.path.dirname(__file__), "base.yml")


class AppConfig(BaseModel):
    log: LogConfig = LogConfig()
    experiment: ExperimentConfig = ExperimentConfig()

    @classmethod
    def load(cls, path: str | None = None) -> "AppConfig":
        """
        加载 YAML 配置 + .env
        - 默认使用 simcollect/config/base.yml
        - 不依赖当前工作目录
        - SIMCOLLECT_LEDGER_PATH / SIMCOLLECT_MAX_WORKERS 覆盖 YAML
        """
        root = project_root()

        # 1) 先加载 .env（在项目根目录下）
        load_dotenv(os.path.join(root, ".env"))

        # 2) 决定配置文件路径
        if path is None:
            path = default_config_path()

        if not os.path.exists(path):
            raise FileNotFoundError(f"Config file not found: {path}")

        # 3) 读取 YAML
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

        # 4) env 覆盖
        experiment = raw.setdefault("experiment", {}) or {}
        raw["experiment"] = experiment
        ledger_path = os.getenv("SIMCOLLECT_LEDGER_PATH")
        if ledger_path:
            experiment["ledger_path"] = ledger_path
        max_workers = os.getenv("SIMCOLLECT_MAX_WORKERS")
        if max_workers:
            experiment["max_workers"] = int(max_workers)

        return cls(**raw)
