#!filepath: simcollect/utils/logger.py
import sys
from pathlib import Path
from typing import Optional

from loguru import logger


class Logging:
    """
    实验输出日志模块
    ---------------------------------------
    - 默认只写 stderr（import 时不产生文件）
    - attach_file() 后按日期切割、保留周期
    - enqueue=True：多个 run 线程并发写日志安全
    ---------------------------------------
    """

    FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {thread.name} | {message}"

    def __init__(self, log_level: str = "INFO"):
        self.level = log_level
        self.log_dir: Optional[Path] = None
        self._configure()

    def _configure(self) -> None:
        """
        配置全局 logger（替换 loguru 默认 handler）
        """
        logger.remove()
        logger.add(sys.stderr, level=self.level, format=self.FORMAT)

    def attach_file(
        self,
        log_dir: str | Path,
        rotation: str = "1 day",
        retention: str = "30 days",
        level: Optional[str] = None,
    ) -> None:
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        logger.add(
            sink=str(self.log_dir / "{time:YYYY-MM-DD}.log"),
            rotation=rotation,
            retention=retention,
            level=level or self.level,
            format=self.FORMAT,
            enqueue=True,
            backtrace=True,
            diagnose=True,
        )
        logger.info("\n-----------Logger file sink attached.-----------")

    # ----------- 日志方法 -----------
    def debug(self, msg: str, *args, **kwargs):
        logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        logger.error(msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        logger.exception(msg, *args, **kwargs)



def init_logging(cfg) -> Logging:
    """
    根据 LogConfig 重新配置全局 logs（CLI / 实验入口调用一次）。
    """
    logs.level = cfg.level
    logs._configure()
    if cfg.dir:
        logs.attach_file(cfg.dir, rotation=cfg.rotation, retention=cfg.retention)
    return logs


# 默认全局 logs（可被 init_logging 替换）
logs = Logging()
