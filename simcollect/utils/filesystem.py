#!filepath: simcollect/utils/filesystem.py
from pathlib import Path
from typing import Iterator

from simcollect import logs


class FileSystem:
    """
    统一文件系统工具（ledger 持久化用）
    - 自动创建目录
    - 按行读取文本
    - 追加写入并 flush
    """

    @staticmethod
    def ensure_dir(path: str | Path) -> Path:
        """
        创建目录（如果不存在）
        """
        p = Path(path)
        if not p.exists():
            p.mkdir(parents=True, exist_ok=True)
            logs.debug(f"[FS] 创建目录: {p}")
        return p

    @staticmethod
    def iter_lines(path: str | Path) -> Iterator[str]:
        """
        逐行读取（不含换行符）；文件不存在时不产出任何行
        """
        p = Path(path)
        if not p.is_file():
            logs.debug(f"[FS] 文件不存在: {p}")
            return
        with open(p, "r", encoding="utf-8") as f:
            for line in f:
                yield line.rstrip("\r\n")

    @staticmethod
    def open_truncated(path: str | Path):
        """
        截断打开（写模式），父目录不存在时先创建
        """
        p = Path(path)
        FileSystem.ensure_dir(p.parent)
        return open(p, "w", encoding="utf-8", newline="\n")
