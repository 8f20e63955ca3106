# simcollect/sinks/ledger_writer.py
from __future__ import annotations

import threading
from pathlib import Path
from typing import Optional, TextIO

from simcollect import logs
from simcollect.core.ledger import ProgressLedger, format_entry, read_ledger
from simcollect.core.records import RecordKind, SimulationStatusRecord
from simcollect.dispatch.sink import BaseSink
from simcollect.utils.filesystem import FileSystem


class ProgressLedgerWriter(BaseSink):
    """
    ProgressLedger 的持久化 writer（同时是一个 OutputSink）

    - open_experiment : 截断文件，重写传入 ledger 的全部条目
    - handle          : 成功的 run 追加一行并立即 flush；失败的 run 不记录
    - close_experiment: 关闭文件

    所有方法由同一把锁串行化（跨 run 写同一个文件）。
    """

    handled_kinds = frozenset({RecordKind.SIMULATION_STATUS})

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._writer: Optional[TextIO] = None
        self.written = 0

    @classmethod
    def load(cls, path: str | Path) -> tuple[ProgressLedger, "ProgressLedgerWriter"]:
        """
        读取既有 ledger 并返回配套 writer（先读后写，顺序不能反）。
        """
        ledger = read_ledger(path)
        return ledger, cls(path)

    def open_experiment(self, ledger: ProgressLedger) -> None:
        with self._lock:
            if self._writer is not None:
                self._writer.close()
            self._writer = FileSystem.open_truncated(self.path)
            for coord in ledger.completed():
                self._writer.write(format_entry(coord))
            self._writer.flush()
            self.written = 0
        logs.info(f"[LedgerWriter] {self.path} opened with {len(ledger)} completed runs")

    def handle(self, record: SimulationStatusRecord) -> None:
        if not record.successful:
            return
        with self._lock:
            if self._writer is None:
                raise RuntimeError(f"ledger writer {self.path} is not open")
            self._writer.write(format_entry(record.coord))
            self._writer.flush()
            self.written += 1

    def close_experiment(self) -> None:
        with self._lock:
            if self._writer is not None:
                self._writer.close()
                self._writer = None
        logs.info(f"[LedgerWriter] {self.path} closed | appended={self.written}")

    def __repr__(self) -> str:
        return f"ProgressLedgerWriter({self.path})"
