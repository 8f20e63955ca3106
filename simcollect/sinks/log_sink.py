# simcollect/sinks/log_sink.py
from __future__ import annotations

from simcollect import logs
from simcollect.core.records import LogRecord, LogStatus, RecordKind
from simcollect.dispatch.sink import BaseSink


class LogRecordSink(BaseSink):
    """
    把 engine 发出的 Log record 写入全局 logger。
    无状态，天然线程安全。
    """

    handled_kinds = frozenset({RecordKind.LOG})

    def handle(self, record: LogRecord) -> None:
        message = f"[scenario = {record.scenario_id}, replication = {record.replication_id}] {record.status.value}: {record.message}"

        if record.status is LogStatus.ERROR:
            logs.error(message)
        elif record.status is LogStatus.WARNING:
            logs.warning(message)
        else:
            logs.info(message)
