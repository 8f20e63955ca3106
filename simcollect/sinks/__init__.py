from simcollect.sinks.ledger_writer import ProgressLedgerWriter
from simcollect.sinks.log_sink import LogRecordSink
from simcollect.sinks.stat_sink import StatSink
from simcollect.sinks.status_sink import SimulationStatusSink

__all__ = ["ProgressLedgerWriter", "LogRecordSink", "StatSink", "SimulationStatusSink"]
