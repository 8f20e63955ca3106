from simcollect.core.coordinate import RunCoordinate, coordinate_grid
from simcollect.core.ledger import ProgressLedger, ProgressLedgerBuilder, read_ledger
from simcollect.core.records import (
    DebugRecord,
    InventoryRecord,
    LogRecord,
    LogStatus,
    OutputRecord,
    RecordKind,
    SimulationStatusRecord,
)

__all__ = [
    "RunCoordinate", "coordinate_grid",
    "ProgressLedger", "ProgressLedgerBuilder", "read_ledger",
    "OutputRecord", "RecordKind", "SimulationStatusRecord",
    "LogRecord", "LogStatus", "InventoryRecord", "DebugRecord",
]
