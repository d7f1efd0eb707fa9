from .reporter import LoggingReporter, NullReporter, RecordingReporter, Reporter
from .table import (
    GROWTH_JITTER,
    INITIAL_CAPACITY,
    LOAD_FACTOR,
    MAX_TOMBSTONE_RATIO,
    Found,
    HashTable,
    InsertionPoint,
    ProbeResult,
    SlotState,
    home_index,
    locate_in,
)

__all__ = [
    "GROWTH_JITTER",
    "INITIAL_CAPACITY",
    "LOAD_FACTOR",
    "MAX_TOMBSTONE_RATIO",
    "Found",
    "HashTable",
    "InsertionPoint",
    "LoggingReporter",
    "NullReporter",
    "ProbeResult",
    "RecordingReporter",
    "Reporter",
    "SlotState",
    "home_index",
    "locate_in",
]
