"""Linear-probing hash table with randomized growth and an observation hook."""

from .contracts.error import KeyNotFoundError, TableFullError
from .core.reporter import LoggingReporter, NullReporter, RecordingReporter, Reporter
from .core.table import (
    GROWTH_JITTER,
    INITIAL_CAPACITY,
    LOAD_FACTOR,
    MAX_TOMBSTONE_RATIO,
    Found,
    HashTable,
    InsertionPoint,
    ProbeResult,
    SlotState,
)

__version__ = "0.1.0"

__all__ = [
    "GROWTH_JITTER",
    "INITIAL_CAPACITY",
    "LOAD_FACTOR",
    "MAX_TOMBSTONE_RATIO",
    "Found",
    "HashTable",
    "InsertionPoint",
    "KeyNotFoundError",
    "LoggingReporter",
    "NullReporter",
    "ProbeResult",
    "RecordingReporter",
    "Reporter",
    "SlotState",
    "TableFullError",
]
