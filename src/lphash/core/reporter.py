"""Reporter hooks that let callers observe what a table is doing."""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol, runtime_checkable


@runtime_checkable
class Reporter(Protocol):
    """Anything with a ``report(message)`` method can observe a table."""

    def report(self, message: str) -> None:  # pragma: no cover - protocol
        ...


class NullReporter:
    """Reporter that discards every message."""

    __slots__ = ()

    def report(self, message: str) -> None:
        del message


class LoggingReporter:
    """Forward reports to a logger at a fixed level."""

    def __init__(self, logger: Optional[logging.Logger] = None, level: int = logging.INFO) -> None:
        self.logger = logger or logging.getLogger("lphash")
        self.level = level

    def report(self, message: str) -> None:
        self.logger.log(self.level, "%s", message)


class RecordingReporter:
    """Keep every reported message in memory, in order."""

    def __init__(self) -> None:
        self.messages: List[str] = []

    def report(self, message: str) -> None:
        self.messages.append(message)

    def clear(self) -> None:
        self.messages.clear()

    def __len__(self) -> int:
        return len(self.messages)


__all__ = ["Reporter", "NullReporter", "LoggingReporter", "RecordingReporter"]
