"""Contract helpers for the lphash table and CLI."""

from .error import (
    BadInputError,
    EnvelopeError,
    ErrorEnvelope,
    Exit,
    InvariantError,
    IOErrorEnvelope,
    KeyNotFoundError,
    PolicyError,
    TableFullError,
    die,
    guard_cli,
)

__all__ = [
    "Exit",
    "ErrorEnvelope",
    "EnvelopeError",
    "BadInputError",
    "InvariantError",
    "PolicyError",
    "IOErrorEnvelope",
    "KeyNotFoundError",
    "TableFullError",
    "guard_cli",
    "die",
]
