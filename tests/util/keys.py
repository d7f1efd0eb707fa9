from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FixedHashKey:
    """Key with a caller-chosen hash so tests can place it in a known slot."""

    name: str
    hashed: int

    def __hash__(self) -> int:
        return self.hashed

    def __str__(self) -> str:
        return self.name


def colliding(name: str, slot: int, capacity: int = 41, lap: int = 0) -> FixedHashKey:
    """Key whose home slot is ``slot`` in a table of ``capacity`` slots."""

    return FixedHashKey(name, slot + lap * capacity)
