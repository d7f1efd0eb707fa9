"""Open-addressing hash table with linear probing and randomized growth."""

from __future__ import annotations

import logging
import random
import sys
from collections.abc import Hashable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Callable, Generic, Iterator, List, Optional, TextIO, Tuple, TypeVar, Union, cast

from lphash.contracts.error import KeyNotFoundError, TableFullError

from .reporter import NullReporter, Reporter

logger = logging.getLogger("lphash")

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

INITIAL_CAPACITY: int = 41
LOAD_FACTOR: float = 0.5
GROWTH_JITTER: int = 10
MAX_TOMBSTONE_RATIO: float = 0.25


class SlotState(StrEnum):
    """Observable state of one slot."""

    EMPTY = "empty"
    OCCUPIED = "occupied"
    TOMBSTONE = "tombstone"


class _Tombstone:
    __slots__ = ()

    def __repr__(self) -> str:
        return "<tombstone>"


_TOMBSTONE = _Tombstone()


@dataclass
class _Entry(Generic[K, V]):
    key: K
    value: V


Slot = Union[None, _Tombstone, _Entry[Any, Any]]


@dataclass(frozen=True, slots=True)
class Found:
    """The key lives in the occupied slot at ``index``."""

    index: int


@dataclass(frozen=True, slots=True)
class InsertionPoint:
    """The key is absent; ``index`` is where it should be written."""

    index: int


ProbeResult = Union[Found, InsertionPoint]

# Called with (index, state, (key, value) or None) for every slot a probe visits.
StepHook = Callable[[int, SlotState, Optional[Tuple[Any, Any]]], None]


def home_index(key: Hashable, capacity: int) -> int:
    """First slot of the probe sequence for ``key``."""

    return abs(hash(key)) % capacity


def slot_state_of(slot: Slot) -> SlotState:
    if slot is None:
        return SlotState.EMPTY
    if slot is _TOMBSTONE:
        return SlotState.TOMBSTONE
    return SlotState.OCCUPIED


def locate_in(slots: List[Slot], key: Hashable, on_step: Optional[StepHook] = None) -> ProbeResult:
    """Walk the linear probe sequence for ``key`` over ``slots``.

    Returns ``Found`` for an occupied slot holding an equal key. Otherwise the
    key is absent and ``InsertionPoint`` names the first tombstone passed on
    the way, or the empty slot that ended the walk. At most ``len(slots)``
    slots are visited; if none is empty, the key is missing and no tombstone
    was seen, ``TableFullError`` is raised.

    ``on_step`` sees every visited slot before it is judged, which lets
    tracers replay the exact walk.
    """

    capacity = len(slots)
    idx = home_index(key, capacity)
    first_tombstone: Optional[int] = None
    for _ in range(capacity):
        slot = slots[idx]
        if on_step is not None:
            item = (slot.key, slot.value) if isinstance(slot, _Entry) else None
            on_step(idx, slot_state_of(slot), item)
        if slot is None:
            return InsertionPoint(idx if first_tombstone is None else first_tombstone)
        if slot is _TOMBSTONE:
            if first_tombstone is None:
                first_tombstone = idx
        elif isinstance(slot, _Entry) and (slot.key is key or slot.key == key):
            return Found(idx)
        idx = (idx + 1) % capacity
    if first_tombstone is not None:
        return InsertionPoint(first_tombstone)
    raise TableFullError(key, capacity)


class HashTable(Generic[K, V]):
    """Dictionary backed by one array, resolving collisions by linear probing.

    The table grows before an insert would push ``size / capacity`` over the
    load factor. Each growth picks ``2 * capacity + randint(0, growth_jitter)``
    slots so the next capacity cannot be predicted from the current one.
    Removed entries leave tombstones behind, which growth and ``compact``
    discard. ``set`` compacts on its own once tombstones exceed
    ``max_tombstone_ratio`` of the slots (``None`` turns that off).

    An optional reporter receives human-readable event strings: every
    expansion and every failed ``get``, plus slot writes, successful lookups
    and removals once ``report_basic_calls(True)`` is set.
    """

    __slots__ = (
        "_slots",
        "_size",
        "_tombstones",
        "_reporter",
        "_report_basic",
        "_rng",
        "_initial_capacity",
        "_load_factor",
        "_growth_jitter",
        "_max_tombstone_ratio",
    )

    def __init__(
        self,
        reporter: Optional[Reporter] = None,
        *,
        initial_capacity: int = INITIAL_CAPACITY,
        load_factor: float = LOAD_FACTOR,
        growth_jitter: int = GROWTH_JITTER,
        max_tombstone_ratio: Optional[float] = MAX_TOMBSTONE_RATIO,
        seed: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        if initial_capacity < 1:
            raise ValueError("initial_capacity must be >= 1")
        if not 0.0 < load_factor < 1.0:
            raise ValueError("load_factor must be in (0, 1)")
        if growth_jitter < 0:
            raise ValueError("growth_jitter must be >= 0")
        if max_tombstone_ratio is not None and not 0.0 < max_tombstone_ratio <= 1.0:
            raise ValueError("max_tombstone_ratio must be in (0, 1] or None")
        self._initial_capacity = initial_capacity
        self._load_factor = load_factor
        self._growth_jitter = growth_jitter
        self._max_tombstone_ratio = max_tombstone_ratio
        self._rng = rng if rng is not None else random.Random(seed)
        self._reporter: Reporter = reporter if reporter is not None else NullReporter()
        self._report_basic = False
        self._slots: List[Slot] = []
        self._size = 0
        self._tombstones = 0
        self.clear()

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return self._size

    def __repr__(self) -> str:
        return f"HashTable(size={self._size}, capacity={len(self._slots)})"

    def size(self) -> int:
        return self._size

    @property
    def capacity(self) -> int:
        return len(self._slots)

    @property
    def tombstones(self) -> int:
        return self._tombstones

    @property
    def reporter(self) -> Reporter:
        return self._reporter

    @property
    def max_load_factor(self) -> float:
        return self._load_factor

    def load_factor(self) -> float:
        return self._size / len(self._slots)

    def tombstone_ratio(self) -> float:
        return self._tombstones / len(self._slots)

    @property
    def max_tombstone_ratio(self) -> Optional[float]:
        return self._max_tombstone_ratio

    def slot_state(self, index: int) -> SlotState:
        return slot_state_of(self._slots[index])

    def locate(self, key: K) -> ProbeResult:
        try:
            return locate_in(self._slots, key)
        except TableFullError:
            logger.error(
                "Probe exhausted table (size=%d, capacity=%d, tombstones=%d)",
                self._size,
                len(self._slots),
                self._tombstones,
            )
            raise

    def get(self, key: K) -> V:
        """Return the value stored for ``key`` or raise ``KeyNotFoundError``."""

        result = self.locate(key)
        if isinstance(result, Found):
            entry = self._entry_at(result.index)
            if self._report_basic:
                self._report(f"get({key}) => {entry.value}")
            return entry.value
        self._report(f"get({key}) failed")
        raise KeyNotFoundError(key)

    def get_or(self, key: K, default: Optional[V] = None) -> Optional[V]:
        """Quiet lookup: no report, no exception."""

        result = self.locate(key)
        if isinstance(result, Found):
            return self._entry_at(result.index).value
        return default

    def __contains__(self, key: object) -> bool:
        return isinstance(self.locate(key), Found)  # type: ignore[arg-type]

    def items(self) -> Iterator[Tuple[K, V]]:
        for slot in self._slots:
            if isinstance(slot, _Entry):
                yield slot.key, slot.value

    def keys(self) -> Iterator[K]:
        for key, _ in self.items():
            yield key

    def values(self) -> Iterator[V]:
        for _, value in self.items():
            yield value

    def __iter__(self) -> Iterator[K]:
        return self.keys()

    def dumps(self) -> str:
        """Render occupied slots as ``{index:key(hash):value, ...}``."""

        parts = [
            f"{idx}:{slot.key}({hash(slot.key)}):{slot.value}"
            for idx, slot in enumerate(self._slots)
            if isinstance(slot, _Entry)
        ]
        return "{" + ", ".join(parts) + "}"

    def dump(self, sink: Optional[TextIO] = None) -> None:
        pen = sink if sink is not None else sys.stdout
        pen.write(self.dumps() + "\n")

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------
    def clear(self) -> None:
        self._slots = [None] * self._initial_capacity
        self._size = 0
        self._tombstones = 0

    def set(self, key: K, value: V) -> None:
        """Insert ``key`` or overwrite its value, growing first if needed.

        The load-factor check runs before the lookup, so a ``set`` that lands
        on the threshold expands even when it only overwrites.
        """

        if self._max_tombstone_ratio is not None and self.tombstone_ratio() > self._max_tombstone_ratio:
            logger.info("Auto-compacting table (tombstone_ratio=%.3f)", self.tombstone_ratio())
            self.compact()
        while self._size + 1 > self._load_factor * len(self._slots):
            self.expand()
        result = self.locate(key)
        if isinstance(result, Found):
            self._entry_at(result.index).value = value
        else:
            if self._slots[result.index] is _TOMBSTONE:
                self._tombstones -= 1
            self._slots[result.index] = _Entry(key, value)
            self._size += 1
        if self._report_basic:
            self._report(f"pairs[{result.index}] = {key}:{value}")

    def remove(self, key: K) -> bool:
        """Remove ``key`` if present; returns whether an entry was removed."""

        result = self.locate(key)
        if not isinstance(result, Found):
            return False
        self._slots[result.index] = _TOMBSTONE
        self._size -= 1
        self._tombstones += 1
        if self._report_basic:
            self._report(f"remove({key})")
        return True

    def expand(self) -> int:
        """Grow to ``2 * capacity + jitter`` slots and rehash live entries."""

        old_capacity = len(self._slots)
        new_capacity = 2 * old_capacity + self._rng.randint(0, self._growth_jitter)
        self._report(f"Expanding to {new_capacity} elements.")
        logger.debug(
            "Expanding table %d -> %d (size=%d, tombstones dropped=%d)",
            old_capacity,
            new_capacity,
            self._size,
            self._tombstones,
        )
        self._slots = self._rehash(new_capacity)
        self._tombstones = 0
        return new_capacity

    def compact(self) -> None:
        """Rehash in place at the current capacity, dropping tombstones."""

        logger.debug("Compacting table (capacity=%d, tombstones=%d)", len(self._slots), self._tombstones)
        self._slots = self._rehash(len(self._slots))
        self._tombstones = 0

    # ------------------------------------------------------------------
    # Misc
    # ------------------------------------------------------------------
    def report_basic_calls(self, enabled: bool) -> None:
        self._report_basic = bool(enabled)

    @property
    def reports_basic_calls(self) -> bool:
        return self._report_basic

    def _entry_at(self, index: int) -> _Entry[K, V]:
        return cast(_Entry[K, V], self._slots[index])

    def _report(self, message: str) -> None:
        try:
            self._reporter.report(message)
        except Exception:  # noqa: BLE001 - reporting is best-effort
            logger.exception("Reporter failed on %r", message)

    def _rehash(self, capacity: int) -> List[Slot]:
        fresh: List[Slot] = [None] * capacity
        for slot in self._slots:
            if isinstance(slot, _Entry):
                fresh[locate_in(fresh, slot.key).index] = slot
        return fresh


__all__ = [
    "GROWTH_JITTER",
    "INITIAL_CAPACITY",
    "LOAD_FACTOR",
    "MAX_TOMBSTONE_RATIO",
    "Found",
    "HashTable",
    "InsertionPoint",
    "ProbeResult",
    "SlotState",
    "StepHook",
    "home_index",
    "locate_in",
    "slot_state_of",
]
