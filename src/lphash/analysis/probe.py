"""Probe-path tracing for linear-probing tables."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from lphash.contracts.error import TableFullError
from lphash.core.table import Found, HashTable, Slot, SlotState, home_index, locate_in, slot_state_of

ProbeTrace = Dict[str, Any]


def _json_friendly(value: Any) -> Any:
    """Return a JSON-serialisable representation of ``value``."""

    try:
        json.dumps(value)
        return value
    except (TypeError, ValueError):
        return repr(value)


def _probe_distance(capacity: int, home: int, cur: int) -> int:
    return cur - home if cur >= home else (cur + capacity) - home


def _walk(slots: List[Slot], key: Any) -> Tuple[List[Dict[str, Any]], str, Optional[int]]:
    """Run ``locate_in`` over ``slots`` and record every slot it visits.

    Returns the recorded path, how the walk ended (``match``, ``empty`` or
    ``exhausted``) and the resolved slot: the match, the insertion point, or
    ``None`` when the table has no room for the key.
    """

    capacity = len(slots)
    path: List[Dict[str, Any]] = []
    seen_tombstone = False

    def record(idx: int, state: SlotState, item: Optional[Tuple[Any, Any]]) -> None:
        nonlocal seen_tombstone
        step: Dict[str, Any] = {"step": len(path), "slot": idx, "state": str(state)}
        if state is SlotState.EMPTY:
            step["action"] = "stop"
        elif state is SlotState.TOMBSTONE:
            step["action"] = "advance" if seen_tombstone else "remember"
            seen_tombstone = True
        elif item is not None:
            occupant_key, occupant_value = item
            occupant_home = home_index(occupant_key, capacity)
            step.update(
                {
                    "action": "advance",
                    "key_repr": repr(occupant_key),
                    "value_repr": repr(occupant_value),
                    "home_slot": occupant_home,
                    "probe_distance": _probe_distance(capacity, occupant_home, idx),
                    "matches": False,
                }
            )
        path.append(step)

    try:
        result = locate_in(slots, key, on_step=record)
    except TableFullError:
        return path, "exhausted", None
    if isinstance(result, Found):
        path[-1].update({"action": "match", "matches": True})
        return path, "match", result.index
    terminal = "empty" if path and path[-1]["state"] == "empty" else "exhausted"
    return path, terminal, result.index


def trace_probe_get(table: HashTable[Any, Any], key: Any) -> ProbeTrace:
    slots = table._slots  # pylint: disable=protected-access
    capacity = len(slots)
    path, terminal, resolved = _walk(slots, key)
    found = terminal == "match"
    return {
        "operation": "get",
        "key_repr": repr(key),
        "hash": hash(key),
        "home_slot": home_index(key, capacity),
        "capacity": capacity,
        "found": found,
        "terminal": terminal,
        "result_slot": resolved if found else None,
        "path": path,
    }


def _preview_growth(table: HashTable[Any, Any]) -> Tuple[List[Slot], bool]:
    """Slots the next ``set`` would probe, growing without jitter if it must grow."""

    capacity = table.capacity
    slots = table._slots  # pylint: disable=protected-access
    limit = table.max_tombstone_ratio
    if limit is not None and table.tombstone_ratio() > limit:
        slots = table._rehash(capacity)  # pylint: disable=protected-access
    if len(table) + 1 <= table.max_load_factor * capacity:
        return slots, False
    while len(table) + 1 > table.max_load_factor * capacity:
        capacity *= 2
    return table._rehash(capacity), True  # pylint: disable=protected-access


def trace_probe_set(table: HashTable[Any, Any], key: Any, value: Any) -> ProbeTrace:
    slots, resized = _preview_growth(table)
    path, terminal, resolved = _walk(slots, key)
    if terminal == "match":
        outcome = "update"
        path[-1]["action"] = "update"
    elif resolved is None:
        outcome = "full"
    elif slot_state_of(slots[resolved]) is SlotState.TOMBSTONE:
        outcome = "reuse-tombstone"
    else:
        outcome = "insert"
        path[-1]["action"] = "insert"
    capacity = len(slots)
    return {
        "operation": "set",
        "key_repr": repr(key),
        "value_repr": _json_friendly(value),
        "hash": hash(key),
        "home_slot": home_index(key, capacity),
        "capacity": capacity,
        "found": outcome == "update",
        "terminal": outcome,
        "result_slot": resolved,
        "resized": resized,
        "path": path,
    }


def trace_probe(table: HashTable[Any, Any], operation: str, key: Any, value: Any = None) -> ProbeTrace:
    if operation == "get":
        return trace_probe_get(table, key)
    if operation == "set":
        return trace_probe_set(table, key, value)
    raise ValueError(f"Unsupported operation: {operation!r}")


def format_trace_lines(
    trace: Dict[str, Any],
    *,
    seeds: Optional[Sequence[str]] = None,
    export_path: Optional[Union[str, Path]] = None,
) -> List[str]:
    """Return a human-friendly rendering of a probe trace."""

    lines: List[str] = []
    operation = trace.get("operation", "?")
    key_repr = trace.get("key_repr", "?")
    lines.append(f"Probe visualization [linear] {operation.upper()} key={key_repr}")
    lines.append(f"Found: {trace.get('found')} | Terminal: {trace.get('terminal')}")
    if "capacity" in trace:
        capacity_line = f"Capacity: {trace['capacity']}"
        if trace.get("resized"):
            capacity_line += " (after resize, jitter not applied)"
        lines.append(capacity_line)
    if "home_slot" in trace:
        lines.append(f"Home slot: {trace['home_slot']} (hash={trace.get('hash')})")
    if trace.get("result_slot") is not None:
        lines.append(f"Result slot: {trace['result_slot']}")
    if seeds:
        lines.append("Seed entries: " + ", ".join(seeds))
    lines.append("Steps:")
    path = trace.get("path")
    if not isinstance(path, list) or not path:
        lines.append("  (no path recorded)")
    else:
        for item in path:
            if not isinstance(item, dict):
                lines.append(f"  {item!r}")
                continue
            prefix = f"  Step {item['step']}: " if "step" in item else "  Item: "
            attrs: List[str] = []
            for key in (
                "slot",
                "state",
                "action",
                "home_slot",
                "probe_distance",
                "matches",
                "key_repr",
            ):
                if key in item and item[key] is not None:
                    value = item[key]
                    if isinstance(value, bool):
                        value = str(value).lower()
                    attrs.append(f"{key}={value}")
            if not attrs:
                attrs.append(", ".join(f"{k}={v}" for k, v in item.items()))
            lines.append(prefix + ", ".join(attrs))
    if export_path:
        lines.append(f"Trace JSON written to: {export_path}")
    return lines


__all__ = [
    "ProbeTrace",
    "format_trace_lines",
    "trace_probe",
    "trace_probe_get",
    "trace_probe_set",
]
