#!/usr/bin/env python3
"""
app.py

Command-line toolkit around the linear-probing ``HashTable``:
- Replay CSV workloads (set/get/remove/clear) with an optional reporter attached
- Synthetic workload generator (Zipf-skewed keys, optional colliding integer keys)
- Probe-path visualiser for GET/SET with JSON export
- Validation of exported probe traces against the bundled JSON schema
- Console or JSON logging with optional rotating log file
- TOML configuration (table sizing, growth jitter, reporter verbosity) with env overrides
"""

from __future__ import annotations

import argparse
import contextlib
import csv
import json
import logging
import os
import random
import sys
import time
from collections.abc import Callable, Iterator
from importlib import resources
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator

from lphash.cli.commands import DEFAULT_CSV_MAX_ROWS, CLIContext, register_subcommands
from lphash.cli.models import OpCounts, RunSummary, TableStats
from lphash.config import AppConfig, load_app_config
from lphash.contracts.error import (
    BadInputError,
    IOErrorEnvelope,
    KeyNotFoundError,
    PolicyError,
    guard_cli,
)
from lphash.core.reporter import LoggingReporter, Reporter
from lphash.core.table import HashTable

# --------------------------------------------------------------------
# Logging
# --------------------------------------------------------------------
logger = logging.getLogger("lphash")
logger.setLevel(logging.INFO)
logger.propagate = False

DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S"
DEFAULT_LOG_MAX_BYTES = 5_000_000
DEFAULT_LOG_BACKUP_COUNT = 5
CSV_OPS = ("set", "get", "remove", "clear")


class JsonFormatter(logging.Formatter):
    """Render log records as JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, DEFAULT_LOG_DATEFMT),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = self.formatStack(record.stack_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(
    use_json: bool = False,
    log_file: str | None = None,
    *,
    max_bytes: int = DEFAULT_LOG_MAX_BYTES,
    backup_count: int = DEFAULT_LOG_BACKUP_COUNT,
    level: int = logging.INFO,
) -> None:
    """Configure console (and optional rotating file) logging."""

    formatter: logging.Formatter
    if use_json:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(DEFAULT_LOG_FORMAT, DEFAULT_LOG_DATEFMT)

    for handler in list(logger.handlers):
        with contextlib.suppress(Exception):
            handler.close()
        logger.removeHandler(handler)

    logger.setLevel(level)
    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    logger.addHandler(stream)

    if log_file:
        handler = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count)
        handler.setFormatter(formatter)
        logger.addHandler(handler)


configure_logging()

APP_CONFIG: AppConfig = AppConfig()
OUTPUT_JSON: bool = False


def set_app_config(cfg: AppConfig) -> None:
    global APP_CONFIG
    APP_CONFIG = cfg


def emit_success(
    command: str, *, text: str | None = None, data: dict[str, Any] | None = None
) -> None:
    if OUTPUT_JSON:
        payload: dict[str, Any] = {"ok": True, "command": command}
        if data:
            payload.update(data)
        if text is not None and "result" not in payload:
            payload["result"] = text
        print(json.dumps(payload, ensure_ascii=False))
    else:
        if text is not None:
            print(text)


def build_reporter(*, force: bool = False) -> Reporter | None:
    """Return a logging reporter when reporting is enabled by flag or config."""

    policy = APP_CONFIG.reporting
    if not (force or policy.enabled):
        return None
    return LoggingReporter(logger, level=policy.log_level())


def build_table(
    reporter: Reporter | None = None,
    *,
    basic_calls: bool | None = None,
    seed: int | None = None,
) -> HashTable[Any, Any]:
    policy = APP_CONFIG.table
    table: HashTable[Any, Any] = HashTable(
        reporter,
        initial_capacity=policy.initial_capacity,
        load_factor=policy.load_factor,
        growth_jitter=policy.growth_jitter,
        max_tombstone_ratio=policy.max_tombstone_ratio,
        seed=seed if seed is not None else policy.seed,
    )
    if basic_calls is None:
        basic_calls = APP_CONFIG.reporting.basic_calls
    table.report_basic_calls(basic_calls)
    return table


def parse_key(raw: str, int_keys: bool) -> Any:
    if not int_keys:
        return raw
    try:
        return int(raw)
    except ValueError as exc:
        raise BadInputError(f"Key {raw!r} is not an integer", hint="Drop --int-keys for text keys") from exc


# --------------------------------------------------------------------
# Ops runner / generator
# --------------------------------------------------------------------
def run_op(table: HashTable[Any, Any], op: str, key: Any, value: str | None) -> str | None:
    """Apply one workload operation; GET misses come back as ``None``."""

    if op == "set":
        if key is None or value is None:
            raise ValueError("SET operations require both key and value")
        table.set(key, value)
        return "OK"
    if op == "get":
        if key is None:
            raise ValueError("GET operations require a key")
        try:
            return str(table.get(key))
        except KeyNotFoundError:
            return None
    if op == "remove":
        if key is None:
            raise ValueError("REMOVE operations require a key")
        return "1" if table.remove(key) else "0"
    if op == "clear":
        table.clear()
        return "OK"
    raise ValueError(f"unknown op: {op}")


def _zipf_sampler(n_keys: int, skew: float, rng: random.Random) -> Callable[[], int]:
    if n_keys <= 0:
        raise ValueError("n_keys must be > 0")
    if skew <= 0.0:
        return lambda: rng.randrange(n_keys)
    weights = [1.0 / ((k + 1) ** skew) for k in range(n_keys)]
    total = sum(weights)
    cdf: list[float] = []
    acc = 0.0
    for w in weights:
        acc += w / total
        cdf.append(acc)

    def sample() -> int:
        x = rng.random()
        lo, hi = 0, n_keys - 1
        while lo < hi:
            mid = (lo + hi) // 2
            if x <= cdf[mid]:
                hi = mid
            else:
                lo = mid + 1
        return lo

    return sample


def _colliding_key(base_idx: int, capacity: int) -> int:
    """Integer key whose home slot is 0 in a table of ``capacity`` slots."""

    return base_idx * capacity


def generate_csv(
    out_path: str,
    ops: int,
    read_ratio: float,
    key_skew: float,
    key_space: int,
    seed: int,
    remove_ratio_within_writes: float = 0.2,
    adversarial_ratio: float = 0.0,
    int_keys: bool = False,
) -> None:
    if ops <= 0:
        raise ValueError("ops must be > 0")
    if not (0.0 <= read_ratio <= 1.0):
        raise ValueError("read_ratio must be in [0,1]")
    if key_space <= 0:
        raise ValueError("key_space must be > 0")
    if not (0.0 <= remove_ratio_within_writes < 1.0):
        raise ValueError("remove_ratio_within_writes in [0,1)")
    if not (0.0 <= adversarial_ratio <= 1.0):
        raise ValueError("adversarial_ratio in [0,1]")
    if adversarial_ratio > 0.0 and not int_keys:
        raise ValueError("adversarial keys require int_keys")
    rng = random.Random(seed)  # noqa: S311  # nosec B311 - deterministic workload sampler
    sample_key_idx = _zipf_sampler(key_space, key_skew, rng)
    capacity = APP_CONFIG.table.initial_capacity
    with open(out_path, "w", newline="") as f:
        w = csv.writer(f)
        w.writerow(["op", "key", "value"])
        for _ in range(ops):
            idx = sample_key_idx()
            if rng.random() < adversarial_ratio:
                idx = _colliding_key(idx, capacity)
            key = str(idx) if int_keys else f"K{idx}"
            if rng.random() < read_ratio:
                w.writerow(["get", key, ""])
            elif rng.random() < remove_ratio_within_writes:
                w.writerow(["remove", key, ""])
            else:
                w.writerow(["set", key, str(rng.randint(0, 1_000_000))])


# --------------------------------------------------------------------
# CSV runner
# --------------------------------------------------------------------
def run_csv(
    path: str,
    *,
    int_keys: bool = False,
    dump: bool = False,
    report: bool = False,
    report_basic_calls: bool | None = None,
    json_summary_out: str | None = None,
    dry_run: bool = False,
    csv_max_rows: int = DEFAULT_CSV_MAX_ROWS,
    seed: int | None = None,
) -> dict[str, Any]:
    """
    Replay operations from a CSV workload against a fresh table.

    The CSV header must be exactly ``op,key,value``. Rows are validated before
    the first operation runs, so a bad file never leaves a half-replayed
    table behind. Returns the summary payload (also written to
    ``json_summary_out`` when given) plus the final dump when requested.
    """
    csv_hint = "Expected header op,key,value with ops set/get/remove/clear"
    csv_path = Path(path)
    if not csv_path.exists():
        raise IOErrorEnvelope(f"CSV not found: {path}")

    def load_ops() -> Iterator[tuple[str, Any, str | None]]:
        with open(csv_path, newline="") as f:
            reader = csv.DictReader(f)
            fieldnames = reader.fieldnames or []
            required = {"op", "key", "value"}
            header = {fn.strip() for fn in fieldnames}
            missing = required - header
            if missing:
                raise BadInputError(
                    f"Missing header columns: {', '.join(sorted(missing))}", hint=csv_hint
                )
            unexpected = header - required
            if unexpected:
                raise BadInputError(
                    f"Unexpected column(s) in header: {', '.join(sorted(unexpected))}",
                    hint=csv_hint,
                )
            for row_counter, row in enumerate(reader, start=1):
                if csv_max_rows and csv_max_rows > 0 and row_counter > csv_max_rows:
                    raise BadInputError(
                        f"CSV row limit exceeded ({row_counter} > {csv_max_rows})",
                        hint=csv_hint,
                    )
                op = (row.get("op") or "").strip().lower()
                raw_key = (row.get("key") or "").strip()
                value = row.get("value")
                line_no = reader.line_num
                if not op:
                    raise BadInputError(f"Missing op at line {line_no}", hint=csv_hint)
                if op not in CSV_OPS:
                    raise BadInputError(f"Unknown op '{op}' at line {line_no}", hint=csv_hint)
                if op == "clear":
                    yield op, None, None
                    continue
                if not raw_key:
                    raise BadInputError(f"Missing key at line {line_no}", hint=csv_hint)
                if op == "set":
                    if value is None or value.strip() == "":
                        raise BadInputError(f"SET missing value at line {line_no}", hint=csv_hint)
                else:
                    value = None
                yield op, parse_key(raw_key, int_keys), value

    ops = list(load_ops())
    logger.info("Loaded %d operations from %s", len(ops), csv_path)
    if dry_run:
        return {"csv": str(csv_path), "dry_run": True, "ops": len(ops)}

    reporter = build_reporter(force=report)
    table = build_table(reporter, basic_calls=report_basic_calls, seed=seed)
    counts = OpCounts()
    get_misses = removed = expansions = 0

    start = time.perf_counter()
    for op, key, value in ops:
        capacity_before = table.capacity
        out = run_op(table, op, key, value)
        setattr(counts, op, getattr(counts, op) + 1)
        if op == "get" and out is None:
            get_misses += 1
        elif op == "remove" and out == "1":
            removed += 1
        elif op == "set" and table.capacity > capacity_before:
            expansions += 1
    elapsed = time.perf_counter() - start

    summary = RunSummary(
        csv=str(csv_path),
        int_keys=int_keys,
        ops=counts,
        get_misses=get_misses,
        removed=removed,
        expansions=expansions,
        elapsed_seconds=elapsed,
        ops_per_second=(counts.total / elapsed) if elapsed > 0 else 0.0,
        table=TableStats(
            size=len(table),
            capacity=table.capacity,
            load_factor=table.load_factor(),
            tombstones=table.tombstones,
            max_load_factor=table.max_load_factor,
        ),
    )
    logger.info(
        "Replayed %d ops: size=%d capacity=%d expansions=%d misses=%d",
        counts.total,
        len(table),
        table.capacity,
        expansions,
        get_misses,
    )
    if json_summary_out:
        out_path = Path(json_summary_out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(summary.model_dump_json(indent=2), encoding="utf-8")
        logger.info("Wrote JSON summary: %s", out_path)

    result: dict[str, Any] = {"summary": summary.model_dump(mode="json")}
    if dump:
        result["dump"] = table.dumps()
    return result


# --------------------------------------------------------------------
# Trace validation
# --------------------------------------------------------------------
def _trace_schema() -> dict[str, Any]:
    schema_resource = resources.files("lphash.contracts") / "trace_schema.json"
    with schema_resource.open(encoding="utf-8") as stream:
        return json.load(stream)


def validate_trace(path: str) -> list[str]:
    """Return schema violations for an exported probe trace (empty when valid)."""

    trace_path = Path(path)
    try:
        payload = json.loads(trace_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise IOErrorEnvelope(f"Trace not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise BadInputError(f"Trace is not valid JSON: {exc}") from exc
    validator = Draft202012Validator(_trace_schema())
    errors = sorted(validator.iter_errors(payload), key=lambda err: list(err.path))
    return [f"{err.message} @ {list(err.path)}" for err in errors]


# --------------------------------------------------------------------
# CLI
# --------------------------------------------------------------------
def main(argv: list[str]) -> int:
    p = argparse.ArgumentParser(
        description=(
            "Linear-probing hash table toolkit: CSV replay, workload generator, "
            "probe visualiser and trace validation."
        )
    )
    p.add_argument("--log-json", action="store_true", help="Emit logs in JSON format")
    p.add_argument(
        "--log-file",
        default=None,
        help="Optional log file path (rotates at 5MB, keeps 5 backups by default)",
    )
    p.add_argument(
        "--log-max-bytes",
        type=int,
        default=DEFAULT_LOG_MAX_BYTES,
        help="Max bytes per log file before rotation (default: %(default)s)",
    )
    p.add_argument(
        "--log-backup-count",
        type=int,
        default=DEFAULT_LOG_BACKUP_COUNT,
        help="Number of rotated log files to keep (default: %(default)s)",
    )
    p.add_argument("--debug", action="store_true", help="Log table internals at DEBUG level")
    p.add_argument(
        "--json", action="store_true", help="Emit machine-readable success output to stdout"
    )
    p.add_argument(
        "--config",
        default=None,
        help="Path to TOML config file (overrides defaults; env overrides still apply)",
    )
    p.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for the growth jitter generator (overrides [table].seed)",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    ctx = CLIContext(
        emit_success=emit_success,
        build_table=build_table,
        parse_key=parse_key,
        run_csv=run_csv,
        generate_csv=generate_csv,
        validate_trace=validate_trace,
        logger=logger,
        json_enabled=lambda: OUTPUT_JSON,
        guard=guard_cli,
    )

    handlers = register_subcommands(sub, ctx)

    args = p.parse_args(argv)

    global OUTPUT_JSON
    OUTPUT_JSON = bool(args.json)

    configure_logging(
        args.log_json,
        args.log_file,
        max_bytes=args.log_max_bytes,
        backup_count=args.log_backup_count,
        level=logging.DEBUG if args.debug else logging.INFO,
    )

    cfg_path = args.config or os.getenv("LPHASH_CONFIG")
    cfg = guard_cli(load_app_config)(cfg_path)
    if args.seed is not None:
        cfg.table.seed = args.seed
    set_app_config(cfg)
    if cfg_path:
        logger.info("Loaded config from %s", cfg_path)

    handler = handlers.get(args.cmd)
    if handler is None:
        raise PolicyError(f"Unknown command {args.cmd}")
    return handler(args)


def console_main() -> None:
    """Entry point for console_scripts."""

    try:
        raise SystemExit(main(sys.argv[1:]))
    except SystemExit:
        raise
    except Exception as e:  # noqa: BLE001
        logger.exception("Fatal error: %s", e)
        raise SystemExit(2) from e


if __name__ == "__main__":
    console_main()


__all__ = [
    "JsonFormatter",
    "build_reporter",
    "build_table",
    "configure_logging",
    "console_main",
    "emit_success",
    "generate_csv",
    "main",
    "parse_key",
    "run_csv",
    "run_op",
    "set_app_config",
    "validate_trace",
]
