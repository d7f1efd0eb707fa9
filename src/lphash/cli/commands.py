"""CLI command registration and handlers for lphash."""

from __future__ import annotations

import argparse
import contextlib
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from lphash.analysis import format_trace_lines, trace_probe
from lphash.contracts.error import BadInputError, Exit, InvariantError, KeyNotFoundError
from lphash.core.reporter import RecordingReporter

DEFAULT_CSV_MAX_ROWS = 5_000_000


@dataclass(frozen=True)
class CLIContext:
    """Runtime hooks supplied by the top-level CLI entrypoint."""

    emit_success: Callable[..., None]
    build_table: Callable[..., Any]
    parse_key: Callable[[str, bool], Any]
    run_csv: Callable[..., Dict[str, Any]]
    generate_csv: Callable[..., None]
    validate_trace: Callable[[str], List[str]]
    logger: logging.Logger
    json_enabled: Callable[[], bool]
    guard: Callable[[Callable[[argparse.Namespace], int]], Callable[[argparse.Namespace], int]]


def register_subcommands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
    ctx: CLIContext,
) -> Dict[str, Callable[[argparse.Namespace], int]]:
    """Define CLI subcommands and return their handlers."""

    handlers: Dict[str, Callable[[argparse.Namespace], int]] = {}

    def _register(
        name: str,
        help_text: Optional[str],
        configure: Callable[[argparse.ArgumentParser], Callable[[argparse.Namespace], int]],
    ) -> None:
        parser = subparsers.add_parser(name, help=help_text)
        handler = configure(parser)
        handlers[name] = ctx.guard(handler)

    _register(
        "run-csv",
        "Replay a CSV workload (op,key,value) against a fresh table.",
        lambda parser: _configure_run_csv(parser, ctx),
    )
    _register(
        "generate-csv",
        "Generate a synthetic workload CSV.",
        lambda parser: _configure_generate(parser, ctx),
    )
    _register(
        "probe-visualize",
        "Trace probe paths for GET/SET operations (text/JSON).",
        lambda parser: _configure_probe_visualize(parser, ctx),
    )
    _register(
        "validate-trace",
        "Validate an exported probe trace against the bundled JSON schema.",
        lambda parser: _configure_validate_trace(parser, ctx),
    )
    return handlers


def _configure_run_csv(
    parser: argparse.ArgumentParser, ctx: CLIContext
) -> Callable[[argparse.Namespace], int]:
    parser.add_argument("--csv", required=True, help="Workload CSV with header op,key,value")
    parser.add_argument("--int-keys", action="store_true", help="Parse keys as integers")
    parser.add_argument("--dump", action="store_true", help="Print the final table dump")
    parser.add_argument(
        "--report",
        action="store_true",
        help="Log reporter events (expansions, failed gets)",
    )
    parser.add_argument(
        "--report-basic-calls",
        action="store_true",
        help="Also report every slot write, lookup and removal (implies --report)",
    )
    parser.add_argument("--json-summary-out", default=None, help="Write a JSON summary here")
    parser.add_argument(
        "--csv-max-rows",
        type=int,
        default=DEFAULT_CSV_MAX_ROWS,
        help="Reject workloads with more rows than this (0 disables the limit)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate the CSV without replaying it",
    )

    def handler(args: argparse.Namespace) -> int:
        report = bool(args.report or args.report_basic_calls)
        result = ctx.run_csv(
            args.csv,
            int_keys=args.int_keys,
            dump=args.dump,
            report=report,
            report_basic_calls=True if args.report_basic_calls else None,
            json_summary_out=args.json_summary_out,
            dry_run=args.dry_run,
            csv_max_rows=args.csv_max_rows,
        )
        if args.dry_run:
            text = f"Validation OK: {result['ops']} operation(s)"
            ctx.emit_success("run-csv", text=text, data=result)
            return int(Exit.OK)
        summary = result["summary"]
        table = summary["table"]
        lines = [
            f"size={table['size']} capacity={table['capacity']} "
            f"load_factor={table['load_factor']:.3f} tombstones={table['tombstones']}",
            f"expansions={summary['expansions']} get_misses={summary['get_misses']} "
            f"removed={summary['removed']}",
        ]
        if "dump" in result:
            lines.append(result["dump"])
        ctx.emit_success("run-csv", text="\n".join(lines), data=result)
        return int(Exit.OK)

    return handler


def _configure_generate(
    parser: argparse.ArgumentParser, ctx: CLIContext
) -> Callable[[argparse.Namespace], int]:
    parser.add_argument("--outfile", required=True)
    parser.add_argument("--ops", type=int, default=10_000)
    parser.add_argument("--read-ratio", type=float, default=0.5)
    parser.add_argument("--key-skew", type=float, default=0.0)
    parser.add_argument("--key-space", type=int, default=1000)
    parser.add_argument(
        "--seed",
        dest="workload_seed",
        type=int,
        default=7,
        help="Seed for the workload sampler (independent of the global --seed)",
    )
    parser.add_argument("--remove-ratio", type=float, default=0.2)
    parser.add_argument(
        "--adversarial-ratio",
        type=float,
        default=0.0,
        help="Fraction of keys that all share home slot 0 at the initial capacity",
    )
    parser.add_argument("--int-keys", action="store_true", help="Write integer keys")

    def handler(args: argparse.Namespace) -> int:
        try:
            ctx.generate_csv(
                args.outfile,
                ops=args.ops,
                read_ratio=args.read_ratio,
                key_skew=args.key_skew,
                key_space=args.key_space,
                seed=args.workload_seed,
                remove_ratio_within_writes=args.remove_ratio,
                adversarial_ratio=args.adversarial_ratio,
                int_keys=args.int_keys,
            )
        except ValueError as exc:
            raise BadInputError(str(exc)) from exc
        ctx.emit_success(
            "generate-csv",
            text=f"Wrote workload CSV: {args.outfile}",
            data={"outfile": args.outfile, "ops": args.ops},
        )
        return int(Exit.OK)

    return handler


def _configure_probe_visualize(
    parser: argparse.ArgumentParser, ctx: CLIContext
) -> Callable[[argparse.Namespace], int]:
    parser.add_argument(
        "--operation",
        choices=["get", "set"],
        required=True,
        help="Operation to trace",
    )
    parser.add_argument("--key", required=True, help="Key to probe")
    parser.add_argument("--value", help="Value for SET operations")
    parser.add_argument(
        "--seed-entry",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Seed the table with entries before tracing (repeatable)",
    )
    parser.add_argument(
        "--remove",
        action="append",
        default=[],
        metavar="KEY",
        help="Remove a seeded key before tracing, leaving a tombstone (repeatable)",
    )
    parser.add_argument("--int-keys", action="store_true", help="Parse keys as integers")
    parser.add_argument(
        "--export-json",
        help="Write the trace payload to a JSON file (indent=2)",
    )
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Apply the operation after tracing and include reporter events",
    )

    def handler(args: argparse.Namespace) -> int:
        if args.operation == "set" and args.value is None:
            raise BadInputError("SET operation requires --value")

        events = RecordingReporter()
        table = ctx.build_table(events, basic_calls=True)
        _seed_table(table, args.seed_entry, args.int_keys, ctx)
        for raw_key in args.remove:
            table.remove(ctx.parse_key(raw_key, args.int_keys))
        events.clear()

        key = ctx.parse_key(args.key, args.int_keys)
        trace = trace_probe(table, args.operation, key, args.value)
        if args.apply:
            if args.operation == "get":
                with contextlib.suppress(KeyNotFoundError):
                    table.get(key)
            else:
                table.set(key, args.value)

        export_path: Optional[Path] = None
        if args.export_json:
            export_path = Path(args.export_json).expanduser().resolve()
            export_path.parent.mkdir(parents=True, exist_ok=True)
            export_path.write_text(json.dumps(trace, indent=2), encoding="utf-8")

        lines = format_trace_lines(trace, seeds=args.seed_entry, export_path=export_path)
        if args.apply:
            lines.append("Events:")
            lines.extend(f"  {message}" for message in events.messages)
            lines.append("Dump: " + table.dumps())

        payload: Dict[str, Any] = {"trace": trace}
        if args.seed_entry:
            payload["seed_entries"] = list(args.seed_entry)
        if export_path is not None:
            payload["export_json"] = str(export_path)
        if args.apply:
            payload["events"] = list(events.messages)
            payload["dump"] = table.dumps()

        ctx.emit_success("probe-visualize", text="\n".join(lines), data=payload)
        return int(Exit.OK)

    return handler


def _seed_table(table: Any, seeds: List[str], int_keys: bool, ctx: CLIContext) -> None:
    for entry in seeds:
        if "=" not in entry:
            raise BadInputError(f"Seed entry '{entry}' must be KEY=VALUE")
        key, value = entry.split("=", 1)
        table.set(ctx.parse_key(key, int_keys), value)


def _configure_validate_trace(
    parser: argparse.ArgumentParser, ctx: CLIContext
) -> Callable[[argparse.Namespace], int]:
    parser.add_argument("trace", help="Trace JSON written by probe-visualize --export-json")

    def handler(args: argparse.Namespace) -> int:
        errors = ctx.validate_trace(args.trace)
        if errors:
            for message in errors:
                ctx.logger.error("Trace violation: %s", message)
            raise InvariantError(
                f"{len(errors)} schema violation(s) in {args.trace}",
                hint="Re-export the trace with probe-visualize --export-json",
            )
        ctx.emit_success(
            "validate-trace",
            text=f"Trace OK: {args.trace}",
            data={"trace": args.trace, "valid": True},
        )
        return int(Exit.OK)

    return handler


__all__ = ["CLIContext", "register_subcommands"]
