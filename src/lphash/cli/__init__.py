"""lphash command-line interface."""

from .app import (
    JsonFormatter,
    build_reporter,
    build_table,
    configure_logging,
    console_main,
    emit_success,
    generate_csv,
    main,
    run_csv,
    run_op,
    validate_trace,
)
from .commands import CLIContext, register_subcommands

__all__ = [
    "CLIContext",
    "JsonFormatter",
    "build_reporter",
    "build_table",
    "configure_logging",
    "console_main",
    "emit_success",
    "generate_csv",
    "main",
    "register_subcommands",
    "run_csv",
    "run_op",
    "validate_trace",
]
