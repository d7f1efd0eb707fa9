from __future__ import annotations

import contextlib
import io
import json
import types
from typing import Any, Dict, List

from lphash.cli import app
from lphash.config import AppConfig


def run_cli(args: List[str]) -> types.SimpleNamespace:
    """Run ``lphash`` in-process, capturing stdout/stderr and the exit code."""

    stdout = io.StringIO()
    stderr = io.StringIO()
    try:
        with contextlib.redirect_stdout(stdout), contextlib.redirect_stderr(stderr):
            try:
                code = app.main(args)
            except SystemExit as exc:
                if isinstance(exc.code, int):
                    code = exc.code
                elif exc.code is None:
                    code = 0
                else:
                    code = 1
    finally:
        app.OUTPUT_JSON = False
        app.set_app_config(AppConfig())
        app.configure_logging()
    return types.SimpleNamespace(
        returncode=code, stdout=stdout.getvalue(), stderr=stderr.getvalue()
    )


def parse_error(stderr: str) -> Dict[str, Any]:
    if not stderr.strip():
        return {}
    return json.loads(stderr.strip().splitlines()[-1])
