"""Typed configuration loader for lphash."""

from __future__ import annotations

import logging
import os
import tomllib
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .contracts.error import BadInputError
from .core.table import GROWTH_JITTER, INITIAL_CAPACITY, LOAD_FACTOR, MAX_TOMBSTONE_RATIO

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}
_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_DISABLED = {"", "none", "null", "off", "disabled"}
_TABLE_KEYS = {"initial_capacity", "load_factor", "growth_jitter", "max_tombstone_ratio", "seed"}


def _coerce_bool(name: str, raw: Any) -> bool:
    if isinstance(raw, str):
        normalized = raw.strip().lower()
        if normalized in _TRUE:
            return True
        if normalized in _FALSE:
            return False
        raise BadInputError(f"{name} must be boolean")
    return bool(raw)


def _coerce_seed(raw: Any) -> int | None:
    if raw is None:
        return None
    if isinstance(raw, str) and raw.strip().lower() in {"", "none", "random"}:
        return None
    return int(raw)


def _coerce_int(name: str, raw: Any) -> int:
    if isinstance(raw, bool) or (isinstance(raw, float) and not raw.is_integer()):
        raise BadInputError(f"{name} must be an integer")
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise BadInputError(f"{name} must be an integer") from exc


def _coerce_float(name: str, raw: Any) -> float:
    if isinstance(raw, bool):
        raise BadInputError(f"{name} must be a number")
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise BadInputError(f"{name} must be a number") from exc


def _parse_optional_ratio(raw: Any) -> float | None:
    if raw is None or (isinstance(raw, str) and raw.strip().lower() in _DISABLED):
        return None
    if isinstance(raw, bool):
        raise ValueError("boolean is not a ratio")
    return float(raw)


@dataclass
class TablePolicy:
    initial_capacity: int = INITIAL_CAPACITY
    load_factor: float = LOAD_FACTOR
    growth_jitter: int = GROWTH_JITTER
    max_tombstone_ratio: float | None = MAX_TOMBSTONE_RATIO
    seed: int | None = None

    def validate(self) -> None:
        if self.initial_capacity < 1:
            raise BadInputError("table.initial_capacity must be >= 1")
        if not 0.0 < self.load_factor < 1.0:
            raise BadInputError("table.load_factor must be in (0, 1)")
        if self.growth_jitter < 0:
            raise BadInputError("table.growth_jitter must be >= 0")
        if self.max_tombstone_ratio is not None and not 0.0 < self.max_tombstone_ratio <= 1.0:
            raise BadInputError("table.max_tombstone_ratio must be in (0, 1] or 'none'")


@dataclass
class ReportingPolicy:
    enabled: bool = False
    basic_calls: bool = False
    level: str = "INFO"

    def validate(self) -> None:
        if self.level.upper() not in _LEVELS:
            raise BadInputError(
                f"reporting.level must be one of {', '.join(sorted(_LEVELS))}",
            )

    def log_level(self) -> int:
        return int(logging.getLevelName(self.level.upper()))


@dataclass
class AppConfig:
    table: TablePolicy = field(default_factory=TablePolicy)
    reporting: ReportingPolicy = field(default_factory=ReportingPolicy)

    @classmethod
    def load(cls, path: Path | None) -> AppConfig:
        if path is None:
            cfg = cls()
        else:
            try:
                data = tomllib.loads(path.read_text(encoding="utf-8"))
            except FileNotFoundError as exc:
                raise BadInputError(f"Config file not found: {path}") from exc
            except tomllib.TOMLDecodeError as exc:
                raise BadInputError(f"Invalid TOML: {exc}") from exc
            cfg = cls.from_dict(data)
        cfg.apply_env_overrides(os.environ)
        cfg.validate()
        return cfg

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AppConfig:
        table_data = data.get("table", {})
        if not isinstance(table_data, dict):
            raise BadInputError("[table] section must be a table")
        reporting_data = data.get("reporting", {})
        if not isinstance(reporting_data, dict):
            raise BadInputError("[reporting] section must be a table")

        unknown_table = set(table_data) - _TABLE_KEYS
        if unknown_table:
            raise BadInputError(f"Unknown key(s) in [table]: {', '.join(sorted(unknown_table))}")
        table_kwargs: dict[str, Any] = {}
        for key in ("initial_capacity", "growth_jitter"):
            if key in table_data:
                table_kwargs[key] = _coerce_int(f"table.{key}", table_data[key])
        if "load_factor" in table_data:
            table_kwargs["load_factor"] = _coerce_float("table.load_factor", table_data["load_factor"])
        if "max_tombstone_ratio" in table_data:
            try:
                table_kwargs["max_tombstone_ratio"] = _parse_optional_ratio(table_data["max_tombstone_ratio"])
            except (TypeError, ValueError) as exc:
                raise BadInputError("table.max_tombstone_ratio must be a number or 'none'") from exc
        if "seed" in table_data:
            try:
                table_kwargs["seed"] = _coerce_seed(table_data["seed"])
            except (TypeError, ValueError) as exc:
                raise BadInputError("table.seed must be an integer or 'none'") from exc
        table = TablePolicy(**table_kwargs)

        reporting_kwargs: dict[str, Any] = {}
        for key in ("enabled", "basic_calls"):
            if key in reporting_data:
                reporting_kwargs[key] = _coerce_bool(f"reporting.{key}", reporting_data[key])
        if "level" in reporting_data:
            reporting_kwargs["level"] = str(reporting_data["level"])
        unknown = set(reporting_data) - {"enabled", "basic_calls", "level"}
        if unknown:
            raise BadInputError(f"Unknown key(s) in [reporting]: {', '.join(sorted(unknown))}")
        reporting = ReportingPolicy(**reporting_kwargs)
        return cls(table=table, reporting=reporting)

    def apply_env_overrides(self, env: Mapping[str, str]) -> None:
        table_mapping: dict[str, tuple[str, Callable[[str], Any]]] = {
            "LPHASH_INITIAL_CAPACITY": ("initial_capacity", int),
            "LPHASH_LOAD_FACTOR": ("load_factor", float),
            "LPHASH_GROWTH_JITTER": ("growth_jitter", int),
            "LPHASH_MAX_TOMBSTONE_RATIO": ("max_tombstone_ratio", _parse_optional_ratio),
            "LPHASH_SEED": ("seed", _coerce_seed),
        }
        for key, (attr, caster) in table_mapping.items():
            raw_value = env.get(key)
            if raw_value is None:
                continue
            try:
                value = caster(raw_value)
            except ValueError as exc:
                raise BadInputError(f"Invalid env override {key}={raw_value!r}") from exc
            setattr(self.table, attr, value)

        for key, attr in (("LPHASH_REPORT", "enabled"), ("LPHASH_REPORT_BASIC_CALLS", "basic_calls")):
            raw_value = env.get(key)
            if raw_value is None:
                continue
            try:
                setattr(self.reporting, attr, _coerce_bool(key, raw_value))
            except BadInputError as exc:
                raise BadInputError(f"Invalid env override {key}={raw_value!r}") from exc

        raw_level = env.get("LPHASH_REPORT_LEVEL")
        if raw_level is not None:
            self.reporting.level = raw_level.strip()

    def validate(self) -> None:
        self.table.validate()
        self.reporting.validate()


DEFAULT_CONFIG = AppConfig()


def load_app_config(path: str | None) -> AppConfig:
    config_path = Path(path) if path else None
    return AppConfig.load(config_path)


__all__ = ["AppConfig", "DEFAULT_CONFIG", "ReportingPolicy", "TablePolicy", "load_app_config"]
