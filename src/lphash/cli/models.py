"""Pydantic models for machine-readable CLI output."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class OpCounts(BaseModel):
    """Operations replayed, per kind."""

    set: int = Field(default=0, ge=0)
    get: int = Field(default=0, ge=0)
    remove: int = Field(default=0, ge=0)
    clear: int = Field(default=0, ge=0)

    @property
    def total(self) -> int:
        return self.set + self.get + self.remove + self.clear


class TableStats(BaseModel):
    """Shape of the table after a replay."""

    size: int = Field(..., ge=0)
    capacity: int = Field(..., ge=1)
    load_factor: float = Field(..., ge=0.0)
    tombstones: int = Field(..., ge=0)
    max_load_factor: float = Field(..., gt=0.0, lt=1.0)

    @field_validator("load_factor")
    @classmethod
    def _round_load_factor(cls, value: float) -> float:
        return round(value, 6)


class RunSummary(BaseModel):
    """Summary written by ``run-csv --json-summary-out``."""

    csv: str = Field(..., description="Workload file that was replayed.")
    int_keys: bool = Field(default=False, description="Keys were parsed as integers.")
    ops: OpCounts = Field(default_factory=OpCounts)
    get_misses: int = Field(default=0, ge=0, description="GETs that raised KeyNotFound.")
    removed: int = Field(default=0, ge=0, description="REMOVEs that found an entry.")
    expansions: int = Field(default=0, ge=0, description="SETs that grew the table.")
    elapsed_seconds: float = Field(default=0.0, ge=0.0)
    ops_per_second: float = Field(default=0.0, ge=0.0)
    table: TableStats


__all__ = ["OpCounts", "RunSummary", "TableStats"]
