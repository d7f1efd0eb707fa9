from __future__ import annotations

import logging
from pathlib import Path

import pytest

from lphash.config import AppConfig, load_app_config
from lphash.contracts.error import BadInputError

_ENV_KEYS = (
    "LPHASH_INITIAL_CAPACITY",
    "LPHASH_LOAD_FACTOR",
    "LPHASH_GROWTH_JITTER",
    "LPHASH_MAX_TOMBSTONE_RATIO",
    "LPHASH_SEED",
    "LPHASH_REPORT",
    "LPHASH_REPORT_BASIC_CALLS",
    "LPHASH_REPORT_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_default_config_validates() -> None:
    cfg = load_app_config(None)
    assert cfg.table.initial_capacity == 41
    assert cfg.table.load_factor == pytest.approx(0.5)
    assert cfg.table.growth_jitter == 10
    assert cfg.table.seed is None
    assert cfg.reporting.enabled is False
    assert cfg.reporting.basic_calls is False
    assert cfg.reporting.log_level() == logging.INFO


def test_load_from_toml(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    cfg_path = tmp_path / "config.toml"
    cfg_path.write_text(
        """
[table]
initial_capacity = 17
load_factor = 0.4
growth_jitter = 0
seed = 99

[reporting]
enabled = true
basic_calls = "yes"
level = "debug"
""",
        encoding="utf-8",
    )
    cfg = load_app_config(str(cfg_path))
    assert cfg.table.initial_capacity == 17
    assert cfg.table.load_factor == pytest.approx(0.4)
    assert cfg.table.growth_jitter == 0
    assert cfg.table.seed == 99
    assert cfg.reporting.enabled is True
    assert cfg.reporting.basic_calls is True
    assert cfg.reporting.log_level() == logging.DEBUG

    # env override takes precedence
    monkeypatch.setenv("LPHASH_INITIAL_CAPACITY", "101")
    monkeypatch.setenv("LPHASH_SEED", "none")
    monkeypatch.setenv("LPHASH_REPORT", "off")
    monkeypatch.setenv("LPHASH_REPORT_LEVEL", "WARNING")
    cfg_env = AppConfig.load(cfg_path)
    assert cfg_env.table.initial_capacity == 101
    assert cfg_env.table.seed is None
    assert cfg_env.reporting.enabled is False
    assert cfg_env.reporting.log_level() == logging.WARNING


def test_env_overrides_apply_without_file(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LPHASH_LOAD_FACTOR", "0.25")
    monkeypatch.setenv("LPHASH_GROWTH_JITTER", "3")
    monkeypatch.setenv("LPHASH_REPORT_BASIC_CALLS", "1")
    cfg = load_app_config(None)
    assert cfg.table.load_factor == pytest.approx(0.25)
    assert cfg.table.growth_jitter == 3
    assert cfg.reporting.basic_calls is True


@pytest.mark.parametrize(
    "body",
    [
        "[table]\nload_factor = 1.5\n",
        "[table]\ninitial_capacity = 0\n",
        "[table]\ngrowth_jitter = -1\n",
        "[table]\nload_factor = \"x\"\n",
        "[table]\nmax_tombstone_ratio = 0.0\n",
        "[table]\nbuckets = 4\n",
        "[table]\nseed = \"soon\"\n",
        "[reporting]\nlevel = \"LOUD\"\n",
        "[reporting]\nenabled = \"maybe\"\n",
        "[reporting]\ncolour = true\n",
        "table = 3\n",
        "[table\n",
    ],
)
def test_invalid_values_raise(tmp_path: Path, body: str) -> None:
    bad_path = tmp_path / "bad.toml"
    bad_path.write_text(body, encoding="utf-8")
    with pytest.raises(BadInputError):
        load_app_config(str(bad_path))


def test_invalid_env_override_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LPHASH_GROWTH_JITTER", "lots")
    with pytest.raises(BadInputError):
        load_app_config(None)
    monkeypatch.delenv("LPHASH_GROWTH_JITTER")
    monkeypatch.setenv("LPHASH_REPORT", "perhaps")
    with pytest.raises(BadInputError):
        load_app_config(None)


def test_missing_config_file_is_bad_input(tmp_path: Path) -> None:
    with pytest.raises(BadInputError) as excinfo:
        load_app_config(str(tmp_path / "absent.toml"))
    assert "not found" in str(excinfo.value)


def test_table_numbers_given_as_strings_are_coerced() -> None:
    cfg = AppConfig.from_dict(
        {"table": {"initial_capacity": "41", "load_factor": "0.4", "growth_jitter": 2.0}}
    )
    cfg.validate()
    assert cfg.table.initial_capacity == 41
    assert isinstance(cfg.table.initial_capacity, int)
    assert cfg.table.load_factor == pytest.approx(0.4)
    assert cfg.table.growth_jitter == 2


@pytest.mark.parametrize(
    "table",
    [
        {"initial_capacity": "many"},
        {"initial_capacity": 4.5},
        {"initial_capacity": [41]},
        {"load_factor": "x"},
        {"load_factor": True},
        {"growth_jitter": True},
        {"max_tombstone_ratio": "half"},
        {"max_tombstone_ratio": False},
    ],
)
def test_malformed_table_numbers_are_bad_input(table: dict) -> None:
    with pytest.raises(BadInputError):
        AppConfig.from_dict({"table": table}).validate()


def test_max_tombstone_ratio_from_toml_and_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    assert load_app_config(None).table.max_tombstone_ratio == pytest.approx(0.25)

    cfg_path = tmp_path / "config.toml"
    cfg_path.write_text('[table]\nmax_tombstone_ratio = "none"\n', encoding="utf-8")
    assert load_app_config(str(cfg_path)).table.max_tombstone_ratio is None

    monkeypatch.setenv("LPHASH_MAX_TOMBSTONE_RATIO", "0.5")
    assert load_app_config(str(cfg_path)).table.max_tombstone_ratio == pytest.approx(0.5)

    monkeypatch.setenv("LPHASH_MAX_TOMBSTONE_RATIO", "2")
    with pytest.raises(BadInputError):
        load_app_config(None)
