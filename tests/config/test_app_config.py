#!filepath: tests/config/test_app_config.py
from pathlib import Path

import pytest
from pydantic import ValidationError

from simcollect import AppConfig
from simcollect.config.experiment_config import ExperimentConfig


def test_load_default_config(monkeypatch):
    monkeypatch.delenv("SIMCOLLECT_LEDGER_PATH", raising=False)
    monkeypatch.delenv("SIMCOLLECT_MAX_WORKERS", raising=False)

    cfg = AppConfig.load()

    assert cfg.experiment.scenario_count >= 1
    assert cfg.experiment.replication_count >= 1
    assert cfg.log.level == "INFO"


def test_load_yaml_with_env_override(tmp_path, monkeypatch):
    path = tmp_path / "exp.yml"
    path.write_text(
        "experiment:\n"
        "  scenario_count: 5\n"
        "  replication_count: 2\n"
        "  fail_fast: true\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("SIMCOLLECT_LEDGER_PATH", str(tmp_path / "progress.tsv"))
    monkeypatch.setenv("SIMCOLLECT_MAX_WORKERS", "3")

    cfg = AppConfig.load(str(path))

    assert cfg.experiment.scenario_count == 5
    assert cfg.experiment.fail_fast is True
    assert cfg.experiment.max_workers == 3
    assert cfg.experiment.ledger_path == Path(tmp_path / "progress.tsv")
    assert cfg.log.dir is None


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        AppConfig.load(str(tmp_path / "nope.yml"))


def test_invalid_counts_rejected():
    with pytest.raises(ValidationError):
        ExperimentConfig(scenario_count=0)
    with pytest.raises(ValidationError):
        ExperimentConfig(max_workers=0)
