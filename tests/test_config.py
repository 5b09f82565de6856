"""Tests for recomator/config.py."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from recomator.config import AppConfig, BackendConfig, RetryConfig, load_config

_ENV_VARS = (
    "RECOMATOR_BACKEND_URL",
    "RECOMATOR_STATE_DIR",
    "RECOMATOR_LOG_LEVEL",
    "RECOMATOR_DEBUG",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)


def test_defaults():
    config = AppConfig()
    assert config.retry.base_delay_s == 2.0
    assert config.retry.default_max_retries == 3
    assert config.polling.fetch_poll_interval_s == 0.1
    assert config.polling.watcher_interval_s == 10.0
    assert config.storage.training_data_key == "training_data"
    assert config.storage.project_list_key == "project_list"


def test_committed_default_file_loads():
    config = load_config()
    assert config.backend.base_url
    assert config.retry.base_delay_s == 2.0


def test_explicit_file(tmp_path):
    path = tmp_path / "custom.toml"
    path.write_text(
        '[backend]\nbase_url = "https://recomator.example/api/"\n'
        "[polling]\nwatcher_interval_s = 2.5\n",
        encoding="utf-8",
    )
    config = load_config(path)
    assert config.backend.base_url == "https://recomator.example/api"
    assert config.polling.watcher_interval_s == 2.5
    assert config.retry.base_delay_s == 2.0


def test_local_overrides_merge(tmp_path):
    path = tmp_path / "custom.toml"
    path.write_text("[retry]\nbase_delay_s = 1.0\napply_max_retries = 5\n", encoding="utf-8")
    (tmp_path / "local.toml").write_text("[retry]\napply_max_retries = 0\n", encoding="utf-8")
    config = load_config(path)
    assert config.retry.base_delay_s == 1.0
    assert config.retry.apply_max_retries == 0


def test_env_overrides(tmp_path, monkeypatch):
    path = tmp_path / "custom.toml"
    path.write_text('[logging]\nlevel = "INFO"\n', encoding="utf-8")
    monkeypatch.setenv("RECOMATOR_BACKEND_URL", "http://other:9000/api")
    monkeypatch.setenv("RECOMATOR_STATE_DIR", str(tmp_path / "st"))
    monkeypatch.setenv("RECOMATOR_LOG_LEVEL", "debug")
    monkeypatch.setenv("RECOMATOR_DEBUG", "true")
    config = load_config(path)
    assert config.backend.base_url == "http://other:9000/api"
    assert config.storage.state_dir == str(tmp_path / "st")
    assert config.logging.level == "DEBUG"
    assert config.debug is True


def test_missing_explicit_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.toml")


def test_negative_retry_rejected():
    with pytest.raises(ValidationError):
        RetryConfig(base_delay_s=-1)


def test_bad_log_level_rejected(tmp_path):
    path = tmp_path / "custom.toml"
    path.write_text('[logging]\nlevel = "LOUD"\n', encoding="utf-8")
    with pytest.raises(ValidationError):
        load_config(path)


def test_config_is_frozen():
    with pytest.raises(ValidationError):
        BackendConfig().base_url = "x"
