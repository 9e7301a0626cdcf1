import logging
from pathlib import Path

import pytest

from namesweep.domain.models.run_config import DEFAULT_FATAL_STATUSES, RunConfig
from namesweep.infrastructure.config import settings
from namesweep.infrastructure.monitoring.logger_setup import resolve_level, setup_logging


@pytest.fixture
def yaml_config(tmp_path: Path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "logging:\n  level: info\nrun:\n  workers: 3\n  concurrency: 50\n  fatal_statuses: [401, 404]\n",
        encoding="utf-8",
    )
    return path


def test_yaml_values_are_addressed_by_dotted_keys(yaml_config):
    settings.load_configuration(config_file=yaml_config)
    assert settings.get_config("run.workers") == 3
    assert settings.get_config("run.missing", "fallback") == "fallback"
    assert settings.get_log_level() == "INFO"


def test_environment_overrides_yaml(yaml_config, monkeypatch):
    settings.load_configuration(config_file=yaml_config)
    monkeypatch.setenv("NAMESWEEP_RUN_WORKERS", "5")
    monkeypatch.setenv("NAMESWEEP_RUN_SHAPING_ENABLED", "false")
    assert settings.get_config("run.workers") == 5
    assert settings.get_config("run.shaping_enabled") is False


def test_test_overrides_win(yaml_config, monkeypatch):
    settings.load_configuration(config_file=yaml_config)
    monkeypatch.setenv("NAMESWEEP_RUN_WORKERS", "5")
    settings.set_config_for_testing({"run.workers": 7})
    assert settings.get_config("run.workers") == 7
    settings.clear_test_config()
    assert settings.get_config("run.workers") == 5


def test_load_run_config_merges_sources(yaml_config):
    settings.load_configuration(config_file=yaml_config)
    config = settings.load_run_config(concurrency=10, batch_size=None)

    assert isinstance(config, RunConfig)
    assert config.workers == 3
    assert config.concurrency == 10
    assert config.batch_size == 1
    assert config.fatal_statuses == frozenset({401, 404})


def test_load_run_config_defaults():
    settings.load_configuration()
    config = settings.load_run_config()
    assert config.concurrency == 200
    assert config.fatal_statuses == DEFAULT_FATAL_STATUSES


def test_fatal_statuses_from_environment(monkeypatch):
    monkeypatch.setenv("NAMESWEEP_RUN_FATAL_STATUSES", "400, 410")
    assert settings.load_run_config().fatal_statuses == frozenset({400, 410})


def test_invalid_values_raise():
    with pytest.raises(ValueError):
        settings.load_run_config(workers=0)


def test_dotenv_file_is_loaded(tmp_path: Path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text("NAMESWEEP_RUN_BATCH_SIZE=25\n", encoding="utf-8")
    monkeypatch.delenv("NAMESWEEP_RUN_BATCH_SIZE", raising=False)
    settings.load_configuration(config_file=tmp_path / "none.yaml", env_file=env_file)
    try:
        assert settings.load_run_config().batch_size == 25
    finally:
        monkeypatch.delenv("NAMESWEEP_RUN_BATCH_SIZE", raising=False)


def test_resolve_level():
    assert resolve_level("debug") == logging.DEBUG
    assert resolve_level(logging.ERROR) == logging.ERROR
    assert resolve_level("nonsense") == logging.WARNING


def test_setup_logging_writes_file(tmp_path: Path, restore_root_logger):
    log_file = tmp_path / "namesweep.log"
    setup_logging(log_level="INFO", log_file=str(log_file))
    logging.getLogger("namesweep.test").info("hello from test")
    for handler in restore_root_logger.handlers:
        handler.flush()
    assert "hello from test" in log_file.read_text(encoding="utf-8")
    assert logging.getLogger("httpx").level == logging.WARNING
