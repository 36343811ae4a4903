import json
import logging

from core.config import CONFIG_FILE_NAME, ENV_LOG_LEVEL, _load_persisted_settings, log_level
from core.logging_config import setup_logging


class TestConfig:
    def test_log_level_from_environment(self, monkeypatch):
        monkeypatch.setenv(ENV_LOG_LEVEL, "debug")
        assert log_level() == "DEBUG"
        monkeypatch.delenv(ENV_LOG_LEVEL)
        assert log_level() == "INFO"

    def test_persisted_settings(self, tmp_path):
        assert _load_persisted_settings(tmp_path) == {}
        (tmp_path / CONFIG_FILE_NAME).write_text(json.dumps({"data_dir": "/srv/erp"}), encoding="utf-8")
        assert _load_persisted_settings(tmp_path) == {"data_dir": "/srv/erp"}

    def test_corrupt_settings_are_ignored(self, tmp_path):
        (tmp_path / CONFIG_FILE_NAME).write_text("{not json", encoding="utf-8")
        assert _load_persisted_settings(tmp_path) == {}


def test_setup_logging_adds_a_single_handler():
    logger = logging.getLogger("core")
    saved = list(logger.handlers)
    logger.handlers.clear()
    try:
        setup_logging("warning")
        setup_logging("debug")
        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG
    finally:
        logger.handlers[:] = saved
