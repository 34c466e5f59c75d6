"""
Tests for environment-driven configuration.
"""

import pytest
from pydantic import ValidationError

from utils.config import Config


class TestConfig:
    """Tests for Config validation and derived settings."""

    def test_log_level_is_normalized(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert Config().log_level == "DEBUG"

    def test_invalid_report_mode_rejected(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_REPORT_MODE", "draft")
        with pytest.raises(ValidationError):
            Config()

    def test_unknown_keys_are_ignored(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "not-a-stage")

        settings = Config()

        assert "environment" not in Config.model_fields
        assert not hasattr(settings, "environment")

    def test_log_file_only_when_enabled(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
        monkeypatch.setenv("LOG_TO_FILE", "false")
        assert Config().log_file is None

        monkeypatch.setenv("LOG_TO_FILE", "true")
        assert Config().log_file == tmp_path / "logs" / "inspection_reports.log"
