"""
Tests for configuration loading.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from soc2_compliance.config import ComplianceConfig, load_config


class TestConfig:
    def test_defaults(self, monkeypatch):
        for name in ("COMPLIANCE_ROOT", "CLI_TIMEOUT_MS", "CLI_MAX_BUFFER",
                     "LOG_LEVEL", "CREDENTIAL_ROTATION_DAYS"):
            monkeypatch.delenv(name, raising=False)

        config = load_config()

        assert config.compliance_root is None
        assert config.cli_timeout_ms == 30000
        assert config.cli_max_buffer == 10 * 1024 * 1024
        assert config.credential_rotation_days == 90
        assert config.log_level == "INFO"

    def test_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("COMPLIANCE_ROOT", str(tmp_path))
        monkeypatch.setenv("CLI_TIMEOUT_MS", "60000")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        config = load_config()

        assert config.compliance_root == tmp_path
        assert config.cli_timeout_ms == 60000
        assert config.log_level == "DEBUG"

    def test_empty_root_is_unset(self, monkeypatch):
        monkeypatch.setenv("COMPLIANCE_ROOT", "")
        assert load_config().compliance_root is None

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("CREDENTIAL_ROTATION_DAYS", "30")
        config = load_config(credential_rotation_days=45, compliance_root="/srv/compliance")

        assert config.credential_rotation_days == 45
        assert config.compliance_root == Path("/srv/compliance")

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            ComplianceConfig(log_level="LOUD")

    def test_timeout_bounds(self):
        with pytest.raises(ValidationError):
            ComplianceConfig(cli_timeout_ms=10)
