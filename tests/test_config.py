"""Tests for settings loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from lanscout.config import ENV_PREFIX, ScanSettings, load_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep LANSCOUT_* variables from the host environment out of the tests."""
    for name in ScanSettings.model_fields:
        monkeypatch.delenv(f"{ENV_PREFIX}{name.upper()}", raising=False)


class TestScanSettings:
    """Test defaults and loading order."""

    def test_defaults(self):
        settings = load_settings()

        assert settings.nmap_path == "nmap"
        assert settings.converter is None
        assert settings.use_sudo is True
        assert settings.command_timeout == 1200
        assert settings.fast_host_timeout == "30s"
        assert settings.slow_host_timeout == "200s"
        assert settings.found_ttl == 600
        assert settings.not_found_ttl == 60
        assert settings.max_outstanding == 3
        assert settings.require_mac is True
        assert settings.queue_name == "nmap"

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "lanscout.yaml"
        path.write_text(
            "nmap_path: /usr/local/bin/nmap\n"
            "use_sudo: false\n"
            "found_ttl: 300\n"
            "data_dir: /var/lib/lanscout\n"
        )

        settings = load_settings(path)

        assert settings.nmap_path == "/usr/local/bin/nmap"
        assert settings.use_sudo is False
        assert settings.found_ttl == 300
        assert settings.not_found_ttl == 60
        assert settings.job_store_path == Path("/var/lib/lanscout/nmap-jobs.json")

    def test_empty_yaml_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_settings(path) == ScanSettings()

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "lanscout.yaml"
        path.write_text("found_ttl: 300\n")
        monkeypatch.setenv("LANSCOUT_FOUND_TTL", "120")
        monkeypatch.setenv("LANSCOUT_USE_SUDO", "false")
        monkeypatch.setenv("LANSCOUT_CONVERTER", "/opt/xml2json")

        settings = load_settings(path)

        assert settings.found_ttl == 120
        assert settings.use_sudo is False
        assert settings.converter == "/opt/xml2json"

    def test_invalid_value(self, monkeypatch):
        monkeypatch.setenv("LANSCOUT_COMMAND_TIMEOUT", "0")
        with pytest.raises(ValidationError):
            load_settings()

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- nmap\n- sudo\n")
        with pytest.raises(ValueError, match="mapping"):
            load_settings(path)

    def test_job_store_path(self, tmp_path):
        settings = ScanSettings(data_dir=tmp_path, queue_name="lan")
        assert settings.job_store_path == tmp_path / "lan-jobs.json"
