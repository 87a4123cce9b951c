"""Tests for the INI configuration file."""
import configparser

import pytest

from synology_ds.exceptions import ConfigurationError
from synology_ds.storage.config_manager import ConfigManager


@pytest.fixture
def config_file(tmp_path):
    return tmp_path / "config.ini"


def read_ini(path):
    parser = configparser.ConfigParser(interpolation=None)
    parser.read(path, encoding="utf-8")
    return dict(parser["DEFAULT"])


class TestConfigManager:
    """Test suite for ConfigManager."""

    def test_missing_file_gives_defaults(self, config_file):
        config = ConfigManager(config_file).load_config()

        assert config.host == ""
        assert config.allow_insecure is None
        assert config.timeout_ms == 10_000
        assert not config_file.exists()

    def test_cli_options_override_file_values(self, config_file):
        config_file.write_text("[DEFAULT]\nhost = nas.local\ntimeout_ms = 5000\n")

        config = ConfigManager(config_file).load_config(
            {"host": "other.local", "timeout_ms": None, "op_item": "NAS"}
        )

        assert config.host == "other.local"
        assert config.timeout_ms == 5000
        assert config.op_item == "NAS"

    def test_invalid_values_raise_configuration_error(self, config_file):
        config_file.write_text("[DEFAULT]\ntimeout_ms = soon\n")

        with pytest.raises(ConfigurationError):
            ConfigManager(config_file).load_config()

    def test_out_of_range_values_raise_configuration_error(self, config_file):
        with pytest.raises(ConfigurationError):
            ConfigManager(config_file).load_config({"timeout_ms": 0})

    def test_missing_keys_are_migrated(self, config_file):
        config_file.write_text("[DEFAULT]\nhost = nas.local\n")

        ConfigManager(config_file).load_config()

        values = read_ini(config_file)
        assert values["host"] == "nas.local"
        assert values["session_cache"] == "true"
        assert values["timeout_ms"] == "10000"
        assert values["poll_interval"] == "1.0"

    def test_save_settings_merges_and_removes(self, config_file):
        config_file.write_text("[DEFAULT]\nhost = nas.local\nop_vault = Private\n")
        manager = ConfigManager(config_file)

        manager.save_settings(
            {"allow_insecure": True, "op_vault": None, "password": "never-saved"}
        )

        values = read_ini(config_file)
        assert values == {"host": "nas.local", "allow_insecure": "true"}

    def test_saved_settings_load_back(self, config_file):
        ConfigManager(config_file).save_settings(
            {"host": "https://nas.local:5001", "allow_insecure": False, "op_item": "NAS"}
        )

        config = ConfigManager(config_file).load_config()

        assert config.host == "https://nas.local:5001"
        assert config.allow_insecure is False
        assert config.uses_credential_provider
