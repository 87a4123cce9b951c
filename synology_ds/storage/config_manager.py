"""
Manages loading, validation, and migration of the INI configuration file.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from synology_ds.exceptions import ConfigurationError
from synology_ds.models.config import ClientConfig

log = logging.getLogger(__name__)


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, cli_options: dict[str, Any] | None = None) -> ClientConfig:
        """
        Loads configuration from the INI file, applies CLI overrides, and validates it.

        A missing file is not an error: every setting has a default and the
        host can be prompted for.

        Args:
            cli_options: A dictionary of options provided via the command line.

        Returns:
            A validated ClientConfig object.

        Raises:
            ConfigurationError: If the config file is unreadable or validation fails.
        """
        config_from_file: dict[str, Any] = {}
        if self.config_file_path.is_file():
            try:
                self._parser.read(self.config_file_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(f"Error parsing configuration file: {e}") from e

            if self._migrate_if_needed():
                log.info("[yellow]Configuration file was updated with new default values.[/yellow]")
            config_from_file = self._get_config_as_dict()

        if cli_options:
            config_from_file.update(
                {key: value for key, value in cli_options.items() if value is not None}
            )

        try:
            return ClientConfig(**config_from_file)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_settings(self, settings: dict[str, Any]) -> None:
        """
        Merges settings into the configuration file, creating it if needed.

        Keys set to None are removed from the file.

        Args:
            settings: A dictionary of settings to save.
        """
        parser = configparser.ConfigParser(interpolation=None)
        if self.config_file_path.is_file():
            try:
                parser.read(self.config_file_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(f"Error parsing configuration file: {e}") from e

        section = parser["DEFAULT"]
        for key, value in settings.items():
            if key not in ClientConfig.get_ini_keys():
                continue
            if value is None:
                section.pop(key, None)
            elif isinstance(value, bool):
                section[key] = "true" if value else "false"
            else:
                section[key] = str(value)

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                parser.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        section = self._parser["DEFAULT"]
        try:
            allow_insecure = (
                section.getboolean("allow_insecure") if section.get("allow_insecure") else None
            )
            return {
                "host": section.get("host", ""),
                "allow_insecure": allow_insecure,
                "timeout_ms": section.getint("timeout_ms", ClientConfig().timeout_ms),
                "op_item": section.get("op_item") or None,
                "op_vault": section.get("op_vault") or None,
                "session_cache": section.getboolean("session_cache", True),
                "poll_interval": section.getfloat("poll_interval", ClientConfig().poll_interval),
            }
        except ValueError as e:
            raise ConfigurationError(f"Invalid value in configuration file: {e}") from e

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        defaults = ClientConfig()
        migrated_keys = ("session_cache", "timeout_ms", "poll_interval")
        needs_saving = False

        config_section = self._parser["DEFAULT"]

        for key in migrated_keys:
            if key not in config_section:
                default_value = getattr(defaults, key)
                if isinstance(default_value, bool):
                    config_section[key] = "true" if default_value else "false"
                else:
                    config_section[key] = str(default_value)

                needs_saving = True
                log.debug(
                    f"Migrating config: added missing key '{key}' with "
                    f"value '{config_section[key]}'."
                )

        if needs_saving:
            try:
                with open(self.config_file_path, "w", encoding="utf-8") as f:
                    self._parser.write(f)
            except OSError as e:
                log.error(f"Could not save migrated configuration file: {e}")
                return False

        return needs_saving
