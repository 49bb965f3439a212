"""
Manages loading, validation, and migration of the INI configuration file.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from catalog_sync.exceptions import ConfigurationError
from catalog_sync.models.config import SyncConfig

log = logging.getLogger(__name__)

STORE_FILENAME = "catalog.sqlite"


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path, data_dir: Path | None = None):
        self.config_file_path = config_file_path
        self.data_dir = data_dir or config_file_path.parent
        self._parser = configparser.ConfigParser(interpolation=None)

    @property
    def store_path(self) -> Path:
        return self.data_dir / STORE_FILENAME

    def load_config(self, cli_options: dict[str, Any] | None = None) -> SyncConfig:
        """
        Loads configuration from the INI file, applies CLI overrides, and validates it.

        Args:
            cli_options: A dictionary of options provided via the command line.

        Returns:
            A validated SyncConfig object.

        Raises:
            ConfigurationError: If the config file is missing, invalid, or validation
            fails.
        """
        if not self.config_file_path.is_file():
            raise ConfigurationError(
                f"Configuration file not found at '{self.config_file_path}'. "
                "Please run 'catalog-sync init' first."
            )

        try:
            self._parser.read(self.config_file_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(f"Error parsing configuration file: {e}") from e

        if self._migrate_if_needed():
            log.info(
                "[yellow]Configuration file was updated with new default values."
                "[/yellow]"
            )

        try:
            config_from_file = self._get_config_as_dict()
        except ValueError as e:
            raise ConfigurationError(f"Invalid value in configuration file: {e}") from e

        if cli_options:
            config_from_file.update(cli_options)

        try:
            return SyncConfig(
                **config_from_file,
                config_path=str(self.config_file_path.parent),
                data_dir=str(self.data_dir),
            )
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any]) -> None:
        """
        Creates and saves a new configuration file.

        Args:
            settings: A dictionary of settings to save.
        """
        config = configparser.ConfigParser(interpolation=None)
        config["DEFAULT"] = {}

        defaults = SyncConfig.model_construct()
        for key in sorted(SyncConfig.get_ini_keys()):
            value = settings.get(key, getattr(defaults, key, None))
            if isinstance(value, bool):
                config["DEFAULT"][key] = "true" if value else "false"
            elif value is not None:
                config["DEFAULT"][key] = str(value)

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def get_raw_config(self) -> dict[str, Any]:
        """Returns the file's values without validation, for display."""
        try:
            self._parser.read(self.config_file_path, encoding="utf-8")
            return self._get_config_as_dict()
        except (configparser.Error, ValueError) as e:
            raise ConfigurationError(f"Error parsing configuration file: {e}") from e

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        section = self._parser["DEFAULT"]
        return {
            "sheet_id": section.get("sheet_id", ""),
            "items_gid": section.get("items_gid", ""),
            "db_gid": section.get("db_gid", ""),
            "features_gid": section.get("features_gid", ""),
            "data_start_row": section.getint("data_start_row", 0),
            "features_data_start_row": section.getint("features_data_start_row", 1),
            "cdn_base_url": section.get("cdn_base_url", ""),
            "concurrency": section.getint("concurrency", 5),
            "request_timeout": section.getfloat("request_timeout", 30.0),
            "max_attempts": section.getint("max_attempts", 3),
            "progress_buffer": section.getint("progress_buffer", 0),
        }

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        defaults = SyncConfig.model_construct()
        needs_saving = False
        config_section = self._parser["DEFAULT"]

        for key in sorted(SyncConfig.get_ini_keys()):
            if key not in config_section:
                config_section[key] = str(getattr(defaults, key))
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
