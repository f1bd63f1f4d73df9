"""Configuration management for ip-console using YAML files."""

from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
import yaml

from ip_console.models import Identity

logger = structlog.get_logger()

CONFIG_DIR_NAME = ".ip-console"
NOTION_DATABASE_PREFIX = "notion.database."


class Config:
    """Configuration manager using YAML file storage.

    Local config lives in .ip-console/config.yaml under the current
    directory and global config in ~/.ip-console/config.yaml. Reads look in
    local config first, then global config. Keys are flat dotted strings
    such as ``user.id`` or ``notion.database.alerts``.
    """

    def __init__(self, use_global: bool = False, config_dir: Path | None = None) -> None:
        """Initialize configuration manager.

        Args:
            use_global: If True, use global config only. If False, use local config with global fallback.
            config_dir: Custom directory to store config file (overrides use_global)
        """
        if config_dir is not None:
            self.config_dir = Path(config_dir)
            self.is_global = use_global
        elif use_global:
            self.config_dir = Path.home() / CONFIG_DIR_NAME
            self.is_global = True
        else:
            self.config_dir = Path.cwd() / CONFIG_DIR_NAME
            self.is_global = False

        self.config_file = self.config_dir / "config.yaml"
        self._config: dict[str, Any] = self._load(self.config_file)

        self._global_config: dict[str, Any] = {}
        if not self.is_global:
            global_config_file = Path.home() / CONFIG_DIR_NAME / "config.yaml"
            if global_config_file.exists() and global_config_file != self.config_file:
                try:
                    self._global_config = self._load(global_config_file)
                except ValueError as e:
                    logger.warning("Failed to load global config", error=str(e))

        logger.debug("Config initialized", config_file=str(self.config_file), is_global=self.is_global)

    def _load(self, config_file: Path) -> dict[str, Any]:
        """Load configuration from a YAML file, empty if it does not exist."""
        if not config_file.exists():
            logger.debug("Config file does not exist, initializing empty config", config_file=str(config_file))
            return {}

        try:
            with open(config_file, "r") as f:
                config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error("Failed to load config", config_file=str(config_file), error=str(e))
            raise ValueError(f"Failed to load config from {config_file}: {e}") from e

        logger.debug("Config loaded successfully", keys=list(config.keys()))
        return config

    def _save(self) -> None:
        """Save configuration to YAML file."""
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, "w") as f:
                yaml.safe_dump(self._config, f, default_flow_style=False, sort_keys=True)
        except OSError as e:
            logger.error("Failed to save config", error=str(e))
            raise ValueError(f"Failed to save config to {self.config_file}: {e}") from e
        logger.debug("Config saved successfully")

    def get(self, key: str, default: str | None = None) -> str | None:
        """Get a configuration value, falling back to global config for local lookups."""
        if key in self._config:
            return self._config[key]

        if not self.is_global and key in self._global_config:
            logger.debug("Getting config value from global", key=key)
            return self._global_config[key]

        return default

    def set(self, key: str, value: str) -> None:
        logger.debug("Setting config value", key=key)
        self._config[key] = value
        self._save()

    def unset(self, key: str) -> None:
        logger.debug("Unsetting config value", key=key)
        if key in self._config:
            del self._config[key]
            self._save()

    def list(self) -> dict[str, str]:
        """List all settings; local values take precedence over global ones."""
        if self.is_global:
            return dict(self._config)
        return {**self._global_config, **self._config}

    def identity(self) -> Identity:
        """Build the current user's identity from ``user.*`` settings.

        Raises:
            ValueError: If ``user.id`` is not configured
        """
        user_id = self.get("user.id")
        if not user_id:
            raise ValueError(
                "Current user not configured. Set it using:\n"
                "  ip-console config set user.id <id>\n"
                "  ip-console config set user.email <email>"
            )
        return Identity(id=str(user_id), email=self.get("user.email") or "", role=self.get("user.role") or "user")

    def timezone(self) -> ZoneInfo:
        """Timezone used to decide which calendar day an activity falls on."""
        name = self.get("timezone") or "UTC"
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: '{name}'") from e

    def notion_databases(self) -> dict[str, str]:
        """Collection to Notion database ID mapping from ``notion.database.*`` keys."""
        return {
            key[len(NOTION_DATABASE_PREFIX) :]: str(value)
            for key, value in self.list().items()
            if key.startswith(NOTION_DATABASE_PREFIX) and value
        }


def get_config(use_global: bool = False) -> Config:
    """Get a configuration instance.

    Args:
        use_global: If True, return global config. If False, return local config with global fallback.

    Returns:
        Config instance
    """
    return Config(use_global=use_global)
