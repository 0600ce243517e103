"""Configuration management - loads settings.yaml and secrets from the environment."""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from iyzico_subscriptions.models import AppSettings


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


class Config:
    """Application configuration loader.

    Loads settings.yaml and provides validated access to:
    - Webhook, sweep, notifier, link and store settings
    - Secrets (iyzico secret key, SMTP password) read from the environment

    The instance is passed explicitly to the components that need it.
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        iyzico_secret_key: Optional[str] = None,
        smtp_password: Optional[str] = None,
    ):
        """Initialize configuration loader.

        Args:
            config_path: Path to settings.yaml. If not provided, uses CONFIG_PATH env var
                        or defaults to ./config/settings.yaml
            iyzico_secret_key: Overrides the IYZICO_SECRET_KEY environment variable
            smtp_password: Overrides the SMTP_PASSWORD environment variable
        """
        self._config_path = self._resolve_config_path(config_path)
        self._settings: Optional[AppSettings] = None
        self._iyzico_secret_key = (
            iyzico_secret_key if iyzico_secret_key is not None else os.getenv("IYZICO_SECRET_KEY", "")
        )
        self._smtp_password = smtp_password if smtp_password is not None else os.getenv("SMTP_PASSWORD")
        self._load_config()

    def _resolve_config_path(self, config_path: Optional[str]) -> Path:
        """Resolve configuration file path from argument, env var, or default."""
        if config_path:
            return Path(config_path)

        env_path = os.getenv("CONFIG_PATH")
        if env_path:
            return Path(env_path)

        return Path("config/settings.yaml")

    def _load_config(self) -> None:
        """Load and validate settings.yaml."""
        if not self._config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {self._config_path}\n"
                f"Please create config/settings.yaml or set CONFIG_PATH environment variable"
            )

        try:
            with open(self._config_path, encoding="utf-8") as f:
                raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML configuration: {e}")

        if not raw_config:
            raise ConfigurationError(f"Configuration file is empty: {self._config_path}")

        try:
            self._settings = AppSettings(**raw_config)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}")
        except TypeError as e:
            raise ConfigurationError(f"Configuration must be a mapping: {e}")

    @property
    def settings(self) -> AppSettings:
        """Get validated settings."""
        if self._settings is None:
            raise ConfigurationError("Configuration not loaded")
        return self._settings

    @property
    def config_path(self) -> Path:
        """Get path to configuration file."""
        return self._config_path

    @property
    def iyzico_secret_key(self) -> str:
        """iyzico secret key; empty when not configured."""
        return self._iyzico_secret_key or ""

    @property
    def smtp_password(self) -> Optional[str]:
        return self._smtp_password

    def require_iyzico_secret_key(self) -> str:
        """Get the iyzico secret key.

        Raises:
            ConfigurationError: If IYZICO_SECRET_KEY is not set
        """
        if not self.iyzico_secret_key:
            raise ConfigurationError("IYZICO_SECRET_KEY is not configured")
        return self.iyzico_secret_key

    @property
    def sweep_settings(self):
        return self.settings.sweep

    @property
    def notifier_settings(self):
        return self.settings.notifier

    @property
    def links(self):
        return self.settings.links

    @property
    def seed_users_path(self) -> Optional[Path]:
        """Seed users file, resolved relative to the settings file."""
        path = self.settings.store.seed_users_path
        if not path:
            return None
        resolved = Path(path)
        if not resolved.is_absolute():
            resolved = self._config_path.parent / resolved
        return resolved

    def reload(self) -> None:
        """Reload configuration from disk."""
        self._load_config()


# Global configuration instance
_config_instance: Optional[Config] = None


def get_config(config_path: Optional[str] = None) -> Config:
    """Get global configuration instance (singleton).

    Args:
        config_path: Optional path to configuration file (only used on first call)

    Returns:
        Config instance
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = Config(config_path)
    return _config_instance


def reset_config() -> None:
    """Drop the global configuration so the next get_config() reloads it."""
    global _config_instance
    _config_instance = None
