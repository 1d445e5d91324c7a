"""
Configuration management for the ILIAS synchronizer.
"""

import yaml
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Dict, Any, Optional


class ConfigError(Exception):
    """Raised for missing or invalid configuration values."""
    pass


@dataclass
class SyncConfig:
    """What to sync and where to put it."""
    output: Optional[str] = None
    jobs: int = 1
    skip_files: bool = False
    no_videos: bool = False
    forum: bool = False
    force: bool = False
    content_tree: bool = False
    verbose: int = 0


@dataclass
class IliasConfig:
    """Configuration for the ILIAS instance."""
    base_url: str = "https://ilias.studium.kit.edu/"
    idp_url: str = "https://idp.scc.kit.edu/idp/shibboleth"
    request_timeout: int = 11
    user_agent: str = "iliasync/1.0.0"


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"
    file: Optional[str] = None
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    json: bool = False


@dataclass
class Config:
    """Main configuration class."""
    sync: SyncConfig
    ilias: IliasConfig
    logging: LoggingConfig


def _section(cls, data: Optional[Dict[str, Any]]):
    data = data or {}
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"Unknown {cls.__name__} keys: {', '.join(sorted(unknown))}")
    return cls(**data)


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = Path(config_path) if config_path else None
        self._config: Optional[Config] = None

    def load_config(self, overrides: Optional[Dict[str, Any]] = None) -> Config:
        """
        Load configuration from the YAML file (if any) and apply overrides.

        Args:
            overrides: Values for the ``sync`` section, e.g. from the command
                line. ``None`` values are ignored.
        """
        config_data: Dict[str, Any] = {}
        if self.config_path is not None:
            if not self.config_path.exists():
                raise ConfigError(f"Configuration file not found: {self.config_path}")
            with open(self.config_path, 'r') as file:
                config_data = yaml.safe_load(file) or {}

        sync_config = _section(SyncConfig, config_data.get('sync'))
        if overrides:
            sync_config = replace(
                sync_config,
                **{k: v for k, v in overrides.items() if v is not None}
            )

        self._config = Config(
            sync=sync_config,
            ilias=_section(IliasConfig, config_data.get('ilias')),
            logging=_section(LoggingConfig, config_data.get('logging')),
        )

        self._validate_config()
        return self._config

    def _validate_config(self):
        """Validate configuration values."""
        if not self._config:
            raise ConfigError("Configuration not loaded")

        if not self._config.sync.output:
            raise ConfigError("An output directory must be provided")

        if self._config.sync.jobs < 1:
            raise ConfigError("jobs must be at least 1")

        if self._config.sync.verbose < 0:
            raise ConfigError("verbose must be non-negative")

        if not self._config.ilias.base_url.endswith('/'):
            raise ConfigError("ilias.base_url must end with '/'")

        if self._config.ilias.request_timeout <= 0:
            raise ConfigError("ilias.request_timeout must be positive")

        logging.debug("Configuration validation passed")

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            raise ConfigError("Configuration not loaded. Call load_config() first.")
        return self._config


# Global config manager instance
config_manager = ConfigManager()


def get_config() -> Config:
    """Get the global configuration instance."""
    return config_manager.config


def load_config(config_path: Optional[str] = None,
                overrides: Optional[Dict[str, Any]] = None) -> Config:
    """Load configuration from file and command line overrides."""
    global config_manager
    config_manager = ConfigManager(config_path)
    return config_manager.load_config(overrides)
