"""Configuration management system for UIO9.

This module provides centralized configuration loading from multiple sources:
- YAML/TOML configuration files
- Environment variables (.env)
- Default values

Includes validation to ensure configuration values are correct.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

DEFAULTS: Dict[str, Dict[str, Any]] = {
    "logging": {
        "level": "INFO",
        "directory": "logs",
        "json_format": False,
    },
    "governor": {
        "requests_per_minute": 30,
        "max_concurrent": 2,
        "window_seconds": 60,
        "buffer_seconds": 1,
        "acquire_timeout": None,
    },
    "search": {
        "timeout_seconds": 30,
        "max_retries": 1,
        "retry_backoff": 0.5,
        "http_timeout": 10,
        "user_agent": "UIO9/1.0 (+https://github.com/uio9/uio9)",
    },
    "sources": {},
}


@dataclass
class ValidationResult:
    """Result of configuration validation."""

    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        """Add an error message."""
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        """Add a warning message."""
        self.warnings.append(message)

    def __str__(self) -> str:
        """Format validation result as string."""
        lines = []
        if self.errors:
            lines.append("Errors:")
            lines.extend(f"  - {e}" for e in self.errors)
        if self.warnings:
            lines.append("Warnings:")
            lines.extend(f"  - {w}" for w in self.warnings)
        if not lines:
            return "Configuration is valid."
        return "\n".join(lines)


def _coerce(value: str) -> Any:
    """Parse an environment variable string into a YAML scalar."""
    try:
        return yaml.safe_load(value)
    except yaml.YAMLError:
        return value


class Config:
    """Configuration manager for UIO9."""

    def __init__(self, config_file: Optional[str] = None, *, load_env: bool = True):
        """
        Initialize configuration.

        Args:
            config_file: Path to YAML or TOML config file (optional)
            load_env: Load a ``.env`` file from the working directory
        """
        self.logger = logging.getLogger(self.__class__.__name__)
        self._config: Dict[str, Any] = {}
        self._config_file = config_file

        env_path = Path(".env")
        if load_env and env_path.exists():
            load_dotenv(env_path)
            self.logger.info("Loaded environment variables from .env")

        if config_file:
            self._load_config_file(config_file)
        else:
            self._auto_load_config()

        self._load_defaults()

    def _load_config_file(self, config_file: str) -> None:
        """Load configuration from YAML or TOML file."""
        config_path = Path(config_file)

        if not config_path.exists():
            self.logger.warning("Config file not found: %s", config_file)
            return

        with open(config_path, "rb") as f:
            if config_file.endswith((".yaml", ".yml")):
                self._config = yaml.safe_load(f) or {}
                self.logger.info("Loaded YAML config from %s", config_file)
            elif config_file.endswith(".toml"):
                self._config = tomllib.load(f)
                self.logger.info("Loaded TOML config from %s", config_file)
            else:
                raise ValueError(f"Unsupported config format: {config_file}")

    def _auto_load_config(self) -> None:
        """Automatically find and load config file."""
        candidates = [
            Path("config") / "uio9.yaml",
            Path("config") / "uio9.yml",
            Path("config") / "uio9.toml",
            Path("uio9.yaml"),
            Path("uio9.yml"),
            Path("uio9.toml"),
        ]

        for candidate in candidates:
            if candidate.exists():
                self._load_config_file(str(candidate))
                return

        self.logger.debug("No config file found, using defaults and environment variables")

    def _load_defaults(self) -> None:
        """Merge defaults under loaded values (loaded config takes precedence)."""
        for key, value in DEFAULTS.items():
            if key not in self._config:
                self._config[key] = dict(value)
            elif isinstance(value, dict):
                self._config[key] = {**value, **(self._config.get(key) or {})}

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value.

        Supports dot notation for nested keys: "governor.max_concurrent".
        An environment variable named after the key ("GOVERNOR_MAX_CONCURRENT")
        takes precedence over the file.

        Args:
            key: Configuration key (supports dot notation)
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        env_value = os.getenv(key.upper().replace(".", "_"))
        if env_value is not None:
            return _coerce(env_value)

        value: Any = self._config
        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set configuration value at runtime.

        Args:
            key: Configuration key (supports dot notation)
            value: Value to set
        """
        keys = key.split(".")
        config = self._config

        for k in keys[:-1]:
            if k not in config or not isinstance(config[k], dict):
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value
        self.logger.debug("Set config %s = %r", key, value)

    def get_section(self, section: str) -> Dict[str, Any]:
        """
        Get entire configuration section.

        Args:
            section: Section name (e.g., "governor", "search")

        Returns:
            Dictionary with section configuration
        """
        return self._config.get(section, {})

    def to_dict(self) -> Dict[str, Any]:
        """Get all configuration as dictionary."""
        return self._config.copy()

    def reload(self) -> None:
        """Reload configuration from the original file or auto-discovery."""
        self._config = {}
        if self._config_file:
            self._load_config_file(self._config_file)
        else:
            self._auto_load_config()
        self._load_defaults()
        self.logger.info("Configuration reloaded")

    def validate(self) -> ValidationResult:
        """
        Validate the configuration.

        Returns:
            ValidationResult with errors and warnings
        """
        result = ValidationResult(is_valid=True)

        log_level = str(self.get("logging.level", "INFO"))
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if log_level.upper() not in valid_levels:
            result.add_error(
                f"Invalid logging level '{log_level}'. Must be one of: {', '.join(valid_levels)}"
            )

        rpm = self.get("governor.requests_per_minute", 30)
        if not isinstance(rpm, int) or rpm < 1:
            result.add_error("governor.requests_per_minute must be a positive integer")
        elif rpm > 120:
            result.add_warning(
                f"governor.requests_per_minute={rpm} is high, sources may block requests"
            )

        max_concurrent = self.get("governor.max_concurrent", 2)
        if not isinstance(max_concurrent, int) or max_concurrent < 1:
            result.add_error("governor.max_concurrent must be a positive integer")
        elif max_concurrent > 10:
            result.add_warning(f"governor.max_concurrent={max_concurrent} is high")

        window = self.get("governor.window_seconds", 60)
        if not isinstance(window, (int, float)) or window <= 0:
            result.add_error("governor.window_seconds must be a positive number")

        buffer = self.get("governor.buffer_seconds", 1)
        if not isinstance(buffer, (int, float)) or buffer < 0:
            result.add_error("governor.buffer_seconds must be a non-negative number")

        acquire_timeout = self.get("governor.acquire_timeout")
        if acquire_timeout is not None and (
            not isinstance(acquire_timeout, (int, float)) or acquire_timeout <= 0
        ):
            result.add_error("governor.acquire_timeout must be a positive number or null")

        timeout = self.get("search.timeout_seconds", 30)
        if timeout is not None and (not isinstance(timeout, (int, float)) or timeout <= 0):
            result.add_error("search.timeout_seconds must be a positive number or null")

        retries = self.get("search.max_retries", 1)
        if not isinstance(retries, int) or retries < 0:
            result.add_error("search.max_retries must be a non-negative integer")

        http_timeout = self.get("search.http_timeout", 10)
        if not isinstance(http_timeout, (int, float)) or http_timeout <= 0:
            result.add_error("search.http_timeout must be a positive number")

        if not result.is_valid:
            for error in result.errors:
                self.logger.error("Config validation error: %s", error)
        for warning in result.warnings:
            self.logger.warning("Config validation warning: %s", warning)

        return result

    def validate_and_raise(self) -> None:
        """
        Validate configuration and raise exception if invalid.

        Raises:
            ValueError: If configuration is invalid
        """
        result = self.validate()
        if not result.is_valid:
            raise ValueError(f"Invalid configuration:\n{result}")


# Global configuration instance
_global_config: Optional[Config] = None


def get_config(config_file: Optional[str] = None) -> Config:
    """
    Get global configuration instance.

    Args:
        config_file: Path to config file (only used on first call)

    Returns:
        Config instance
    """
    global _global_config

    if _global_config is None:
        _global_config = Config(config_file)

    return _global_config


def reload_config(config_file: Optional[str] = None) -> Config:
    """
    Reload global configuration.

    Args:
        config_file: Path to config file (optional)
    """
    global _global_config

    if _global_config is not None and config_file is None:
        _global_config.reload()
    else:
        _global_config = Config(config_file)

    return _global_config
