# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Configuration loading and validation for the bundler."""

import hashlib
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".aerobundle.yml"


class ConfigurationError(Exception):
    """Raised when configuration validation fails critically."""

    pass


class Config:
    """Configuration for the bundler.

    Loads configuration from .aerobundle.yml with validation and defaults.
    """

    DEFAULTS: Dict[str, Any] = {
        "source_extensions": [".js"],
        "minify": True,
        "fingerprint_algorithm": "sha256",
        "read_max_retries": 3,
        "max_file_size_kb": 10240,
        "resolve_timeout_seconds": 0,  # 0 disables the build deadline
        "watch_ignore_patterns": [],
    }

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_path: Path to configuration file. If None, uses default location.
        """
        if config_path is None:
            config_path = Path.cwd() / CONFIG_FILENAME

        self.config_path = config_path
        self._config: Dict[str, Any] = {}
        self._load_config()

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "Config":
        """Build a configuration from a mapping instead of a file.

        Raises:
            ConfigurationError: If values is not a mapping.
        """
        if not isinstance(values, dict):
            raise ConfigurationError(
                f"Configuration must be a dictionary, got {type(values).__name__}"
            )
        config = cls.__new__(cls)
        config.config_path = None
        config._config = cls._defaults()
        config._validate_and_merge(values)
        return config

    @classmethod
    def _defaults(cls) -> Dict[str, Any]:
        return {
            key: list(value) if isinstance(value, list) else value
            for key, value in cls.DEFAULTS.items()
        }

    def _load_config(self) -> None:
        """Load and validate configuration from file."""
        if not self.config_path.exists():
            logger.info(f"Configuration file not found at {self.config_path}, using defaults")
            self._config = self._defaults()
            return

        try:
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f)
        except (yaml.YAMLError, OSError) as e:
            logger.warning(
                f"Error reading configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self._defaults()
            return

        self._config = self._defaults()

        if loaded_config is None:
            logger.warning("Configuration file is empty, using defaults")
            return

        if not isinstance(loaded_config, dict):
            logger.warning(
                f"Configuration file must contain a YAML dictionary, "
                f"got {type(loaded_config)}, using defaults"
            )
            return

        self._validate_and_merge(loaded_config)

    def _validate_and_merge(self, loaded_config: Dict[str, Any]) -> None:
        """Validate loaded configuration and merge with defaults.

        Invalid parameters are logged as warnings and defaults are used.
        """
        for key, value in loaded_config.items():
            if key not in self.DEFAULTS:
                logger.warning(f"Unknown configuration parameter '{key}', ignoring")
                continue

            if not self._validate_parameter(key, value):
                logger.warning(
                    f"Invalid value for '{key}': {value}, using default {self.DEFAULTS[key]}"
                )
                continue

            self._config[key] = value

    def _validate_parameter(self, key: str, value: Any) -> bool:
        """Validate a configuration parameter.

        Returns:
            True if valid, False if invalid
        """
        # bool is an int subclass; reject it wherever a number is expected
        if key == "resolve_timeout_seconds":
            return isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0

        expected_type = type(self.DEFAULTS[key])
        if not isinstance(value, expected_type):
            return False
        if expected_type is int and isinstance(value, bool):
            return False

        if key in ("read_max_retries", "max_file_size_kb"):
            return bool(value > 0)
        elif key == "source_extensions":
            return bool(value) and all(
                isinstance(ext, str) and ext.startswith(".") and len(ext) > 1 for ext in value
            )
        elif key == "watch_ignore_patterns":
            return all(isinstance(pattern, str) for pattern in value)
        elif key == "fingerprint_algorithm":
            # shake_* digests are variable-length and need an explicit size
            return value in hashlib.algorithms_guaranteed and not value.startswith("shake_")

        return True

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._config)

    @property
    def source_extensions(self) -> List[str]:
        """Extensions of files the resolver follows."""
        value = self._config["source_extensions"]
        assert isinstance(value, list)
        return value

    @property
    def minify(self) -> bool:
        """Whether bundles are minified."""
        value = self._config["minify"]
        assert isinstance(value, bool)
        return value

    @property
    def fingerprint_algorithm(self) -> str:
        """hashlib algorithm used for bundle fingerprints."""
        value = self._config["fingerprint_algorithm"]
        assert isinstance(value, str)
        return value

    @property
    def read_max_retries(self) -> int:
        """Maximum read attempts per source file."""
        value = self._config["read_max_retries"]
        assert isinstance(value, int)
        return value

    @property
    def max_file_size_kb(self) -> int:
        """Source files larger than this are rejected."""
        value = self._config["max_file_size_kb"]
        assert isinstance(value, int)
        return value

    @property
    def resolve_timeout_seconds(self) -> float:
        """Default deadline for one bundle build, 0 for none."""
        value = self._config["resolve_timeout_seconds"]
        assert isinstance(value, (int, float))
        return float(value)

    @property
    def watch_ignore_patterns(self) -> List[str]:
        """Additional file patterns the source watcher ignores."""
        value = self._config["watch_ignore_patterns"]
        assert isinstance(value, list)
        return value
