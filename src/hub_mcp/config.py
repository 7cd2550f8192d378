# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Configuration loading and validation for the hub MCP server."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from croniter import croniter

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when configuration validation fails critically."""

    pass


class Config:
    """Configuration for the hub MCP server.

    Loads configuration from .hub_mcp.yml with validation and defaults.
    """

    DEFAULTS = {
        # Upstream endpoint
        "endpoint_url": "http://localhost:8080/hub/graphql",
        "request_timeout_seconds": 30,
        "max_retries": 3,
        "retry_backoff_seconds": 1.0,
        # Schema cache
        "cache_ttl_hours": 24,
        "cache_max_size": 100,
        # Scheduled refresh (daily at 2 AM)
        "refresh_cron": "0 2 * * *",
        "enable_scheduled_refresh": True,
        "warmup_delay_seconds": 5,
        # Entity naming convention
        "entity_prefix": "Entity_Tanzu_",
        "entity_acronyms": ["tas", "tkg", "tmc", "aws", "gcp", "azure", "vm", "bosh"],
    }

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_path: Path to configuration file. If None, uses default location.
        """
        if config_path is None:
            config_path = Path.cwd() / ".hub_mcp.yml"

        self.config_path = config_path
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load and validate configuration from file."""
        if not self.config_path.exists():
            logger.info(f"Configuration file not found at {self.config_path}, using defaults")
            self._config = self._defaults()
            return

        try:
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f)

            if loaded_config is None:
                logger.warning("Configuration file is empty, using defaults")
                self._config = self._defaults()
                return

            if not isinstance(loaded_config, dict):
                logger.warning(
                    f"Configuration file must contain a YAML dictionary, "
                    f"got {type(loaded_config)}, using defaults"
                )
                self._config = self._defaults()
                return

            # Start with defaults and override with loaded values
            self._config = self._defaults()
            self._validate_and_merge(loaded_config)

        except yaml.YAMLError as e:
            logger.warning(
                f"Error parsing configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self._defaults()
        except OSError as e:
            logger.warning(
                f"Could not read configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self._defaults()

    def _defaults(self) -> Dict[str, Any]:
        config: Dict[str, Any] = self.DEFAULTS.copy()
        # Copy mutable defaults so merged configs never share them
        config["entity_acronyms"] = list(config["entity_acronyms"])
        return config

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
        expected_type = type(self.DEFAULTS[key])

        # Accept ints where a float is expected (e.g. retry_backoff_seconds: 2)
        if expected_type is float and isinstance(value, int) and not isinstance(value, bool):
            value = float(value)

        if not isinstance(value, expected_type):
            return False
        # bool is a subclass of int
        if expected_type is int and isinstance(value, bool):
            return False

        if key in ("request_timeout_seconds", "cache_ttl_hours", "cache_max_size"):
            return bool(value > 0)
        elif key == "max_retries":
            return bool(0 <= value <= 10)
        elif key == "retry_backoff_seconds":
            return bool(value >= 0)
        elif key == "warmup_delay_seconds":
            return bool(value >= 0)
        elif key == "endpoint_url":
            return value.startswith(("http://", "https://"))
        elif key == "refresh_cron":
            return bool(croniter.is_valid(value))
        elif key == "entity_prefix":
            return bool(value) and value.endswith("_")
        elif key == "entity_acronyms":
            return all(isinstance(item, str) and item for item in value)

        return True

    def get(self, key: str) -> Any:
        """Raw accessor, raises ConfigurationError for unknown keys."""
        if key not in self._config:
            raise ConfigurationError(f"Unknown configuration parameter '{key}'")
        return self._config[key]

    # Property accessors for all configuration values
    @property
    def endpoint_url(self) -> str:
        """GraphQL endpoint URL."""
        value = self._config["endpoint_url"]
        assert isinstance(value, str)
        return value

    @property
    def request_timeout_seconds(self) -> int:
        """Upstream request timeout in seconds."""
        value = self._config["request_timeout_seconds"]
        assert isinstance(value, int)
        return value

    @property
    def max_retries(self) -> int:
        """Retry budget for transient upstream failures."""
        value = self._config["max_retries"]
        assert isinstance(value, int)
        return value

    @property
    def retry_backoff_seconds(self) -> float:
        """Base delay for exponential backoff."""
        value = self._config["retry_backoff_seconds"]
        assert isinstance(value, (int, float))
        return float(value)

    @property
    def cache_ttl_hours(self) -> int:
        """Schema cache time-to-live in hours."""
        value = self._config["cache_ttl_hours"]
        assert isinstance(value, int)
        return value

    @property
    def cache_max_size(self) -> int:
        """Maximum entries in the per-snapshot lookup memo."""
        value = self._config["cache_max_size"]
        assert isinstance(value, int)
        return value

    @property
    def refresh_cron(self) -> str:
        """Cron expression for the scheduled schema refresh."""
        value = self._config["refresh_cron"]
        assert isinstance(value, str)
        return value

    @property
    def enable_scheduled_refresh(self) -> bool:
        """Whether the scheduled refresh and startup warm-up run."""
        value = self._config["enable_scheduled_refresh"]
        assert isinstance(value, bool)
        return value

    @property
    def warmup_delay_seconds(self) -> int:
        """Delay before the startup warm-up load."""
        value = self._config["warmup_delay_seconds"]
        assert isinstance(value, int)
        return value

    @property
    def entity_prefix(self) -> str:
        """Type name prefix identifying entity types."""
        value = self._config["entity_prefix"]
        assert isinstance(value, str)
        return value

    @property
    def entity_acronyms(self) -> List[str]:
        """Name components rendered upper-case when rebuilding entity names."""
        value = self._config["entity_acronyms"]
        assert isinstance(value, list)
        return list(value)
