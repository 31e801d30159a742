"""
Configuration management for the regulatory news scanner.

Handles loading and accessing configuration from YAML files and environment variables.
"""

import copy
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


class Config:
    """Configuration manager for the regulatory news scanner."""

    # Default configuration values
    DEFAULTS: Dict[str, Any] = {
        "paths": {
            "base_dir": None,  # Set dynamically
            "database": "db/regscan.db",
            "logs": "logs",
        },
        "http": {
            "timeout": 15,
            "max_retries": 3,
            "scanner_user_agent": "ComplianceScanner/1.0",
            "browser_user_agent": (
                "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
            ),
        },
        "scan": {
            "default_date_range_days": 14,
            "min_date_range_days": 1,
            "max_date_range_days": 60,
            "items_per_feed": 20,
            "scrape_limit": 20,
            "scrape_fallback_limit": 15,
            "enrich_limit": 15,
            "classify_batch_size": 50,
            "history_window_days": 60,
            "history_limit": 500,
        },
        "enrichment": {
            "min_container_chars": 300,
            "min_paragraph_chars": 60,
            "min_paragraphs": 3,
            "max_content_chars": 8000,
            "weak_description_chars": 150,
            "description_preview_chars": 300,
        },
        "llm": {
            "provider": "anthropic",
            "model": "claude-3-5-haiku-latest",
            "max_tokens": 8000,
        },
        "scheduler": {
            "enabled": False,
            "interval_hours": 6,
            "timezone": "UTC",
        },
        "logging": {
            "level": "INFO",
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            "file_enabled": True,
        },
    }

    _instance: Optional["Config"] = None
    _config: Dict[str, Any] = {}
    _base_dir: Optional[Path] = None

    def __new__(cls) -> "Config":
        """Singleton pattern to ensure single configuration instance."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self) -> None:
        """Initialize configuration if not already done."""
        if self._initialized:
            return
        self._initialized = True
        self._config = copy.deepcopy(self.DEFAULTS)
        self._base_dir = self._find_base_dir()
        self._load_config_file()

    def _find_base_dir(self) -> Path:
        """Find the base directory of the scanner installation."""
        env_base = os.environ.get("REGSCAN_BASE_DIR")
        if env_base:
            return Path(env_base)

        # scripts/regscan/config.py -> scripts/regscan -> scripts -> base
        current_file = Path(__file__).resolve()
        return current_file.parent.parent.parent

    def _load_config_file(self) -> None:
        """Load configuration from YAML file if it exists."""
        config_path = self._base_dir / "config" / "config.yaml"
        if config_path.exists():
            with open(config_path, "r", encoding="utf-8") as f:
                file_config = yaml.safe_load(f) or {}
                self._merge_config(file_config)

        self._config["paths"]["base_dir"] = str(self._base_dir)

    def _merge_config(self, new_config: Dict[str, Any]) -> None:
        """Deep merge new configuration into existing configuration."""
        for key, value in new_config.items():
            if key in self._config and isinstance(self._config[key], dict) and isinstance(value, dict):
                self._config[key].update(value)
            else:
                self._config[key] = value

    @property
    def base_dir(self) -> Path:
        """Get the base directory path."""
        return self._base_dir

    @property
    def database_path(self) -> Path:
        """Get the database file path."""
        return self._base_dir / self._config["paths"]["database"]

    @property
    def logs_dir(self) -> Path:
        """Get the logs directory path."""
        return self._base_dir / self._config["paths"]["logs"]

    def clamp_date_range(self, days: Optional[int]) -> int:
        """
        Validate a requested scan date range.

        Args:
            days: Requested number of days to look back.

        Returns:
            The requested value when within the allowed range, else the default.
        """
        low = self.get("scan.min_date_range_days", 1)
        high = self.get("scan.max_date_range_days", 60)
        if isinstance(days, int) and not isinstance(days, bool) and low <= days <= high:
            return days
        return self.get("scan.default_date_range_days", 14)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value by key.

        Supports dot notation for nested keys (e.g., 'scan.enrich_limit').
        """
        keys = key.split(".")
        value = self._config
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def reload(self) -> None:
        """Reload configuration from file."""
        self._config = copy.deepcopy(self.DEFAULTS)
        self._load_config_file()


# Global configuration instance
config = Config()
