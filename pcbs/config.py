"""
Configuration management for the Pool Contract Billing System.

This module provides functions for loading and managing configuration settings,
including file-based and environment-specific overrides.
"""

import os
import copy
import json
import logging
from typing import Dict, Any
from pathlib import Path

logger = logging.getLogger(__name__)

# Default configuration
_DEFAULT_CONFIG = {
    "database": {
        "db_type": "sqlite",
        "db_path": str(Path.home() / ".pcbs" / "pcbs.db"),
        "echo": False
    },
    "document_processor": {
        # Number of leading lines searched for customer/job fields
        "location_scan_lines": 80,
        "package_name_max_length": 100
    },
    "fetch": {
        "allowed_hosts": ["l1.prodbx.com", "login.prodbx.com"],
        "timeout": 30.0,
        "user_agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
        "max_workers": 4
    },
    "analysis": {
        "amount_matching_tolerance": 0.01
    },
    "logging": {
        "level": "INFO",
        "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    }
}

# Global configuration dictionary
_CONFIG = None


def _load_config_file(config_path: str) -> Dict[str, Any]:
    """Load configuration from a JSON file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Configuration dictionary
    """
    try:
        with open(config_path, 'r') as f:
            return json.load(f)
    except (FileNotFoundError, json.JSONDecodeError) as e:
        logger.warning(f"Could not load config file {config_path}: {e}")
        return {}


def get_config() -> Dict[str, Any]:
    """Get the current configuration.

    Returns:
        Configuration dictionary
    """
    global _CONFIG

    if _CONFIG is None:
        # Start with default configuration
        _CONFIG = copy.deepcopy(_DEFAULT_CONFIG)

        # Look for configuration files in standard locations
        config_paths = [
            os.path.join(os.getcwd(), "pcbs.json"),
            os.path.join(str(Path.home()), ".pcbs", "config.json"),
            os.environ.get("PCBS_CONFIG", "")
        ]

        # Override with configuration from files
        for path in config_paths:
            if path and os.path.exists(path):
                file_config = _load_config_file(path)
                _merge_configs(_CONFIG, file_config)

        # Override with environment variables
        _apply_env_overrides(_CONFIG)

    return _CONFIG


def get_section(name: str) -> Dict[str, Any]:
    """Get a single configuration section, empty if missing."""
    return get_config().get(name, {})


def _merge_configs(base_config: Dict[str, Any], override_config: Dict[str, Any]) -> None:
    """Merge override configuration into base configuration.

    Args:
        base_config: Base configuration dictionary
        override_config: Override configuration dictionary
    """
    for key, value in override_config.items():
        if key in base_config and isinstance(base_config[key], dict) and isinstance(value, dict):
            _merge_configs(base_config[key], value)
        else:
            base_config[key] = value


def _apply_env_overrides(config: Dict[str, Any], prefix: str = "PCBS_") -> None:
    """Apply environment variable overrides to configuration.

    ``PCBS_FETCH__TIMEOUT=10`` sets ``config["fetch"]["timeout"]``.

    Args:
        config: Configuration dictionary
        prefix: Environment variable prefix
    """
    for env_var, env_value in os.environ.items():
        if not env_var.startswith(prefix) or env_var == "PCBS_CONFIG":
            continue

        # Remove prefix and split by double underscore to get nested keys
        keys = env_var[len(prefix):].lower().split("__")

        # Navigate to the correct nested dictionary
        current = config
        for key in keys[:-1]:
            if key not in current or not isinstance(current[key], dict):
                current[key] = {}
            current = current[key]

        current[keys[-1]] = _coerce_env_value(env_value)


def _coerce_env_value(env_value: str) -> Any:
    """Convert an environment string to int, float, bool or leave it as text."""
    if env_value.isdigit():
        return int(env_value)
    if env_value.replace(".", "", 1).isdigit() and env_value.count(".") == 1:
        return float(env_value)
    if env_value.lower() == "true":
        return True
    if env_value.lower() == "false":
        return False
    return env_value


def set_config(new_config: Dict[str, Any]) -> None:
    """Set a new configuration.

    Args:
        new_config: New configuration dictionary
    """
    global _CONFIG
    _CONFIG = copy.deepcopy(_DEFAULT_CONFIG)
    _merge_configs(_CONFIG, new_config)


def reset_config() -> None:
    """Reset configuration to default."""
    global _CONFIG
    _CONFIG = None
