"""Hierarchical configuration loading.

A run file only needs to state what differs from ``config/defaults.yml``;
the two are deep-merged and validated into a RunConfig.
"""

import copy
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from config.schema import RunConfig, load_defaults, validate_run_config


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge override dict into base dict.

    Values in override take precedence. Nested dicts are merged recursively.

    Args:
        base: Base configuration dictionary
        override: Override configuration dictionary

    Returns:
        Merged configuration dictionary
    """
    result = copy.deepcopy(base)

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_yaml_config(config_path: Path) -> Dict[str, Any]:
    """Load YAML configuration file."""
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r') as f:
        return yaml.safe_load(f) or {}


def load_run_config(config_path: Optional[Path] = None) -> RunConfig:
    """Load a run file merged over the package defaults.

    Args:
        config_path: YAML run file. If None, only the defaults are used.

    Returns:
        Validated RunConfig
    """
    merged = load_defaults()
    if config_path is not None:
        merged = deep_merge(merged, load_yaml_config(Path(config_path)))
    return validate_run_config(merged)
