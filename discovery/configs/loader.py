"""
Configuration loading and validation.

This module loads the packaged default YAML configuration, merges an
optional override file on top of it, and validates that weights and
bounds are consistent.
"""

import copy
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "default.yaml"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _read_yaml(filepath: Path) -> Dict[str, Any]:
    if not filepath.exists():
        raise FileNotFoundError(f"Configuration file not found: {filepath}")

    with open(filepath, "r") as f:
        config = yaml.safe_load(f)

    if config is None:
        raise ValueError(f"Configuration file is empty: {filepath}")
    if not isinstance(config, dict):
        raise ValueError(f"Configuration root must be a mapping: {filepath}")
    return config


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(filepath: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration, merging an optional override onto the defaults.

    Args:
        filepath: Path to a YAML file whose values override the packaged
            defaults. Only the keys present in the file are replaced.

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If the override file doesn't exist
        yaml.YAMLError: If YAML is invalid
    """
    config = _read_yaml(DEFAULT_CONFIG_PATH)

    if filepath is not None:
        logger.info(f"Loading configuration overrides from {filepath}")
        config = _deep_merge(config, _read_yaml(Path(filepath)))

    return config


def _check_weights(weights: Dict[str, float], name: str, issues: List[str]) -> None:
    if any(w < 0 for w in weights.values()):
        issues.append(f"{name} must be non-negative: {weights}")
    total = sum(weights.values())
    if abs(total - 1.0) > 0.01:
        issues.append(f"{name} don't sum to 1: {total}")


def validate_config(config: Dict[str, Any]) -> List[str]:
    """
    Validate configuration and return list of warnings/errors.

    Args:
        config: Configuration dictionary

    Returns:
        List of warning/error messages (empty if valid)
    """
    issues = []

    required_sections = ["ranking", "proximity", "group_fit", "cache", "service"]
    for section in required_sections:
        if section not in config:
            issues.append(f"Missing required section: {section}")

    if "ranking" in config:
        ranking = config["ranking"]
        _check_weights(ranking.get("person_weights", {}), "Person weights", issues)
        _check_weights(ranking.get("group_weights", {}), "Group weights", issues)

        min_score = ranking.get("min_score", 0.3)
        if not 0 <= min_score <= 1:
            issues.append(f"ranking.min_score must be in [0, 1], got {min_score}")

        max_limit = ranking.get("max_limit", 100)
        default_limit = ranking.get("default_limit", 20)
        if max_limit < 1:
            issues.append(f"ranking.max_limit must be positive, got {max_limit}")
        if default_limit > max_limit:
            issues.append(
                f"ranking.default_limit ({default_limit}) exceeds max_limit ({max_limit})"
            )

    if "proximity" in config:
        scale_km = config["proximity"].get("scale_km", 50.0)
        if scale_km <= 0:
            issues.append(f"proximity.scale_km must be positive, got {scale_km}")

    if "group_fit" in config:
        group_fit = config["group_fit"]
        for key in ("target_fill", "type_baseline", "out_of_range_factor"):
            value = group_fit.get(key, 0.5)
            if not 0 <= value <= 1:
                issues.append(f"group_fit.{key} must be in [0, 1], got {value}")

    if "cache" in config:
        for category, ttl in config["cache"].get("ttl_seconds", {}).items():
            if ttl <= 0:
                issues.append(f"cache.ttl_seconds.{category} must be positive, got {ttl}")

    if "service" in config:
        timeout = config["service"].get("nearby_timeout_seconds", 5.0)
        if timeout <= 0:
            issues.append(f"service.nearby_timeout_seconds must be positive, got {timeout}")

    return issues


def get_config_value(config: Dict[str, Any], path: str, default: Any = None) -> Any:
    """
    Get a nested configuration value using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "ranking.person_weights.similarity")
        default: Default value if path doesn't exist

    Returns:
        Configuration value or default
    """
    keys = path.split(".")
    value = config
    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default
    return value


def setup_logging(log_level: str = "INFO") -> None:
    """Configure the root logger for the engine."""
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)
