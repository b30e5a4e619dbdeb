"""Configuration module for the discovery engine."""

from .loader import load_config, validate_config, get_config_value, setup_logging

__all__ = ["load_config", "validate_config", "get_config_value", "setup_logging"]
