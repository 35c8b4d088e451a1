"""
Configuration management for DegFlow

This module provides configuration loading, validation, and management
for the DegFlow differential expression pipeline.
"""

from .config import (Config, get_default_config, load_config, save_config,
                     validate_config)

__all__ = [
    "Config",
    "load_config",
    "save_config",
    "validate_config",
    "get_default_config",
]
