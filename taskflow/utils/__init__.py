"""Utilities for taskflow."""

from .config_manager import ConfigManager

__all__ = [
    'ConfigManager',
]
