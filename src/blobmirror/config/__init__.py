"""
Configuration management: config.yaml parsing and environment resolution.
"""

from blobmirror.config.loader import DEFAULT_CONFIG, Config, load_config
from blobmirror.config.resolver import resolve_config

__all__ = [
    "load_config",
    "Config",
    "DEFAULT_CONFIG",
    "resolve_config",
]
