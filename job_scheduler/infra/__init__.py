"""
Infrastructure module - settings, logging, token provider, and job file source.
"""

from .logging_config import setup_logging
from .settings import Settings
from .token_provider import EnvTokenProvider, StaticTokenProvider
from .yaml_source import YamlJobSource

__all__ = [
    # logging
    "setup_logging",
    # settings
    "Settings",
    # token_provider
    "EnvTokenProvider",
    "StaticTokenProvider",
    # yaml_source
    "YamlJobSource",
]
