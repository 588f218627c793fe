"""
Configuration package for PAM CLI.

This package contains the configuration record, the layered resolver that
builds it, and the .env loader that runs before resolution.
"""

from .resolver import ConfigResolver, ConfigSource
from .settings import PamConfig, CliSecrets

__all__ = ["ConfigResolver", "ConfigSource", "PamConfig", "CliSecrets"]
