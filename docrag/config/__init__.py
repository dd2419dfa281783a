"""Configuration module - exports Settings and the YAML-aware loaders."""

from docrag.config.loader import build_settings, load_config
from docrag.config.settings import Settings

__all__ = ["Settings", "build_settings", "load_config"]
