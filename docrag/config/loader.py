"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ──────────────────────────────────────────
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. .env file           - Local developer defaults (not committed)
#   2. config/config.yaml  - Static defaults checked into the repo
#   3. Environment vars    - Set at deploy time
#
# The YAML file is sectioned (chunking:, extraction:, embedding: ...).
# build_settings() flattens those sections into Settings field names and
# lets any environment variable win over the YAML value.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

from docrag.config.settings import Settings
from docrag.utils.errors import ConfigurationError


def load_config(path: str = "config/config.yaml") -> dict:
    """Load the sectioned YAML config, returning ``{}`` when it is absent.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        The parsed configuration dictionary.
    """
    config_path = Path(path)
    if not config_path.exists():
        return {}
    try:
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Cannot parse {config_path}: {exc}") from exc
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"{config_path} must contain a mapping at top level")
    return loaded


def build_settings(
    path: str = "config/config.yaml",
    overrides: dict[str, Any] | None = None,
) -> Settings:
    """Resolve :class:`Settings` from YAML defaults, env vars and *overrides*.

    YAML values only fill fields that no environment variable sets, so the
    documented priority (env > yaml > .env > field default) holds.
    """
    yaml_values = _flatten_sections(load_config(path))
    known = set(Settings.model_fields)
    init_values = {
        key: value
        for key, value in yaml_values.items()
        if key in known and key.upper() not in os.environ
    }
    _deep_merge(init_values, overrides or {})
    try:
        return Settings(**init_values)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


def _flatten_sections(config: dict) -> dict[str, Any]:
    """Lift ``section: {key: value}`` pairs to top-level ``key: value``."""
    flat: dict[str, Any] = {}
    for key, value in config.items():
        if isinstance(value, dict):
            flat.update(_flatten_sections(value))
        else:
            flat[key] = value
    return flat


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
