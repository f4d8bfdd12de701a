# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/byohost/config/loader.py

import logging
import os
from pathlib import Path

import yaml

from .models import BYOH_HOME, ByohConfig

log = logging.getLogger("byohost")

DEFAULT_CONFIG_PATH = BYOH_HOME / "byoh.yaml"


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Recursively merge *override* into *base* (mutates base).
    Only overwrites when the override value is non-empty.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            _deep_merge(base[key], value)
        else:
            if value not in (None, ""):
                base[key] = value
    return base


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    raw = path.read_text()
    expanded = os.path.expandvars(raw)
    return yaml.safe_load(expanded) or {}


def find_config_file(path: str | Path | None = None) -> Path | None:
    """
    Locate the config file using this priority:

    1. explicit path (``--config``)
    2. BYOH_CONFIG environment variable
    3. ~/.byoh/byoh.yaml
    """
    if path:
        return Path(path)

    env = os.environ.get("BYOH_CONFIG")
    if env:
        p = Path(env)
        if p.is_file():
            return p
        log.warning(f"BYOH_CONFIG={env} does not exist, using defaults")
        return None

    if DEFAULT_CONFIG_PATH.is_file():
        return DEFAULT_CONFIG_PATH
    return None


def load_config(path: str | Path | None = None) -> ByohConfig:
    """
    Load and validate the agent/operator config.

    Values from the file are deep-merged over the built-in defaults, so a
    file only needs the keys it changes. ``${ENV_VAR}`` placeholders are
    resolved at load time.
    """
    data = ByohConfig().model_dump(mode="json")

    cfg_path = find_config_file(path)
    if cfg_path is None:
        log.debug("No config file found, using defaults")
    else:
        log.debug(f"Loading config from {cfg_path}")
        _deep_merge(data, _load_yaml(cfg_path))

    return ByohConfig.model_validate(data)
