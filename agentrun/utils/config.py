# agentrun/utils/config.py
"""
Config loader with caching and environment overrides.

- Reads ./config.yaml, or the file named by AGENTRUN_CONFIG, if present.
- Merges a small set of environment overrides on top.
- Returns a plain dict; typed access goes through
  `agentrun.schemas.settings.AppSettings.from_config`.
- Exposes reload_config() for tests.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, Tuple

import yaml

# plain child logger: setup_logger reads the level from this module
logger = logging.getLogger(__name__)

_CONFIG_CACHE: Dict[str, Any] | None = None

# env var -> (section, key, caster)
_ENV_OVERRIDES: Dict[str, Tuple[str, str, Callable[[str], Any]]] = {
    "AGENTRUN_LOG_LEVEL": ("logging", "level", str),
    "AGENTRUN_MAX_STEPS": ("agent", "max_steps", int),
    "AGENTRUN_MAX_DURATION_MS": ("agent", "max_duration_ms", int),
    "AGENTRUN_SANDBOX_ENABLED": (
        "sandbox",
        "enabled",
        lambda v: v.strip().lower() in ("1", "true", "yes", "on"),
    ),
    "AGENTRUN_SANDBOX_IMAGE": ("sandbox", "image", str),
    "AGENTRUN_WORKSPACE_ROOT": ("agent", "workspace_root", str),
}


def _config_path() -> Path:
    return Path(os.environ.get("AGENTRUN_CONFIG", "config.yaml"))


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            logger.warning("Ignoring %s: top level is not a mapping", path)
            return {}
        return data
    except (OSError, yaml.YAMLError) as e:
        logger.error("Failed to parse %s: %s", path, e)
        return {}


def _apply_env_overrides(cfg: Dict[str, Any]) -> Dict[str, Any]:
    for env_name, (section, key, cast) in _ENV_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if not raw:
            continue
        try:
            value = cast(raw)
        except ValueError:
            logger.warning("Ignoring invalid %s=%r", env_name, raw)
            continue
        block = dict(cfg.get(section) or {})
        block[key] = value
        cfg[section] = block
    return cfg


def get_config() -> Dict[str, Any]:
    global _CONFIG_CACHE
    if _CONFIG_CACHE is not None:
        return _CONFIG_CACHE

    cfg = _read_yaml(_config_path())
    cfg = _apply_env_overrides(cfg)
    _CONFIG_CACHE = cfg
    return _CONFIG_CACHE


def reload_config() -> Dict[str, Any]:
    """Clear cache and reload (primarily for tests)."""
    global _CONFIG_CACHE
    _CONFIG_CACHE = None
    return get_config()
