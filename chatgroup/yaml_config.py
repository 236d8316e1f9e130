"""YAML configuration loader.

Example YAML:
    client:
      base_url: https://chat.example.com
      reconnect_delay_seconds: 1.5
      max_inline_diff_files: 120
      log_file: ${HOME}/.chatgroup/client.log

Values overlay :meth:`ClientConfig.from_env`; unknown keys are logged
and ignored.
"""
from __future__ import annotations

import logging
import os
from dataclasses import fields, replace
from pathlib import Path
from typing import Any

import yaml

from chatgroup.config import ClientConfig

logger = logging.getLogger(__name__)


def _expand(value: Any) -> Any:
    if isinstance(value, str):
        return os.path.expandvars(value)
    return value


def _coerce(value: Any, default: Any) -> Any:
    if value is None:
        if default is None:
            return None
        raise ValueError("null is only allowed for optional settings")
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    return str(value)


def load_yaml_config(path: str | Path) -> ClientConfig:
    """Load the ``client`` section of a YAML config file."""
    path = Path(path)
    logger.info("load_yaml_config: loading %s (exists=%s)", path, path.exists())
    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.error("load_yaml_config: config file not found at %s", path.absolute())
        raise
    except yaml.YAMLError as exc:
        logger.error("load_yaml_config: YAML parse error in %s: %s", path, exc)
        raise

    config = ClientConfig.from_env()
    section = raw.get("client") if isinstance(raw, dict) else None
    if not isinstance(section, dict):
        logger.warning("load_yaml_config: no 'client' section in %s; using env/defaults", path)
        return config

    known = {f.name: f.default for f in fields(ClientConfig)}
    updates: dict[str, Any] = {}
    for key, value in section.items():
        if key not in known:
            logger.warning("load_yaml_config: ignoring unknown key client.%s", key)
            continue
        try:
            updates[key] = _coerce(_expand(value), known[key])
        except (TypeError, ValueError):
            logger.warning("load_yaml_config: invalid value for client.%s: %r", key, value)
    if updates:
        logger.info("load_yaml_config: overriding %s", ", ".join(sorted(updates)))
    return replace(config, **updates)
