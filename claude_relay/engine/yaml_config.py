"""YAML configuration loader.

Overlays a ``relay:`` section on top of the environment-derived
configuration. When no YAML is provided, env vars work exactly as
before.

Example YAML:
    relay:
      claude_command: /usr/local/bin/claude
      default_cwd: /path/to/project
      abort_grace_seconds: 5
      attachment_subdir: .tmp/images
      host: 0.0.0.0
      port: 3010
      log_level: DEBUG
"""
from __future__ import annotations

import logging
from dataclasses import fields
from pathlib import Path

import yaml

from .config import RelayConfig

logger = logging.getLogger(__name__)

_COERCE = {
    "abort_grace_seconds": float,
    "port": int,
}


def load_yaml_config(path: str | Path, base: RelayConfig | None = None) -> RelayConfig:
    """Load a YAML file and return the resulting RelayConfig.

    Raises FileNotFoundError if the file is missing and ValueError if
    the document is not a mapping.
    """
    config_path = Path(path).expanduser()
    if not config_path.is_file():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")

    section = raw.get("relay", {}) or {}
    if not isinstance(section, dict):
        raise ValueError(f"'relay' section in {config_path} must be a mapping")

    config = base or RelayConfig.from_env()
    known = {f.name for f in fields(RelayConfig)}
    for key, value in section.items():
        if key not in known:
            logger.warning("Ignoring unknown relay config key %r in %s", key, config_path)
            continue
        coerce = _COERCE.get(key)
        if coerce is not None and value is not None:
            value = coerce(value)
        setattr(config, key, value)

    logger.info(
        "Loaded relay config from %s: command=%s cwd=%s",
        config_path, config.claude_command, config.default_cwd or "<process cwd>",
    )
    return config
