"""Configuration loaded from environment variables.

All settings have sensible defaults. Override via RELAY_* env vars
or a YAML file (see yaml_config.py).
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from .attachments import DEFAULT_ATTACHMENT_SUBDIR

logger = logging.getLogger(__name__)


@dataclass
class RelayConfig:
    """Relay configuration."""

    # Assistant executable. Looked up on PATH at spawn time.
    claude_command: str = "claude"
    # Working directory for requests that do not pass one.
    # None means the relay's own working directory.
    default_cwd: str | None = None
    # Seconds between SIGTERM and SIGKILL when aborting a session.
    abort_grace_seconds: float = 5.0
    # Where staged image attachments go, relative to the request cwd.
    attachment_subdir: str = DEFAULT_ATTACHMENT_SUBDIR

    # WebSocket server
    host: str = "127.0.0.1"
    port: int = 3010

    # Logging
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> RelayConfig:
        """Load configuration from RELAY_* environment variables."""
        relay_vars = {
            k: v for k, v in os.environ.items() if k.startswith("RELAY_")
        }
        if relay_vars:
            logger.info(
                "RelayConfig.from_env: RELAY_* env overrides: %s",
                ", ".join(f"{k}={v}" for k, v in sorted(relay_vars.items())),
            )
        else:
            logger.debug("RelayConfig.from_env: no RELAY_* env vars set, using defaults")

        return cls(
            claude_command=os.getenv(
                "RELAY_CLAUDE_COMMAND", cls.claude_command
            ),
            default_cwd=os.getenv("RELAY_DEFAULT_CWD") or None,
            abort_grace_seconds=float(os.getenv(
                "RELAY_ABORT_GRACE", str(cls.abort_grace_seconds)
            )),
            attachment_subdir=os.getenv(
                "RELAY_ATTACHMENT_SUBDIR", cls.attachment_subdir
            ),
            host=os.getenv("RELAY_HOST", cls.host),
            port=int(os.getenv("RELAY_PORT", str(cls.port))),
            log_level=os.getenv("RELAY_LOG_LEVEL", cls.log_level),
        )
