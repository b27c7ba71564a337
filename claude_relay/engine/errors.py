"""Exception hierarchy for the relay engine.

Only process-level failures surface to callers. Attachment staging,
cleanup and sink delivery problems are logged where they happen.
"""
from __future__ import annotations


class RelayError(Exception):
    """Base exception for all relay errors."""


class ClaudeSpawnError(RelayError):
    """The assistant process could not be started or failed while streaming."""
    def __init__(self, command: str, reason: str):
        self.command = command
        self.reason = reason
        super().__init__(reason)


class ClaudeProcessError(RelayError):
    """The assistant process exited with a non-zero code."""
    def __init__(self, exit_code: int | None, stderr: str):
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"Claude exited with code {exit_code}: {stderr}")
