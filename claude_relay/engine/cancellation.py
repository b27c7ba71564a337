"""Aborting running sessions.

Abort is a request, not a wait: the process gets SIGTERM right away
and a SIGKILL is scheduled on the event loop for when the grace period
runs out. The runner still observes the exit through its own path and
finds the registry entry already claimed.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from .lifecycle import TERMINAL_STATES
from .models import SessionStatus
from .session_registry import SessionRegistry

logger = logging.getLogger(__name__)

DEFAULT_GRACE_SECONDS = 5.0


def _force_kill(proc: Any, label: str) -> None:
    if proc.returncode is not None:
        return
    try:
        proc.kill()
        logger.warning(
            "Process for %s still running after grace period; sent SIGKILL (pid=%s)",
            label, proc.pid,
        )
    except ProcessLookupError:
        pass


def request_termination(
    proc: Any,
    grace_seconds: float = DEFAULT_GRACE_SECONDS,
    label: str = "session",
) -> asyncio.TimerHandle | None:
    """Send SIGTERM and schedule SIGKILL after ``grace_seconds``.

    Returns the escalation timer, or None if the process had already
    exited and nothing was sent.
    """
    if proc is None or proc.returncode is not None:
        return None
    try:
        proc.terminate()
    except ProcessLookupError:
        return None
    loop = asyncio.get_running_loop()
    return loop.call_later(grace_seconds, _force_kill, proc, label)


async def abort_session(
    registry: SessionRegistry,
    session_id: str,
    *,
    grace_seconds: float = DEFAULT_GRACE_SECONDS,
) -> bool:
    """Abort the session registered under ``session_id``.

    Returns False when no such session is registered. Safe to call on
    sessions that already finished.
    """
    entry = registry.get(session_id)
    if entry is None:
        logger.info("Session %s not found", session_id)
        return False

    try:
        logger.info("Aborting session %s", session_id)
        request_termination(entry.process, grace_seconds, session_id)

        if entry.status not in TERMINAL_STATES:
            entry.transition(SessionStatus.ABORTED)
        registry.remove(session_id, expected=entry)
        entry.release()
        return True
    except Exception:
        logger.exception("Error aborting session %s", session_id)
        return False
