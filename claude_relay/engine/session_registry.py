"""In-memory registry of running assistant processes.

One entry per logical session, keyed by session id. A request that
starts a new conversation is registered under a provisional id until
the assistant reports its real one, at which point the entry is moved
to the new key.

All operations are synchronous dict mutations, so under asyncio each
one is atomic with respect to other tasks. A threaded host would need
a lock around them.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterator

from .attachments import cleanup_temp_files
from .lifecycle import validate_transition
from .models import SessionStatus

logger = logging.getLogger(__name__)


@dataclass
class SessionEntry:
    """A running assistant process and the temp files it owns."""
    session_id: str
    process: asyncio.subprocess.Process | Any
    start_time: float = field(default_factory=time.monotonic)
    status: SessionStatus = SessionStatus.PENDING
    temp_paths: list[str] = field(default_factory=list)
    temp_dir: str | None = None
    _released: bool = field(default=False, repr=False)

    def transition(self, target: SessionStatus) -> None:
        validate_transition(self.status, target)
        logger.debug(
            "Session %s: %s -> %s",
            self.session_id, self.status.value, target.value,
        )
        self.status = target

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> bool:
        """Delete owned temp files. Returns False if already released."""
        if self._released:
            return False
        self._released = True
        cleanup_temp_files(self.temp_paths, self.temp_dir)
        return True


class SessionRegistry:
    """Session id -> SessionEntry map, owned by a runner."""

    def __init__(self) -> None:
        self._entries: dict[str, SessionEntry] = {}

    def register(self, session_id: str, entry: SessionEntry) -> None:
        if session_id in self._entries:
            logger.warning("Overwriting registry entry for session %s", session_id)
        entry.session_id = session_id
        self._entries[session_id] = entry

    def get(self, session_id: str) -> SessionEntry | None:
        return self._entries.get(session_id)

    def remove(
        self, session_id: str, expected: SessionEntry | None = None,
    ) -> SessionEntry | None:
        """Remove and return the entry, or None if it is already gone.

        With ``expected``, the key is only removed while it still maps
        to that exact entry; a newer request registered under the same
        id is left alone.
        """
        current = self._entries.get(session_id)
        if current is None:
            return None
        if expected is not None and current is not expected:
            return None
        return self._entries.pop(session_id)

    def rekey(self, old_id: str, new_id: str) -> bool:
        """Move an entry from a provisional id to its real id.

        Returns False if nothing is registered under ``old_id`` (for
        example because the session was aborted in the meantime).
        """
        if old_id == new_id:
            return old_id in self._entries
        entry = self._entries.pop(old_id, None)
        if entry is None:
            return False
        if new_id in self._entries:
            logger.warning("Overwriting registry entry for session %s", new_id)
        entry.session_id = new_id
        self._entries[new_id] = entry
        logger.debug("Rekeyed session %s -> %s", old_id, new_id)
        return True

    def is_active(self, session_id: str) -> bool:
        entry = self._entries.get(session_id)
        return entry is not None and entry.status is SessionStatus.ACTIVE

    def keys(self) -> list[str]:
        """Snapshot of registered session ids."""
        return list(self._entries.keys())

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())
