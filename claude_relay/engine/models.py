"""Core data models for the relay engine.

Request options, results and session status. Single source of truth
to avoid circular imports.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SessionStatus(str, Enum):
    """Session lifecycle states. See lifecycle.py for transition rules."""
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    ABORTED = "aborted"
    ERRORED = "errored"


@dataclass
class ImageAttachment:
    """A binary attachment carried as a ``data:<mime>;base64,<payload>`` URI."""
    data: str


@dataclass
class QueryOptions:
    """Options for a single relayed prompt.

    ``session_id`` is None for a brand new conversation; otherwise the
    assistant is asked to resume that session.
    """
    session_id: str | None = None
    cwd: str | None = None
    model: str | None = None
    images: list[ImageAttachment] = field(default_factory=list)
    allowed_tools: list[str] = field(default_factory=list)
    disallowed_tools: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> QueryOptions:
        """Build options from the camelCase payload sent by clients."""
        data = data or {}
        images: list[ImageAttachment] = []
        for item in data.get("images") or []:
            if isinstance(item, dict) and isinstance(item.get("data"), str):
                images.append(ImageAttachment(data=item["data"]))
            elif isinstance(item, str):
                images.append(ImageAttachment(data=item))
        tools = data.get("toolsSettings") or {}
        return cls(
            session_id=data.get("sessionId") or None,
            cwd=data.get("cwd") or None,
            model=data.get("model") or None,
            images=images,
            allowed_tools=list(tools.get("allowedTools") or []),
            disallowed_tools=list(tools.get("disallowedTools") or []),
        )


@dataclass
class QueryResult:
    """Outcome of a relayed prompt that did not fail."""
    session_id: str | None
    exit_code: int | None = 0
    is_new_session: bool = False
    aborted: bool = False
