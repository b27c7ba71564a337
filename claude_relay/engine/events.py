"""Events forwarded to the output sink.

Each event is a typed dataclass; event_to_dict() turns it into the
JSON shape clients expect. Lines from the assistant that are not JSON
objects become RawTextResponse rather than being dropped.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Union


@dataclass
class RelayEvent:
    """Base event sent to a sink."""
    event_type: str = ""


@dataclass
class SessionCreated(RelayEvent):
    event_type: str = "session-created"
    session_id: str = ""


@dataclass
class ClaudeResponse(RelayEvent):
    """A structured line from the assistant, passed through untouched."""
    event_type: str = "claude-response"
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def session_id(self) -> str | None:
        value = self.data.get("session_id")
        return value if isinstance(value, str) and value else None


@dataclass
class RawTextResponse(RelayEvent):
    """A line that did not parse as a JSON object."""
    event_type: str = "claude-response"
    text: str = ""


@dataclass
class ClaudeComplete(RelayEvent):
    event_type: str = "claude-complete"
    session_id: str | None = None
    exit_code: int = 0
    is_new_session: bool = False


@dataclass
class ClaudeError(RelayEvent):
    event_type: str = "claude-error"
    error: str = ""


OutputEvent = Union[ClaudeResponse, RawTextResponse]


def parse_output_line(line: str) -> OutputEvent:
    """Parse one stdout line from the assistant."""
    try:
        message = json.loads(line)
    except (json.JSONDecodeError, ValueError):
        return RawTextResponse(text=line)
    if not isinstance(message, dict):
        return RawTextResponse(text=line)
    return ClaudeResponse(data=message)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def event_to_dict(event: RelayEvent) -> dict[str, Any]:
    """Convert a typed event to the wire dict (camelCase keys, ``type`` tag)."""
    if isinstance(event, RawTextResponse):
        return {
            "type": event.event_type,
            "data": {
                "type": "assistant",
                "content": [{"type": "text", "text": event.text}],
            },
        }
    if isinstance(event, ClaudeResponse):
        return {"type": event.event_type, "data": event.data}

    d: dict[str, Any] = {"type": event.event_type}
    for name in event.__dataclass_fields__:
        if name == "event_type":
            continue
        d[_camel(name)] = getattr(event, name)
    return d
