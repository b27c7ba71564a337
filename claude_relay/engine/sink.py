"""Output sinks.

A sink is anything with ``send(event: dict)``; it may also expose
``set_session_id(session_id)`` to learn the real session id once the
assistant reports it. The runner never waits on a sink, and a sink
that raises must not break streaming.
"""
from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from .events import RelayEvent, event_to_dict

logger = logging.getLogger(__name__)


@runtime_checkable
class EventSink(Protocol):
    def send(self, event: dict[str, Any]) -> None: ...


class CollectingSink:
    """Sink that keeps every event in memory."""

    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []
        self.session_id: str | None = None

    def send(self, event: dict[str, Any]) -> None:
        self.events.append(event)

    def set_session_id(self, session_id: str) -> None:
        self.session_id = session_id

    @property
    def types(self) -> list[str]:
        return [e.get("type", "") for e in self.events]


def emit(sink: EventSink | None, event: RelayEvent) -> None:
    """Send an event to a sink, logging instead of raising on failure."""
    if sink is None:
        return
    try:
        sink.send(event_to_dict(event))
    except Exception:
        logger.warning(
            "Sink failed to accept %s event", event.event_type, exc_info=True,
        )


def bind_session(sink: EventSink | None, session_id: str) -> None:
    """Tell the sink its real session id, if it wants to know."""
    setter = getattr(sink, "set_session_id", None)
    if not callable(setter):
        return
    try:
        setter(session_id)
    except Exception:
        logger.warning("Sink failed to bind session %s", session_id, exc_info=True)
