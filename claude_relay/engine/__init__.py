"""Relay engine: spawn the assistant CLI, stream its output, abort on request."""
from .models import (
    ImageAttachment,
    QueryOptions,
    QueryResult,
    SessionStatus,
)
from .config import RelayConfig
from .errors import ClaudeProcessError, ClaudeSpawnError, RelayError
from .events import (
    ClaudeComplete,
    ClaudeError,
    ClaudeResponse,
    RawTextResponse,
    RelayEvent,
    SessionCreated,
    event_to_dict,
    parse_output_line,
)
from .session_registry import SessionEntry, SessionRegistry
from .sink import CollectingSink, EventSink

__all__ = [
    # Runner (lazy import)
    "ClaudeCliRunner",
    # Models
    "ImageAttachment",
    "QueryOptions",
    "QueryResult",
    "SessionStatus",
    "SessionEntry",
    "SessionRegistry",
    # Config
    "RelayConfig",
    "load_yaml_config",
    # Events and sinks
    "RelayEvent",
    "SessionCreated",
    "ClaudeResponse",
    "RawTextResponse",
    "ClaudeComplete",
    "ClaudeError",
    "event_to_dict",
    "parse_output_line",
    "EventSink",
    "CollectingSink",
    # Errors
    "RelayError",
    "ClaudeSpawnError",
    "ClaudeProcessError",
]


def __getattr__(name: str):
    if name == "ClaudeCliRunner":
        from .runner import ClaudeCliRunner
        return ClaudeCliRunner
    if name == "load_yaml_config":
        from .yaml_config import load_yaml_config
        return load_yaml_config
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
