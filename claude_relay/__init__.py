"""claude-relay: stream the Claude Code CLI to live clients."""

__version__ = "0.1.0"
