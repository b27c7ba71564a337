"""Argument vector for the assistant CLI.

The process is always launched in non-interactive print mode with
line-delimited JSON output. Arguments are passed as a list to
create_subprocess_exec, never through a shell.
"""
from __future__ import annotations

from .models import QueryOptions

BASE_ARGS = ("--print", "--output-format", "stream-json")


def build_cli_args(prompt: str, options: QueryOptions | None = None) -> list[str]:
    """Map a prompt and request options to CLI arguments.

    The prompt is always the last element.
    """
    options = options or QueryOptions()
    args = list(BASE_ARGS)

    if options.session_id:
        args.extend(["--resume", options.session_id])

    if options.allowed_tools:
        args.extend(["--allowedTools", ",".join(options.allowed_tools)])

    if options.disallowed_tools:
        args.extend(["--disallowedTools", ",".join(options.disallowed_tools)])

    if options.model:
        args.extend(["--model", options.model])

    args.append(prompt)
    return args
