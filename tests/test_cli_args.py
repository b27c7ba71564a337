"""Tests for the assistant CLI argument builder."""
from __future__ import annotations

from claude_relay.engine.cli_args import build_cli_args
from claude_relay.engine.models import QueryOptions


def test_minimal_args():
    assert build_cli_args("hello") == [
        "--print", "--output-format", "stream-json", "hello",
    ]


def test_full_args_in_order():
    options = QueryOptions(
        session_id="sess-1",
        model="sonnet",
        allowed_tools=["Read", "Bash(git log:*)"],
        disallowed_tools=["Write"],
    )
    assert build_cli_args("do it", options) == [
        "--print", "--output-format", "stream-json",
        "--resume", "sess-1",
        "--allowedTools", "Read,Bash(git log:*)",
        "--disallowedTools", "Write",
        "--model", "sonnet",
        "do it",
    ]


def test_empty_lists_omitted():
    args = build_cli_args("x", QueryOptions(allowed_tools=[], disallowed_tools=[]))
    assert "--allowedTools" not in args
    assert "--disallowedTools" not in args
    assert "--resume" not in args
    assert "--model" not in args


def test_prompt_is_not_escaped():
    prompt = "--model evil; rm -rf / \"quoted\" $HOME"
    args = build_cli_args(prompt, QueryOptions(model="opus"))
    assert args[-1] == prompt
    assert args.count("--model") == 1
