"""End-to-end runner tests against a real child process.

A small Python script stands in for the assistant executable.
"""
from __future__ import annotations

import asyncio
import os
import stat
import sys
import textwrap

import pytest

from claude_relay.engine.config import RelayConfig
from claude_relay.engine.errors import ClaudeProcessError
from claude_relay.engine.models import QueryOptions
from claude_relay.engine.runner import ClaudeCliRunner
from claude_relay.engine.sink import CollectingSink

from fakes import wait_until

pytestmark = pytest.mark.skipif(
    sys.platform == "win32", reason="needs POSIX signals and shebang scripts",
)


def _fake_claude(tmp_path, body: str) -> str:
    script = tmp_path / "fake-claude"
    script.write_text(
        f"#!{sys.executable}\n" + textwrap.dedent(body), encoding="utf-8",
    )
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(script)


def _runner(tmp_path, command: str) -> ClaudeCliRunner:
    return ClaudeCliRunner(RelayConfig(
        claude_command=command,
        default_cwd=str(tmp_path),
        abort_grace_seconds=2.0,
    ))


@pytest.mark.asyncio
async def test_streams_real_process_output(tmp_path):
    command = _fake_claude(tmp_path, """
        import json, sys
        print(json.dumps({"session_id": "real-1", "type": "system", "argv": sys.argv[1:]}), flush=True)
        print("plain text", flush=True)
        print(json.dumps({"type": "result", "total_cost_usd": 0.01}), flush=True)
    """)
    runner = _runner(tmp_path, command)
    sink = CollectingSink()

    result = await runner.query("hello world", QueryOptions(model="opus"), sink)

    assert result.session_id == "real-1"
    assert sink.types == [
        "session-created",
        "claude-response",
        "claude-response",
        "claude-response",
        "claude-complete",
    ]
    argv = sink.events[1]["data"]["argv"]
    assert argv == [
        "--print", "--output-format", "stream-json", "--model", "opus", "hello world",
    ]
    assert sink.events[2]["data"]["content"][0]["text"] == "plain text"


@pytest.mark.asyncio
async def test_real_process_failure_carries_stderr(tmp_path):
    command = _fake_claude(tmp_path, """
        import sys
        sys.stderr.write("boom")
        sys.exit(2)
    """)
    runner = _runner(tmp_path, command)
    sink = CollectingSink()

    with pytest.raises(ClaudeProcessError) as excinfo:
        await runner.query("hello", QueryOptions(), sink)

    assert excinfo.value.exit_code == 2
    assert "boom" in str(excinfo.value)
    assert sink.types == ["claude-error"]


@pytest.mark.asyncio
async def test_abort_real_process(tmp_path):
    command = _fake_claude(tmp_path, """
        import json, time
        print(json.dumps({"session_id": "real-2", "type": "system"}), flush=True)
        time.sleep(60)
    """)
    runner = _runner(tmp_path, command)
    sink = CollectingSink()

    task = asyncio.create_task(runner.query("hello", QueryOptions(), sink))
    await wait_until(lambda: runner.is_session_active("real-2"), timeout=10)

    assert await runner.abort_session("real-2") is True
    result = await asyncio.wait_for(task, timeout=10)

    assert result.aborted is True
    assert result.exit_code != 0
    assert runner.get_active_sessions() == []
    assert sink.types == ["session-created", "claude-response"]


@pytest.mark.asyncio
async def test_runs_in_requested_cwd(tmp_path):
    workdir = tmp_path / "project"
    workdir.mkdir()
    command = _fake_claude(tmp_path, """
        import json, os
        print(json.dumps({"session_id": "s", "cwd": os.getcwd()}), flush=True)
    """)
    runner = _runner(tmp_path, command)
    sink = CollectingSink()

    await runner.query("hi", QueryOptions(cwd=str(workdir)), sink)

    assert os.path.samefile(sink.events[1]["data"]["cwd"], workdir)
