"""Runs the assistant CLI for one prompt and streams its output.

TERMINATION MODEL:

Every request ends exactly once, through whichever path claims its
SessionEntry first:

1. Natural exit: stdout reaches EOF, the process is reaped, and the
   runner claims its own entry. Exit code 0 emits ``claude-complete``;
   anything else emits ``claude-error`` and raises ClaudeProcessError.

2. Abort: abort_session() removes the entry and deletes temp files
   before the process has actually exited. When the runner later sees
   the exit, the entry is already aborted and it returns quietly with
   ``aborted=True``.

Claims go by entry identity, not by key: two requests resuming the
same session share a key, and the later one owns it in the registry.

Temp files are released through SessionEntry.release(), which is a
no-op the second time.
"""
from __future__ import annotations

import asyncio
import codecs
import logging
import os
import time
import uuid
from typing import Any

from .attachments import cleanup_temp_files, stage_attachments
from .cancellation import abort_session, request_termination
from .cli_args import build_cli_args
from .config import RelayConfig
from .errors import ClaudeProcessError, ClaudeSpawnError
from .events import (
    ClaudeComplete,
    ClaudeError,
    ClaudeResponse,
    SessionCreated,
    parse_output_line,
)
from .models import QueryOptions, QueryResult, SessionStatus
from .session_registry import SessionEntry, SessionRegistry
from .sink import EventSink, bind_session, emit

logger = logging.getLogger(__name__)

_STDERR_CHUNK = 4096


def make_provisional_id() -> str:
    """Registry key used until the assistant reports its session id."""
    return f"pending_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


async def read_line_unbounded(stream: asyncio.StreamReader) -> bytes:
    """Read a full line from *stream* with no size limit.

    Unlike ``StreamReader.readline()``, this will never raise
    ``LimitOverrunError``. Assistant output lines that embed whole
    file contents easily exceed the default 64 KiB buffer.
    """
    chunks: list[bytes] = []
    while True:
        try:
            chunks.append(await stream.readuntil(b"\n"))
            return b"".join(chunks)
        except asyncio.LimitOverrunError as exc:
            chunks.append(await stream.read(exc.consumed))
        except asyncio.IncompleteReadError as exc:
            # EOF before newline; return whatever is left.
            chunks.append(exc.partial)
            return b"".join(chunks)


class ClaudeCliRunner:
    """Spawns the assistant CLI per request and tracks it for abort.

    Each runner owns one SessionRegistry. Multiple queries may run
    concurrently as separate tasks on the same loop.
    """

    def __init__(
        self,
        config: RelayConfig | None = None,
        registry: SessionRegistry | None = None,
    ) -> None:
        self._config = config or RelayConfig()
        self._registry = registry if registry is not None else SessionRegistry()

    @property
    def config(self) -> RelayConfig:
        return self._config

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    # ── Administrative queries ──

    def is_session_active(self, session_id: str) -> bool:
        return self._registry.is_active(session_id)

    def get_active_sessions(self) -> list[str]:
        return self._registry.keys()

    async def abort_session(self, session_id: str) -> bool:
        return await abort_session(
            self._registry,
            session_id,
            grace_seconds=self._config.abort_grace_seconds,
        )

    async def shutdown(self) -> None:
        """Abort every registered session."""
        for session_id in self._registry.keys():
            await self.abort_session(session_id)

    # ── Query ──

    async def query(
        self,
        prompt: str,
        options: QueryOptions | None = None,
        sink: EventSink | None = None,
    ) -> QueryResult:
        """Relay ``prompt`` to the assistant and stream events to ``sink``.

        Raises ClaudeSpawnError if the process cannot be started or
        streaming fails, and ClaudeProcessError on a non-zero exit. A
        ``claude-error`` event is always sent before either is raised.
        """
        options = options or QueryOptions()
        requested_session_id = options.session_id
        captured_session_id = requested_session_id
        session_created_sent = False
        is_new_session = not requested_session_id and bool(prompt)
        cwd = options.cwd or self._config.default_cwd or os.getcwd()
        command = self._config.claude_command

        staged = stage_attachments(
            prompt, options.images, cwd, subdir=self._config.attachment_subdir,
        )
        args = build_cli_args(staged.prompt, options)

        logger.info("Spawning %s %s ...", command, " ".join(args[:4]))
        try:
            # create_subprocess_exec passes args as an array, no shell
            proc = await asyncio.create_subprocess_exec(
                command,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=os.environ.copy(),
            )
        except asyncio.CancelledError:
            cleanup_temp_files(staged.paths, staged.temp_dir)
            raise
        except OSError as exc:
            cleanup_temp_files(staged.paths, staged.temp_dir)
            error = ClaudeSpawnError(command, f"Failed to start '{command}': {exc}")
            logger.error("%s", error)
            emit(sink, ClaudeError(error=str(error)))
            raise error from exc

        key = requested_session_id or make_provisional_id()
        entry = SessionEntry(
            session_id=key,
            process=proc,
            temp_paths=staged.paths,
            temp_dir=staged.temp_dir,
        )
        self._registry.register(key, entry)
        entry.transition(SessionStatus.ACTIVE)
        logger.info("Claude process started for session %s (pid=%s)", key, proc.pid)

        stderr_parts: list[str] = []
        stderr_task = asyncio.create_task(
            self._drain_stderr(proc.stderr, stderr_parts)
        )

        try:
            while True:
                raw = await read_line_unbounded(proc.stdout)
                if not raw:
                    break
                line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                if not line.strip():
                    continue

                event = parse_output_line(line)
                if not isinstance(event, ClaudeResponse):
                    logger.debug("Non-JSON output: %s", line[:100])
                    emit(sink, event)
                    continue

                reported_id = event.session_id
                if reported_id and not captured_session_id:
                    captured_session_id = reported_id
                    if self._registry.rekey(key, reported_id):
                        key = reported_id
                    bind_session(sink, reported_id)
                    if not requested_session_id and not session_created_sent:
                        session_created_sent = True
                        emit(sink, SessionCreated(session_id=reported_id))

                emit(sink, event)
                self._log_cost(event.data)

            exit_code = await proc.wait()
            await stderr_task
        except asyncio.CancelledError:
            stderr_task.cancel()
            request_termination(proc, self._config.abort_grace_seconds, key)
            self._finish(entry, SessionStatus.ABORTED)
            raise
        except Exception as exc:
            stderr_task.cancel()
            request_termination(proc, self._config.abort_grace_seconds, key)
            if not self._finish(entry, SessionStatus.ERRORED):
                return QueryResult(
                    session_id=captured_session_id,
                    exit_code=proc.returncode,
                    is_new_session=is_new_session,
                    aborted=True,
                )
            error = ClaudeSpawnError(command, str(exc) or type(exc).__name__)
            logger.error("Claude process error for session %s: %s", key, error)
            emit(sink, ClaudeError(error=str(error)))
            raise error from exc

        logger.info("Claude process exited with code %s", exit_code)
        succeeded = exit_code == 0
        claimed = self._finish(
            entry, SessionStatus.COMPLETED if succeeded else SessionStatus.ERRORED,
        )
        if not claimed:
            logger.info("Session %s was aborted; not reporting exit", key)
            return QueryResult(
                session_id=captured_session_id,
                exit_code=exit_code,
                is_new_session=is_new_session,
                aborted=True,
            )

        if succeeded:
            emit(sink, ClaudeComplete(
                session_id=captured_session_id,
                exit_code=0,
                is_new_session=is_new_session,
            ))
            return QueryResult(
                session_id=captured_session_id,
                exit_code=0,
                is_new_session=is_new_session,
            )

        error = ClaudeProcessError(exit_code, "".join(stderr_parts))
        logger.error("Session %s failed: %s", key, error)
        emit(sink, ClaudeError(error=str(error)))
        raise error

    # ── Internals ──

    def _finish(self, entry: SessionEntry, status: SessionStatus) -> bool:
        """Claim this request's entry, mark it terminal and release its files.

        Returns False if another path (abort) already claimed it. The
        registry key is only dropped while it still points at this
        entry, since a concurrent resume of the same session may have
        registered its own entry under it.
        """
        if entry.released or entry.status is SessionStatus.ABORTED:
            return False
        self._registry.remove(entry.session_id, expected=entry)
        entry.transition(status)
        entry.release()
        return True

    @staticmethod
    async def _drain_stderr(
        stream: asyncio.StreamReader, parts: list[str],
    ) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = await stream.read(_STDERR_CHUNK)
            if not chunk:
                break
            text = decoder.decode(chunk)
            if text:
                parts.append(text)
                logger.debug("Claude stderr: %s", text.rstrip())
        tail = decoder.decode(b"", final=True)
        if tail:
            parts.append(tail)

    @staticmethod
    def _log_cost(message: dict[str, Any]) -> None:
        if message.get("type") == "result" and "total_cost_usd" in message:
            logger.info("Cost: $%s", message["total_cost_usd"])
