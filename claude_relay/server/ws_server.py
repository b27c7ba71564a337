"""HTTP + WebSocket server for the relay.

Clients open ``/ws`` and send JSON messages; assistant output is
streamed back on the same socket as it is produced. Each connection
gets a WebSocketSink so that concurrent queries on one socket still
deliver their events in order.

Usage:
    claude-relay serve [--host HOST] [--port PORT]
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from typing import Any

from aiohttp import WSMsgType, web

from claude_relay.engine.config import RelayConfig
from claude_relay.engine.errors import RelayError
from claude_relay.engine.models import QueryOptions
from claude_relay.engine.runner import ClaudeCliRunner

logger = logging.getLogger(__name__)


class WebSocketSink:
    """Event sink that writes to an aiohttp WebSocket in send() order.

    send() only enqueues; a single writer task drains the queue so the
    runner never waits on the network.
    """

    def __init__(self, ws: web.WebSocketResponse) -> None:
        self._ws = ws
        self._queue: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue()
        self._closed = False
        self.session_id: str | None = None
        self._writer = asyncio.create_task(self._write_loop())

    def send(self, event: dict[str, Any]) -> None:
        if self._closed:
            logger.debug("Dropping %s event for closed socket", event.get("type"))
            return
        self._queue.put_nowait(event)

    def set_session_id(self, session_id: str) -> None:
        self.session_id = session_id

    async def close(self) -> None:
        """Flush queued events and stop the writer."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)
        await self._writer

    async def _write_loop(self) -> None:
        while True:
            event = await self._queue.get()
            if event is None:
                break
            if self._ws.closed:
                continue
            try:
                await self._ws.send_str(json.dumps(event))
            except Exception as exc:
                logger.debug(
                    "WebSocket send failed for %s event: %s", event.get("type"), exc,
                )


class RelayServer:
    """WebSocket front end for a ClaudeCliRunner.

    Thin adapter: all session state lives in the runner's registry.
    This class only handles routing and message dispatch.
    """

    def __init__(
        self,
        config: RelayConfig | None = None,
        runner: ClaudeCliRunner | None = None,
    ) -> None:
        self._config = config or RelayConfig()
        self._runner = runner or ClaudeCliRunner(self._config)
        self._started_at = time.time()
        self._tasks: set[asyncio.Task] = set()
        self._app = web.Application()
        self._app.on_shutdown.append(self._on_shutdown)
        self._setup_routes()
        logger.info(
            "RelayServer init host=%s port=%s command=%s pid=%s",
            self._config.host, self._config.port,
            self._config.claude_command, os.getpid(),
        )

    @property
    def app(self) -> web.Application:
        return self._app

    @property
    def runner(self) -> ClaudeCliRunner:
        return self._runner

    def _setup_routes(self) -> None:
        r = self._app.router
        r.add_get("/health", self._handle_health)
        r.add_get("/sessions", self._handle_list_sessions)
        r.add_get("/ws", self._handle_ws)

    # ── Lifecycle ──

    async def start(self) -> web.AppRunner:
        """Start listening. Returns the AppRunner for cleanup."""
        runner = web.AppRunner(self._app)
        await runner.setup()
        site = web.TCPSite(runner, self._config.host, self._config.port)
        await site.start()
        logger.info(
            "Relay server listening on %s:%d", self._config.host, self._config.port,
        )
        return runner

    async def serve_forever(self) -> None:
        runner = await self.start()
        try:
            await asyncio.Event().wait()
        finally:
            await runner.cleanup()

    async def _on_shutdown(self, app: web.Application) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self._runner.shutdown()

    # ── HTTP handlers ──

    async def _handle_health(self, request: web.Request) -> web.Response:
        return web.json_response({
            "status": "ok",
            "pid": os.getpid(),
            "uptime_seconds": round(max(0.0, time.time() - self._started_at), 3),
            "active_sessions": len(self._runner.get_active_sessions()),
        })

    async def _handle_list_sessions(self, request: web.Request) -> web.Response:
        return web.json_response({"sessions": self._runner.get_active_sessions()})

    async def _handle_ws(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse(heartbeat=30.0)
        await ws.prepare(request)
        sink = WebSocketSink(ws)
        logger.info("WebSocket client connected from %s", request.remote)

        try:
            async for msg in ws:
                if msg.type == WSMsgType.TEXT:
                    await self._dispatch(msg.data, sink)
                elif msg.type == WSMsgType.ERROR:
                    logger.warning("WebSocket error: %s", ws.exception())
        finally:
            await sink.close()
            logger.info("WebSocket client disconnected from %s", request.remote)
        return ws

    # ── Message dispatch ──

    async def _dispatch(self, raw: str, sink: WebSocketSink) -> None:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            sink.send({"type": "error", "error": "Invalid JSON message"})
            return
        if not isinstance(data, dict):
            sink.send({"type": "error", "error": "Message must be a JSON object"})
            return

        msg_type = data.get("type")
        if msg_type == "claude-command":
            options = QueryOptions.from_dict(data.get("options"))
            self._start_query(data.get("command") or "", options, sink)
        elif msg_type == "abort-session":
            session_id = data.get("sessionId")
            success = bool(session_id) and await self._runner.abort_session(session_id)
            sink.send({
                "type": "session-aborted",
                "sessionId": session_id,
                "success": success,
            })
        elif msg_type == "check-session-status":
            session_id = data.get("sessionId")
            sink.send({
                "type": "session-status",
                "sessionId": session_id,
                "isProcessing": bool(session_id)
                and self._runner.is_session_active(session_id),
            })
        elif msg_type == "get-active-sessions":
            sink.send({
                "type": "active-sessions",
                "sessions": self._runner.get_active_sessions(),
            })
        else:
            sink.send({"type": "error", "error": f"Unknown message type: {msg_type}"})

    def _start_query(
        self, command: str, options: QueryOptions, sink: WebSocketSink,
    ) -> None:
        task = asyncio.create_task(self._run_query(command, options, sink))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_query(
        self, command: str, options: QueryOptions, sink: WebSocketSink,
    ) -> None:
        try:
            await self._runner.query(command, options, sink)
        except RelayError as exc:
            # Already reported to the client as claude-error.
            logger.warning("Query failed: %s", exc)
