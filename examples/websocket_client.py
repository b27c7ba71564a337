#!/usr/bin/env python3
"""Example client for the relay WebSocket server.

Start the server first:

    claude-relay serve --port 3010

then run:

    python examples/websocket_client.py "Summarize README.md"

Events are printed as they arrive. Ctrl-C sends abort-session for the
session the relay reported.
"""

import asyncio
import json
import sys

import aiohttp


async def main(prompt: str, url: str = "http://127.0.0.1:3010/ws") -> None:
    session_id = None
    async with aiohttp.ClientSession() as http:
        async with http.ws_connect(url) as ws:
            await ws.send_json({
                "type": "claude-command",
                "command": prompt,
                "options": {"toolsSettings": {"allowedTools": ["Read", "Grep", "Glob"]}},
            })
            try:
                async for msg in ws:
                    if msg.type != aiohttp.WSMsgType.TEXT:
                        break
                    event = json.loads(msg.data)
                    print(json.dumps(event, indent=2))
                    if event["type"] == "session-created":
                        session_id = event["sessionId"]
                    if event["type"] in ("claude-complete", "claude-error"):
                        break
            except asyncio.CancelledError:
                if session_id:
                    await ws.send_json({"type": "abort-session", "sessionId": session_id})
                raise


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("usage: websocket_client.py PROMPT")
        sys.exit(1)
    try:
        asyncio.run(main(sys.argv[1]))
    except KeyboardInterrupt:
        print("\nInterrupted.")
