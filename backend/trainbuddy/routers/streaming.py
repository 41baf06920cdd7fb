"""Bridge store listeners (called from any thread) onto a WebSocket."""
import asyncio
import logging
from typing import Any, Callable, Optional

from fastapi import WebSocket, WebSocketDisconnect, status
from starlette.concurrency import run_in_threadpool

from trainbuddy.identity.provider import Identity, IdentityProvider

logger = logging.getLogger(__name__)

Push = Callable[[dict[str, Any]], None]


async def accept_with_token(websocket: WebSocket, provider: IdentityProvider, token: Optional[str]) -> Optional[Identity]:
    """Accept the socket for a valid token, otherwise refuse it and return None."""
    identity = await run_in_threadpool(provider.resolve, token)
    if identity is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None
    await websocket.accept()
    return identity


async def stream(websocket: WebSocket, subscribe: Callable[[Push], Any], cancel: Callable[[Any], None]) -> None:
    """Forward every pushed payload as a JSON frame until either side stops.

    A payload with ``"type": "error"`` is sent and then ends the stream.
    """
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def push(payload: dict[str, Any]) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, payload)

    handle = await run_in_threadpool(subscribe, push)
    failed = False

    async def sender():
        nonlocal failed
        while True:
            payload = await queue.get()
            await websocket.send_json(payload)
            if payload.get("type") == "error":
                failed = True
                return

    async def receiver():
        while True:
            await websocket.receive_text()

    tasks = [asyncio.create_task(sender()), asyncio.create_task(receiver())]
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                raise exc
    finally:
        cancel(handle)
    if failed:
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
