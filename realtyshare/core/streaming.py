import logging
from typing import Any, Awaitable, Callable, Optional

import anyio
from fastapi import WebSocket, status
from fastapi.encoders import jsonable_encoder
from fastapi.websockets import WebSocketState


logger = logging.getLogger(__name__)


async def stream_until_disconnect(
    websocket: WebSocket,
    source,
    render: Optional[Callable[[Any], Any]] = None,
    on_message: Optional[Callable[[str], Awaitable[None]]] = None,
):
    """
    Push every item of ``source`` to an accepted socket until either side
    goes away. ``source`` is cancelled on the way out so its hub listener is
    released, also when the handler itself is being cancelled.
    """
    close_code = None

    async def pump(scope: anyio.CancelScope):
        nonlocal close_code
        async for item in source:
            payload = render(item) if render is not None else item
            await websocket.send_json(jsonable_encoder(payload))
        # Source ended on our side (e.g. session closed at logout).
        close_code = status.WS_1000_NORMAL_CLOSURE
        scope.cancel()

    async def receive(scope: anyio.CancelScope):
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            if on_message is not None and message.get("text") is not None:
                await on_message(message["text"])
        scope.cancel()

    try:
        async with anyio.create_task_group() as tg:
            tg.start_soon(pump, tg.cancel_scope)
            tg.start_soon(receive, tg.cancel_scope)
    except Exception as error:
        logger.error(f"stream_failed path={websocket.url.path} error={error!r}")
        close_code = status.WS_1011_INTERNAL_ERROR
    finally:
        with anyio.CancelScope(shield=True):
            if hasattr(source, "cancel"):
                source.cancel()
            elif hasattr(source, "aclose"):
                await source.aclose()

    if close_code is not None and websocket.client_state == WebSocketState.CONNECTED:
        await websocket.close(code=close_code)
