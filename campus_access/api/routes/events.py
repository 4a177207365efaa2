# =======================================================================================
# campus_access/api/routes/events.py - Real-time Event Stream
# =======================================================================================
import asyncio
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from ...config import config
from ...services.notifier import EventNotifier
from ..dependencies import get_notifier

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def event_stream(websocket: WebSocket, notifier: EventNotifier = Depends(get_notifier)):
    """Push every published event to the client until it disconnects."""
    await websocket.accept()
    queue: "asyncio.Queue[dict]" = asyncio.Queue(maxsize=config.WS_QUEUE_SIZE)
    token = notifier.queue_subscriber(asyncio.get_running_loop(), queue)
    logger.info("Dashboard client connected (%s subscribers)", notifier.subscriber_count)

    async def _forward():
        while True:
            await websocket.send_json(await queue.get())

    sender = asyncio.create_task(_forward())
    try:
        while True:
            # client messages are ignored; receiving is how a close is noticed
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("Dashboard client disconnected")
    finally:
        notifier.unsubscribe(token)
        sender.cancel()
        await asyncio.wait([sender])
        if not sender.cancelled() and sender.exception() is not None:
            logger.warning("Dashboard client send failed: %s", sender.exception())
