import asyncio
import logging
from typing import Optional

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from messenger.utils.realtime_bus import Subscription


logger = logging.getLogger(__name__)


class ConnectionManager:

    async def _forward(self, websocket: WebSocket, subscription: Subscription) -> None:
        async for event in subscription:
            payload = event.model_dump_json() if isinstance(event, BaseModel) else str(event)
            await websocket.send_text(payload)

    async def stream(self, user_id: str, websocket: WebSocket, subscription: Subscription) -> None:
        """Push every event of ``subscription`` to ``websocket`` until the client goes away.

        The subscription is closed on every exit path, including a failed handshake.
        """
        forward_task: Optional[asyncio.Task] = None
        try:
            await websocket.accept()
            forward_task = asyncio.create_task(self._forward(websocket, subscription))
            # subscribers only listen; reading is how a disconnect is noticed
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.info("Subscriber %s disconnected from %s", user_id, subscription.channel)
        finally:
            await subscription.close()
            if forward_task is not None:
                forward_task.cancel()
                try:
                    await forward_task
                except asyncio.CancelledError:
                    pass
                except Exception:
                    logger.exception("Forwarding %s events to %s failed", subscription.channel, user_id)
