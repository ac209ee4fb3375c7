"""Live location socket"""

import logging
import time

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from ..schemas import LocationUpdate, SocketMessage
from ..services import ConnectionRegistry, SessionWorkerPool

router = APIRouter()
logger = logging.getLogger(__name__)

LOCATION_UPDATE = "LOCATION_UPDATE"


@router.websocket("/ws")
async def location_socket(websocket: WebSocket, user_id: str | None = None):
    """Receive LOCATION_UPDATE messages and hand them to the session workers"""
    if not user_id:
        await websocket.close(code=4401, reason="user_id required")
        return

    registry: ConnectionRegistry = websocket.app.state.connections
    pool: SessionWorkerPool = websocket.app.state.workers

    await websocket.accept()
    registry.register(user_id, websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            received_at = time.time()
            try:
                message = SocketMessage.model_validate_json(raw)
                if message.type != LOCATION_UPDATE:
                    await websocket.send_json(
                        {"type": "ERROR", "detail": f"Unknown message type: {message.type}"}
                    )
                    continue
                update = LocationUpdate.model_validate(message.payload)
            except ValidationError as e:
                await websocket.send_json(
                    {
                        "type": "ERROR",
                        "detail": e.errors(include_url=False, include_context=False),
                    }
                )
                continue

            if not pool.submit(update.session_id, update.to_sample(received_at), user_id):
                await websocket.send_json(
                    {"type": "ERROR", "detail": "Too many pending samples, sample dropped"}
                )
    except WebSocketDisconnect:
        pass
    finally:
        registry.unregister(user_id, websocket)
