"""Real-time notification socket.

Each signed-in user may hold any number of sockets; marketplace events
addressed to them are pushed as ``{"event": "notification", ...}`` frames.
"""

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect

from gigboard.api.auth import resolve_token, websocket_token
from gigboard.api.context import get_ws_context
from gigboard.logging_config import get_logger

logger = get_logger("gigboard.api.notifications")
router = APIRouter(tags=["notifications"])

# Application-defined close code for a missing or bad credential
UNAUTHORIZED_CLOSE_CODE = 4401


@router.websocket("/ws/notifications")
async def notification_socket(websocket: WebSocket):
    ctx = get_ws_context(websocket)
    try:
        auth = resolve_token(websocket_token(websocket), ctx.settings)
    except HTTPException as exc:
        logger.info(f"WS rejected | reason={exc.detail}")
        await websocket.close(code=UNAUTHORIZED_CLOSE_CODE)
        return

    await ctx.connections.connect(websocket, auth.user_id)
    try:
        await websocket.send_json({"type": "connected", "user_id": auth.user_id})
        # Client frames are ignored; reading keeps the socket alive until it closes
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await ctx.connections.disconnect(websocket, auth.user_id)
