"""Registry of live WebSocket connections, keyed by user."""

import asyncio
from typing import Any, Dict, Set

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from gigboard.logging_config import get_logger

logger = get_logger("gigboard.ws")


class ConnectionManager:
    """Tracks each user's open sockets and pushes JSON frames to them.

    A user may hold several connections (tabs); every one receives each
    frame. Implements the dispatcher's transport interface.
    """

    def __init__(self) -> None:
        self.users: Dict[str, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, ws: WebSocket, user_id: str) -> None:
        await ws.accept()
        async with self._lock:
            self.users.setdefault(user_id, set()).add(ws)
        logger.info(f"User connected | user={user_id} | sockets={len(self.users[user_id])}")

    async def disconnect(self, ws: WebSocket, user_id: str) -> None:
        async with self._lock:
            sockets = self.users.get(user_id)
            if sockets is not None:
                sockets.discard(ws)
                if not sockets:
                    del self.users[user_id]
        logger.info(f"User disconnected | user={user_id}")

    def is_online(self, user_id: str) -> bool:
        return bool(self.users.get(user_id))

    async def send_to_user(self, user_id: str, payload: Dict[str, Any]) -> bool:
        conns = list(self.users.get(user_id, set()))
        delivered = False
        for ws in conns:
            if ws.application_state != WebSocketState.CONNECTED:
                continue
            try:
                await ws.send_json(payload)
                delivered = True
            except Exception as exc:
                logger.debug(f"Dropping dead socket | user={user_id} | error={exc}")
                await self.disconnect(ws, user_id)
        return delivered
