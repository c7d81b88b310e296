# =============================================================================
# app/websocket/manager.py - WebSocket Connection Manager
# =============================================================================
# Tracks WebSocket connections per conversation together with the realtime
# subscription that feeds each one.
#
# Every connection owns its own MessageSubscription (opened with that user's
# token, so RLS applies to the feed). The manager's job is bookkeeping:
# counting connections and closing subscriptions on disconnect/shutdown.
#
# Usage:
#   from app.websocket import websocket_manager
#
#   await websocket_manager.connect(conversation_id, websocket)
#   websocket_manager.attach(conversation_id, websocket, subscription)
#   await websocket_manager.disconnect(conversation_id, websocket)
# =============================================================================

import logging
from typing import Dict

from fastapi import WebSocket

from core.services.subscription import MessageSubscription

logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    Manages WebSocket connections organized by conversation ID.

    A conversation can have several connected clients (both participants,
    or one participant on two devices).
    """

    def __init__(self):
        # conversation_id -> {websocket: subscription or None}
        self.connections: Dict[str, Dict[WebSocket, MessageSubscription | None]] = {}
        self._total_connections = 0

    async def connect(self, conversation_id: str, websocket: WebSocket) -> None:
        """
        Accept a new WebSocket connection and track it.
        """
        await websocket.accept()

        self.connections.setdefault(conversation_id, {})[websocket] = None
        self._total_connections += 1

        logger.info(
            f"WebSocket connected to conversation {conversation_id}. "
            f"Total connections: {self._total_connections}"
        )

    def attach(
        self,
        conversation_id: str,
        websocket: WebSocket,
        subscription: MessageSubscription,
    ) -> None:
        """Associate the realtime subscription feeding this connection."""
        if websocket in self.connections.get(conversation_id, {}):
            self.connections[conversation_id][websocket] = subscription

    async def disconnect(self, conversation_id: str, websocket: WebSocket) -> None:
        """
        Stop tracking a connection and close its subscription.
        """
        sockets = self.connections.get(conversation_id)
        if sockets is None or websocket not in sockets:
            return

        subscription = sockets.pop(websocket)
        self._total_connections -= 1

        if not sockets:
            del self.connections[conversation_id]

        if subscription is not None:
            await subscription.close()

        logger.info(
            f"WebSocket disconnected from conversation {conversation_id}. "
            f"Total connections: {self._total_connections}"
        )

    async def close_all(self) -> None:
        """Close every tracked subscription (application shutdown)."""
        for conversation_id in list(self.connections):
            for websocket in list(self.connections.get(conversation_id, {})):
                await self.disconnect(conversation_id, websocket)

    def get_connection_count(self, conversation_id: str | None = None) -> int:
        """
        Get the number of active connections, overall or for one conversation.
        """
        if conversation_id:
            return len(self.connections.get(conversation_id, {}))
        return self._total_connections

    def get_active_conversations(self) -> list[str]:
        """Conversation IDs with at least one connection."""
        return list(self.connections.keys())


# Global singleton instance
websocket_manager = ConnectionManager()
