# =============================================================================
# app/websocket/__init__.py - WebSocket Module
# =============================================================================
# Provides real-time message pushes for open conversation views.
#
# Usage:
#   from app.websocket import websocket_manager
#   websocket_manager.get_connection_count(conversation_id)
# =============================================================================

from app.websocket.manager import ConnectionManager, websocket_manager

__all__ = [
    "ConnectionManager",
    "websocket_manager",
]
