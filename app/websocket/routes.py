# =============================================================================
# app/websocket/routes.py - WebSocket Routes
# =============================================================================
# Live message feed for an open conversation view.
#
# Connect: ws://host/ws/conversations/{conversation_id}?token={jwt}
#
# Events sent to the client:
#   - {"type": "connected", "conversation_id": "..."}
#   - {"type": "new_message", "message": {...}}   (no sender display fields)
#
# Missed events are not replayed; clients refetch
# GET /api/v1/conversations/{id}/messages after reconnecting.
# =============================================================================

import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from app.auth import InvalidTokenError, decode_access_token
from app.exceptions import NotFoundError, TransportError
from app.websocket.manager import websocket_manager
from core.models.message import Message
from core.models.session import UserSession
from core.services.messaging_service import MessagingService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/conversations/{conversation_id}")
async def conversation_websocket(
    websocket: WebSocket,
    conversation_id: str,
    token: str = Query(..., description="JWT token for authentication")
):
    """
    WebSocket endpoint pushing new messages in a conversation.

    The user must be a participant. Close codes:
    4001 invalid token, 4004 conversation not found, 4000 backend error.
    """
    # 1. Verify JWT token
    try:
        user = decode_access_token(token)
    except InvalidTokenError as e:
        logger.warning(f"WebSocket auth failed: {e}")
        await websocket.close(code=4001, reason="Invalid token")
        return

    session = UserSession(user_id=user.id, access_token=token, email=user.email)

    # 2. Accept and track, then open the realtime feed as this user
    await websocket_manager.connect(conversation_id, websocket)

    async def push(message: Message) -> None:
        await websocket.send_json({
            "type": "new_message",
            "message": message.model_dump(mode="json"),
        })

    try:
        try:
            subscription = await MessagingService.subscribe_to_new_messages(
                session, conversation_id, on_message=push
            )
        except NotFoundError:
            logger.warning(f"WebSocket: conversation {conversation_id} not found for user {user.id}")
            await websocket.close(code=4004, reason="Conversation not found")
            return
        except TransportError as e:
            logger.error(f"WebSocket: failed to subscribe: {e}")
            await websocket.close(code=4000, reason="Server error")
            return

        websocket_manager.attach(conversation_id, websocket, subscription)

        await websocket.send_json({
            "type": "connected",
            "conversation_id": conversation_id,
        })

        # Keep connection alive and handle incoming messages
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
            else:
                logger.debug(f"WebSocket received: {data[:100]}")

    except WebSocketDisconnect:
        logger.info(f"WebSocket client disconnected from conversation {conversation_id}")
    finally:
        await websocket_manager.disconnect(conversation_id, websocket)


@router.get("/ws/status")
async def websocket_status():
    """
    Get WebSocket connection statistics.
    """
    return {
        "total_connections": websocket_manager.get_connection_count(),
        "active_conversations": websocket_manager.get_active_conversations(),
        "conversation_count": len(websocket_manager.get_active_conversations()),
    }
