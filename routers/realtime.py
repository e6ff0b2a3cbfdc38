from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends, Query
from typing import Any, Dict, Optional
from datetime import datetime
import json
import logging

from database.connection import SessionLocal
from core.response import success_response
from core.validators import is_valid_id
from models.conversation import Conversation
from models.user import User
from services.auth import get_user_from_token
from services.realtime import RealtimeChannel
from routers.auth import get_current_user
from routers.dependencies import get_realtime_channel

router = APIRouter()
logger = logging.getLogger(__name__)

def _authenticate(token: str) -> Optional[str]:
    db = SessionLocal()
    try:
        user = get_user_from_token(db, token)
        return user.id if user else None
    finally:
        db.close()

def _is_participant(conversation_id: str, user_id: str) -> bool:
    if not is_valid_id(conversation_id):
        return False
    db = SessionLocal()
    try:
        conversation = db.query(Conversation).filter(Conversation.id == conversation_id).first()
        return conversation is not None and user_id in conversation.participant_ids
    finally:
        db.close()

@router.websocket("/ws/chat")
async def websocket_chat_endpoint(
    websocket: WebSocket,
    token: Optional[str] = Query(None)
):
    """
    Chat socket. Clients join the room of a conversation they take part in
    and receive a newMessage event for every message sent to it.
    """
    if not token:
        await websocket.close(code=4001, reason="Authentication required")
        return

    user_id = _authenticate(token)
    if user_id is None:
        await websocket.close(code=4001, reason="Invalid token")
        return

    channel: RealtimeChannel = websocket.app.state.realtime_channel
    connection_id = await channel.connect(websocket, user_id)

    try:
        while True:
            message = await websocket.receive_text()
            await handle_websocket_message(channel, connection_id, user_id, message)
    except WebSocketDisconnect:
        logger.info(f"Chat WebSocket disconnected: {connection_id}")
    except Exception as e:
        logger.error(f"Chat WebSocket error: {str(e)}")
    finally:
        channel.disconnect(connection_id)

async def handle_websocket_message(channel: RealtimeChannel, connection_id: str, user_id: str, message: str):
    """Handle one client frame: join, leave or ping"""
    try:
        data = json.loads(message)
        message_type = data.get("type")
        room = data.get("room")

        if message_type == "join":
            if room and _is_participant(room, user_id):
                channel.join(connection_id, room)
                await _reply(channel, connection_id, {"type": "joined", "room": room})
            else:
                await _reply(channel, connection_id, {
                    "type": "error",
                    "room": room,
                    "message": "Conversation not found or access denied"
                })

        elif message_type == "leave":
            left = bool(room) and channel.leave(connection_id, room)
            await _reply(channel, connection_id, {"type": "left", "room": room, "was_member": left})

        elif message_type == "ping":
            await _reply(channel, connection_id, {"type": "pong"})

        else:
            await _reply(channel, connection_id, {
                "type": "error",
                "message": f"Unknown message type: {message_type}"
            })

    except (json.JSONDecodeError, AttributeError):
        await _reply(channel, connection_id, {"type": "error", "message": "Invalid JSON format"})

async def _reply(channel: RealtimeChannel, connection_id: str, payload: Dict[str, Any]):
    payload["timestamp"] = datetime.utcnow().isoformat()
    await channel.send_personal_message(connection_id, payload)

@router.get("/ws/stats")
async def get_websocket_stats(
    current_user: User = Depends(get_current_user),
    channel: RealtimeChannel = Depends(get_realtime_channel)
):
    """Connection and room counts of the chat channel"""
    return success_response(
        data=channel.get_connection_stats(),
        message="WebSocket statistics retrieved successfully"
    )
