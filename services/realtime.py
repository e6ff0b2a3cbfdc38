import json
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class RealtimeChannel:
    """
    Room-based publish/subscribe over WebSocket connections.

    Rooms are keyed by conversation id. Nothing is persisted or replayed: a
    connection only receives what is published while it is in the room.
    """

    def __init__(self):
        # Active connections with metadata
        self.active_connections: Dict[str, Dict[str, Any]] = {}
        # Room id -> connection ids, in join order
        self.rooms: Dict[str, Dict[str, None]] = {}
        # User id -> connection ids
        self.user_sessions: Dict[str, Set[str]] = {}

    async def connect(self, websocket: WebSocket, user_id: str) -> str:
        """Accept a WebSocket connection and register it"""
        await websocket.accept()

        connection_id = str(uuid.uuid4())
        self.active_connections[connection_id] = {
            "websocket": websocket,
            "user_id": user_id,
            "rooms": set(),
            "connected_at": datetime.utcnow(),
            "last_activity": datetime.utcnow()
        }
        self.user_sessions.setdefault(user_id, set()).add(connection_id)

        logger.info(f"WebSocket connection established: {connection_id} for user {user_id}")

        await self.send_personal_message(connection_id, {
            "type": "connection_established",
            "connection_id": connection_id,
            "timestamp": datetime.utcnow().isoformat()
        })
        return connection_id

    def disconnect(self, connection_id: str):
        """Remove a connection from every room it joined"""
        connection_info = self.active_connections.pop(connection_id, None)
        if connection_info is None:
            return

        for room in connection_info["rooms"]:
            members = self.rooms.get(room)
            if members is not None:
                members.pop(connection_id, None)
                if not members:
                    del self.rooms[room]

        user_id = connection_info["user_id"]
        if user_id in self.user_sessions:
            self.user_sessions[user_id].discard(connection_id)
            if not self.user_sessions[user_id]:
                del self.user_sessions[user_id]

        logger.info(f"WebSocket connection closed: {connection_id}")

    def join(self, connection_id: str, room: str) -> bool:
        connection_info = self.active_connections.get(connection_id)
        if connection_info is None:
            return False
        self.rooms.setdefault(room, {})[connection_id] = None
        connection_info["rooms"].add(room)
        logger.debug(f"Connection {connection_id} joined room {room}")
        return True

    def leave(self, connection_id: str, room: str) -> bool:
        members = self.rooms.get(room)
        if not members or connection_id not in members:
            return False
        del members[connection_id]
        if not members:
            del self.rooms[room]
        connection_info = self.active_connections.get(connection_id)
        if connection_info is not None:
            connection_info["rooms"].discard(room)
        logger.debug(f"Connection {connection_id} left room {room}")
        return True

    def room_members(self, room: str) -> List[str]:
        return list(self.rooms.get(room, {}))

    async def send_personal_message(self, connection_id: str, message: Dict[str, Any]) -> bool:
        """Send to one connection; a connection that fails to send is dropped"""
        connection_info = self.active_connections.get(connection_id)
        if connection_info is None:
            return False
        try:
            await connection_info["websocket"].send_text(json.dumps(message, default=str))
            connection_info["last_activity"] = datetime.utcnow()
            return True
        except Exception as e:
            logger.error(f"Error sending message to {connection_id}: {str(e)}")
            self.disconnect(connection_id)
            return False

    async def publish(self, room: str, event: str, data: Any) -> int:
        """
        Deliver an event to every connection currently in the room, in join
        order, snapshot at publish time. Returns the number of deliveries.
        """
        message = {
            "type": event,
            "room": room,
            "data": data,
            "timestamp": datetime.utcnow().isoformat()
        }

        delivered = 0
        for connection_id in list(self.rooms.get(room, ())):
            if await self.send_personal_message(connection_id, message):
                delivered += 1

        logger.debug(f"Published {event} to room {room}: {delivered} deliveries")
        return delivered

    def get_connection_stats(self) -> Dict[str, Any]:
        """Statistics about active connections and rooms"""
        return {
            "total_connections": len(self.active_connections),
            "unique_users": len(self.user_sessions),
            "rooms": len(self.rooms),
            "by_room": {room: len(members) for room, members in self.rooms.items()},
            "timestamp": datetime.utcnow().isoformat()
        }
