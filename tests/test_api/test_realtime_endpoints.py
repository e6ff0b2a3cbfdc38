"""Tests for the chat WebSocket and its statistics endpoint."""

import uuid
import pytest
from starlette.websockets import WebSocketDisconnect

from services.conversation import find_or_create_conversation
from services.auth import create_access_token
from tests.utils.factories import auth_headers


def _chat_url(user):
    return f"/ws/chat?token={create_access_token({'sub': user.id})}"


@pytest.mark.integration
def test_connection_requires_a_token(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws/chat"):
            pass
    assert exc_info.value.code == 4001


@pytest.mark.integration
def test_connection_rejects_an_invalid_token(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws/chat?token=garbage"):
            pass


@pytest.mark.integration
def test_ping_and_unknown_frames(client, buyer):
    with client.websocket_connect(_chat_url(buyer)) as websocket:
        assert websocket.receive_json()["type"] == "connection_established"

        websocket.send_json({"type": "ping"})
        assert websocket.receive_json()["type"] == "pong"

        websocket.send_json({"type": "shout"})
        assert websocket.receive_json()["type"] == "error"

        websocket.send_text("{not json")
        assert websocket.receive_json()["message"] == "Invalid JSON format"


@pytest.mark.integration
def test_only_participants_can_join(client, db, buyer, seller, stranger):
    conversation, _ = find_or_create_conversation(db, buyer.id, seller.id)

    with client.websocket_connect(_chat_url(stranger)) as websocket:
        websocket.receive_json()
        websocket.send_json({"type": "join", "room": conversation.id})
        assert websocket.receive_json()["type"] == "error"

        websocket.send_json({"type": "join", "room": str(uuid.uuid4())})
        assert websocket.receive_json()["type"] == "error"


@pytest.mark.integration
def test_joined_client_receives_new_messages(client, db, buyer, seller):
    conversation, _ = find_or_create_conversation(db, buyer.id, seller.id)
    conversation_id = conversation.id

    with client.websocket_connect(_chat_url(seller)) as websocket:
        websocket.receive_json()
        websocket.send_json({"type": "join", "room": conversation_id})
        joined = websocket.receive_json()
        assert joined["type"] == "joined"
        assert joined["room"] == conversation_id

        response = client.post("/api/messages", json={
            "conversation_id": conversation_id,
            "sender_id": buyer.id,
            "receiver_id": seller.id,
            "content": "On my way",
        }, headers=auth_headers(buyer))
        assert response.status_code == 201

        event = websocket.receive_json()
        assert event["type"] == "newMessage"
        assert event["room"] == conversation_id
        assert event["data"]["id"] == response.json()["data"]["id"]
        assert event["data"]["sender"]["id"] == buyer.id

        websocket.send_json({"type": "leave", "room": conversation_id})
        left = websocket.receive_json()
        assert left["type"] == "left"
        assert left["was_member"] is True


@pytest.mark.integration
def test_stats_endpoint(client, buyer):
    assert client.get("/ws/stats").status_code == 401

    with client.websocket_connect(_chat_url(buyer)) as websocket:
        websocket.receive_json()
        stats = client.get("/ws/stats", headers=auth_headers(buyer)).json()["data"]
        assert stats["total_connections"] >= 1
        assert stats["unique_users"] >= 1
