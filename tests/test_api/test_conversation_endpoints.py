"""Tests for the conversation and message endpoints."""

import pytest

from tests.utils.factories import auth_headers


def _create_conversation(client, sender, receiver, **extra):
    body = {"receiver_id": receiver.id}
    body.update(extra)
    return client.post("/api/conversations/create", json=body, headers=auth_headers(sender))


@pytest.mark.integration
def test_create_conversation_is_idempotent(client, buyer, seller, product):
    created = _create_conversation(client, buyer, seller, product_id=product.id)
    again = _create_conversation(client, seller, buyer, product_id=product.id)

    assert created.status_code == 201
    assert again.status_code == 200
    assert created.json()["data"]["id"] == again.json()["data"]["id"]
    participants = {p["id"] for p in created.json()["data"]["participants"]}
    assert participants == {buyer.id, seller.id}


@pytest.mark.integration
def test_create_conversation_with_initial_message(client, buyer, seller):
    response = _create_conversation(client, buyer, seller, initial_message="Hi there")

    assert response.status_code == 201
    last_message = response.json()["data"]["last_message"]
    assert last_message["content"] == "Hi there"
    assert last_message["sender"]["id"] == buyer.id
    assert last_message["receiver"]["id"] == seller.id


@pytest.mark.integration
def test_conversation_with_yourself_is_rejected(client, buyer):
    response = _create_conversation(client, buyer, buyer)
    assert response.status_code == 422
    assert response.json()["error_code"] == "ValidationError"


@pytest.mark.integration
def test_list_own_conversations_only(client, buyer, seller):
    _create_conversation(client, buyer, seller)

    mine = client.get(f"/api/conversations/user/{buyer.external_id}", headers=auth_headers(buyer))
    assert mine.status_code == 200
    assert len(mine.json()["data"]) == 1

    theirs = client.get(f"/api/conversations/user/{buyer.id}", headers=auth_headers(seller))
    assert theirs.status_code == 403


@pytest.mark.integration
def test_send_and_list_messages(client, buyer, seller, stranger):
    conversation_id = _create_conversation(client, buyer, seller).json()["data"]["id"]

    for sender, receiver, content in ((buyer, seller, "Is it available?"), (seller, buyer, "Yes")):
        response = client.post("/api/messages", json={
            "conversation_id": conversation_id,
            "sender_id": sender.id,
            "receiver_id": receiver.id,
            "content": content,
        }, headers=auth_headers(sender))
        assert response.status_code == 201
        assert response.json()["data"]["content"] == content

    listed = client.get(f"/api/messages/{conversation_id}", headers=auth_headers(buyer))
    assert listed.status_code == 200
    contents = {m["content"] for m in listed.json()["data"]}
    assert contents == {"Is it available?", "Yes"}

    assert client.get(f"/api/messages/{conversation_id}", headers=auth_headers(stranger)).status_code == 403


@pytest.mark.integration
def test_send_message_validation(client, buyer, seller):
    conversation_id = _create_conversation(client, buyer, seller).json()["data"]["id"]

    impersonating = client.post("/api/messages", json={
        "conversation_id": conversation_id,
        "sender_id": seller.id,
        "receiver_id": buyer.id,
        "content": "Hi",
    }, headers=auth_headers(buyer))
    assert impersonating.status_code == 403

    empty = client.post("/api/messages", json={
        "conversation_id": conversation_id,
        "sender_id": buyer.id,
        "receiver_id": seller.id,
        "content": "   ",
    }, headers=auth_headers(buyer))
    assert empty.status_code == 422
    assert empty.json()["details"]["missing"] == ["content"]

    listed = client.get(f"/api/messages/{conversation_id}", headers=auth_headers(buyer))
    assert listed.json()["data"] == []
