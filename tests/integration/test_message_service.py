"""Tests for the message delivery pipeline."""

import json
import uuid
import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, Mock

from core.exceptions import ResourceNotFoundError, ValidationError
from models.conversation import Conversation
from models.message import Message
from services.conversation import find_or_create_conversation
from services.message import NEW_MESSAGE_EVENT, MessageService
from services.realtime import RealtimeChannel


@pytest.fixture
def conversation(db, buyer, seller, product):
    conversation, _ = find_or_create_conversation(db, buyer.id, seller.id, product.id)
    return conversation


@pytest.mark.integration
@pytest.mark.asyncio
async def test_send_message_persists_and_updates_conversation(db, conversation, buyer, seller, product):
    service = MessageService()

    message = await service.send_message(db, conversation.id, buyer.id, seller.external_id, "Hi!", product.id)

    db.refresh(conversation)
    assert message.sender_id == buyer.id
    assert message.receiver_id == seller.id
    assert message.product_id == product.id
    assert message.is_read is False
    assert conversation.last_message_id == message.id


@pytest.mark.integration
@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["conversation_id", "sender_id", "receiver_id", "content"])
async def test_missing_field_persists_nothing(db, conversation, buyer, seller, field):
    arguments = {
        "conversation_id": conversation.id,
        "sender_id": buyer.id,
        "receiver_id": seller.id,
        "content": "Hello",
    }
    arguments[field] = "" if field == "content" else None

    with pytest.raises(ValidationError) as exc_info:
        await MessageService().send_message(db, **arguments)

    assert exc_info.value.details["missing"] == [field]
    assert db.query(Message).count() == 0


@pytest.mark.integration
@pytest.mark.asyncio
async def test_invalid_references_persist_nothing(db, conversation, buyer, seller, stranger):
    service = MessageService()

    with pytest.raises(ValidationError):
        await service.send_message(db, "not-an-id", buyer.id, seller.id, "Hello")
    with pytest.raises(ResourceNotFoundError):
        await service.send_message(db, str(uuid.uuid4()), buyer.id, seller.id, "Hello")
    with pytest.raises(ResourceNotFoundError):
        await service.send_message(db, conversation.id, buyer.id, "auth|ghost", "Hello")
    with pytest.raises(ValidationError):
        await service.send_message(db, conversation.id, buyer.id, stranger.id, "Hello")
    with pytest.raises(ValidationError):
        await service.send_message(db, conversation.id, buyer.id, buyer.id, "Hello")
    with pytest.raises(ResourceNotFoundError):
        await service.send_message(db, conversation.id, buyer.id, seller.id, "Hello", str(uuid.uuid4()))

    assert db.query(Message).count() == 0
    assert db.query(Conversation).one().last_message_id is None


@pytest.mark.integration
@pytest.mark.asyncio
async def test_messages_are_listed_newest_first(db, conversation, buyer, seller):
    service = MessageService()
    sent = []
    for content in ("first", "second", "third"):
        sent.append(await service.send_message(db, conversation.id, buyer.id, seller.id, content))

    base = datetime(2024, 3, 1, 9, 0, 0)
    for offset, message in enumerate(sent):
        message.created_at = base + timedelta(seconds=offset)
    db.commit()

    listed = service.list_messages(db, conversation.id)
    assert [m.content for m in listed] == ["third", "second", "first"]
    assert listed[0].sender.id == buyer.id


@pytest.mark.integration
@pytest.mark.asyncio
async def test_new_message_is_published_to_the_conversation_room(db, conversation, buyer, seller):
    channel = RealtimeChannel()
    watcher, elsewhere = AsyncMock(), AsyncMock()
    watcher_id = await channel.connect(watcher, seller.id)
    elsewhere_id = await channel.connect(elsewhere, seller.id)
    channel.join(watcher_id, conversation.id)
    channel.join(elsewhere_id, str(uuid.uuid4()))
    watcher.send_text.reset_mock()
    elsewhere.send_text.reset_mock()

    message = await MessageService(channel).send_message(db, conversation.id, buyer.id, seller.id, "Ping")

    watcher.send_text.assert_awaited_once()
    elsewhere.send_text.assert_not_awaited()
    event = json.loads(watcher.send_text.await_args.args[0])
    assert event["type"] == NEW_MESSAGE_EVENT
    assert event["room"] == conversation.id
    assert event["data"]["id"] == message.id
    assert event["data"]["sender"]["id"] == buyer.id
    assert event["data"]["receiver"]["display_name"] == seller.display_name


@pytest.mark.integration
@pytest.mark.asyncio
async def test_broadcast_failure_does_not_fail_send(db, conversation, buyer, seller):
    channel = Mock()
    channel.publish = AsyncMock(side_effect=RuntimeError("channel unavailable"))

    message = await MessageService(channel).send_message(db, conversation.id, buyer.id, seller.id, "Still here")

    channel.publish.assert_awaited_once()
    assert db.query(Message).filter(Message.id == message.id).count() == 1
