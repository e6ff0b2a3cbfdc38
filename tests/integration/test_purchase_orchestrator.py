"""Tests for the buyer and seller purchase actions."""

import pytest

from core.exceptions import AuthorizationError, InvalidStateTransitionError, ValidationError
from models.conversation import Conversation
from models.message import Message
from models.product import ProductStatus
from models.transaction import TransactionStatus
from services.message import MessageService
from services.purchase import PurchaseOrchestrator
from tests.utils.factories import in_person_terms


@pytest.fixture
def orchestrator(db):
    return PurchaseOrchestrator(db, MessageService())


@pytest.mark.integration
@pytest.mark.asyncio
async def test_buy_with_message_opens_product_conversation(db, orchestrator, buyer, seller, product):
    transaction = await orchestrator.buy(buyer.id, product.id, in_person_terms("Can we meet at the library?"))

    assert transaction.status == TransactionStatus.PENDING
    assert transaction.seller_id == seller.id

    conversation = db.query(Conversation).one()
    assert conversation.product_id == product.id
    assert conversation.participant_ids == {buyer.id, seller.id}

    message = db.query(Message).one()
    assert message.content == "Can we meet at the library?"
    assert message.sender_id == buyer.id
    assert message.receiver_id == seller.id


@pytest.mark.integration
@pytest.mark.asyncio
async def test_buy_without_message(db, orchestrator, buyer, product):
    await orchestrator.buy(buyer.id, product.id, in_person_terms())

    assert db.query(Conversation).count() == 0
    db.refresh(product)
    assert product.status == ProductStatus.RESERVED


@pytest.mark.integration
@pytest.mark.asyncio
async def test_seller_confirms_and_buyer_receives(db, orchestrator, buyer, seller, product):
    transaction = await orchestrator.buy(buyer.id, product.id, in_person_terms())

    orchestrator.confirm(seller.id, transaction.id)
    received = orchestrator.mark_received(buyer.id, transaction.id)

    db.refresh(product)
    assert received.status == TransactionStatus.COMPLETED
    assert product.status == ProductStatus.SOLD


@pytest.mark.integration
@pytest.mark.asyncio
async def test_seller_declines(db, orchestrator, buyer, seller, product):
    transaction = await orchestrator.buy(buyer.id, product.id, in_person_terms())

    declined = orchestrator.decline(seller.id, transaction.id)

    db.refresh(product)
    assert declined.status == TransactionStatus.CANCELED
    assert product.status == ProductStatus.AVAILABLE


@pytest.mark.integration
@pytest.mark.asyncio
async def test_roles_are_enforced(db, orchestrator, buyer, seller, stranger, product):
    transaction = await orchestrator.buy(buyer.id, product.id, in_person_terms())

    with pytest.raises(AuthorizationError):
        orchestrator.confirm(buyer.id, transaction.id)
    with pytest.raises(AuthorizationError):
        orchestrator.cancel(seller.id, transaction.id)
    with pytest.raises(AuthorizationError):
        orchestrator.update_status(stranger.id, transaction.id, "Canceled")
    with pytest.raises(AuthorizationError):
        orchestrator.update_status(seller.id, transaction.id, "Completed")

    # Either party may cancel through the generic entry point
    canceled = orchestrator.update_status(buyer.id, transaction.id, "Canceled")
    assert canceled.status == TransactionStatus.CANCELED


@pytest.mark.integration
@pytest.mark.asyncio
async def test_buyer_cannot_complete_before_confirmation(db, orchestrator, buyer, product):
    transaction = await orchestrator.buy(buyer.id, product.id, in_person_terms())

    with pytest.raises(InvalidStateTransitionError):
        orchestrator.mark_received(buyer.id, transaction.id)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_contact_seller(db, orchestrator, buyer, seller, product):
    conversation, message = await orchestrator.contact_seller(buyer.id, product.id, "Is it still available?")
    again, second = await orchestrator.contact_seller(buyer.id, product.id, "Hello?")

    assert again.id == conversation.id
    assert second.conversation_id == conversation.id
    assert db.query(Message).count() == 2


@pytest.mark.integration
@pytest.mark.asyncio
async def test_seller_cannot_contact_themselves(db, orchestrator, seller, product):
    with pytest.raises(ValidationError):
        await orchestrator.contact_seller(seller.id, product.id, "Hi me")
