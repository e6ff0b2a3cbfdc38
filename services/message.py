from sqlalchemy.orm import Session, joinedload
from typing import List, Optional
from datetime import datetime
import logging

from models.conversation import Conversation
from models.message import Message
from schemas.message import MessageWithParties
from services.user import resolve_user
from services.product import get_product_by_id
from services.realtime import RealtimeChannel
from core.exceptions import (
    BaseCustomException,
    ResourceNotFoundError,
    ValidationError,
)
from core.validators import is_valid_id, require_fields, require_valid_id

logger = logging.getLogger(__name__)

NEW_MESSAGE_EVENT = "newMessage"


class MessageService:
    """
    Persists messages and fans them out to the conversation's room.

    The channel is optional; without one messages are only persisted and
    readers catch up through list_messages.
    """

    def __init__(self, channel: Optional[RealtimeChannel] = None):
        self.channel = channel

    async def send_message(
        self,
        db: Session,
        conversation_id: Optional[str],
        sender_id: Optional[str],
        receiver_id: Optional[str],
        content: Optional[str],
        product_id: Optional[str] = None
    ) -> Message:
        require_fields({
            "conversation_id": conversation_id,
            "sender_id": sender_id,
            "receiver_id": receiver_id,
            "content": content,
        })
        require_valid_id(conversation_id, "conversation_id", "conversation")
        if product_id and not is_valid_id(product_id):
            raise ValidationError("Invalid product id", field="product_id")

        conversation = db.query(Conversation).filter(Conversation.id == conversation_id).first()
        if not conversation:
            raise ResourceNotFoundError("Conversation", conversation_id)

        sender = resolve_user(db, sender_id)
        if not sender:
            raise ResourceNotFoundError("User", sender_id)
        receiver = resolve_user(db, receiver_id)
        if not receiver:
            raise ResourceNotFoundError("User", receiver_id)

        if sender.id == receiver.id or {sender.id, receiver.id} != conversation.participant_ids:
            raise ValidationError(
                "Sender and receiver must be the participants of the conversation",
                details={"conversation_id": conversation.id}
            )

        product = None
        if product_id:
            product = get_product_by_id(db, product_id)
            if not product:
                raise ResourceNotFoundError("Product", product_id)

        try:
            message = Message(
                conversation_id=conversation.id,
                sender_id=sender.id,
                receiver_id=receiver.id,
                content=content,
                product_id=product.id if product else None,
            )
            db.add(message)
            db.flush()

            conversation.last_message_id = message.id
            conversation.updated_at = datetime.utcnow()
            db.commit()
            db.refresh(message)

            logger.info(f"Message {message.id} stored in conversation {conversation.id}")

        except BaseCustomException:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error sending message: {str(e)}")
            raise

        await self._broadcast(db, message)
        return message

    async def _broadcast(self, db: Session, message: Message) -> None:
        """Push the populated message to the room; failures never reach the sender"""
        if self.channel is None:
            return
        try:
            populated = (
                self._with_parties(db.query(Message))
                .filter(Message.id == message.id)
                .one()
            )
            payload = MessageWithParties.model_validate(populated).model_dump(mode="json")
            await self.channel.publish(message.conversation_id, NEW_MESSAGE_EVENT, payload)
        except Exception as e:
            logger.warning(f"Realtime broadcast of message {message.id} failed: {str(e)}")

    @staticmethod
    def _with_parties(query):
        return query.options(
            joinedload(Message.sender),
            joinedload(Message.receiver),
            joinedload(Message.product),
        )

    def list_messages(self, db: Session, conversation_id: str) -> List[Message]:
        """All messages of a conversation, newest first"""
        require_valid_id(conversation_id, "conversation_id", "conversation")
        return (
            self._with_parties(db.query(Message))
            .filter(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.desc())
            .all()
        )
