from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import IntegrityError
from sqlalchemy import or_
from typing import List, Optional, Tuple
import logging

from models.conversation import Conversation
from models.message import Message
from services.user import get_user_or_404
from services.product import get_product_by_id
from core.exceptions import (
    ConflictError,
    ResourceNotFoundError,
    ValidationError,
)
from core.validators import is_valid_id, require_fields

logger = logging.getLogger(__name__)

def _find_conversation(db: Session, user_a_id: str, user_b_id: str, product_id: Optional[str]) -> Optional[Conversation]:
    user_one_id, user_two_id = Conversation.ordered_pair(user_a_id, user_b_id)
    query = db.query(Conversation).filter(
        Conversation.user_one_id == user_one_id,
        Conversation.user_two_id == user_two_id
    )
    if product_id:
        query = query.filter(Conversation.product_id == product_id)
    else:
        query = query.filter(Conversation.product_id.is_(None))
    return query.first()

def find_or_create_conversation(
    db: Session,
    user_a: str,
    user_b: str,
    product_id: Optional[str] = None
) -> Tuple[Conversation, bool]:
    """
    Return the conversation between two users about a product (or about
    nothing), creating it on first contact. The second element is True when
    the conversation was created by this call.

    Concurrent first contacts race on a unique index; the loser re-reads and
    returns the winner's conversation.
    """
    require_fields({"user_a": user_a, "user_b": user_b}, message="Both participants are required")

    first = get_user_or_404(db, user_a)
    second = get_user_or_404(db, user_b)
    if first.id == second.id:
        raise ValidationError("Sender and receiver cannot be the same", field="receiver_id")

    product = None
    if product_id:
        if not is_valid_id(product_id):
            raise ValidationError("Invalid product id", field="product_id")
        product = get_product_by_id(db, product_id)
        if not product:
            raise ResourceNotFoundError("Product", product_id)

    scoped_product_id = product.id if product else None
    existing = _find_conversation(db, first.id, second.id, scoped_product_id)
    if existing:
        return existing, False

    user_one_id, user_two_id = Conversation.ordered_pair(first.id, second.id)
    try:
        conversation = Conversation(
            user_one_id=user_one_id,
            user_two_id=user_two_id,
            product_id=scoped_product_id,
        )
        db.add(conversation)
        db.commit()
        db.refresh(conversation)

        logger.info(f"Conversation created: {conversation.id} between {user_one_id} and {user_two_id}")
        return conversation, True

    except IntegrityError:
        db.rollback()
        logger.info(f"Conversation between {user_one_id} and {user_two_id} created concurrently, re-reading")
        existing = _find_conversation(db, first.id, second.id, scoped_product_id)
        if existing:
            return existing, False
        raise ConflictError(
            "Conversation could not be created",
            details={"participants": [user_one_id, user_two_id], "product_id": scoped_product_id}
        )
    except Exception as e:
        db.rollback()
        logger.error(f"Error creating conversation: {str(e)}")
        raise

def get_conversation(db: Session, conversation_id: str) -> Conversation:
    if not is_valid_id(conversation_id):
        raise ValidationError("Invalid conversation id", field="conversation_id")
    conversation = db.query(Conversation).filter(Conversation.id == conversation_id).first()
    if not conversation:
        raise ResourceNotFoundError("Conversation", conversation_id)
    return conversation

def list_conversations_for_user(db: Session, user_ref: str) -> List[Conversation]:
    """Conversations the user takes part in, most recently active first"""
    user = get_user_or_404(db, user_ref)
    return (
        db.query(Conversation)
        .options(
            joinedload(Conversation.user_one),
            joinedload(Conversation.user_two),
            joinedload(Conversation.product),
            joinedload(Conversation.last_message).joinedload(Message.sender),
            joinedload(Conversation.last_message).joinedload(Message.receiver),
            joinedload(Conversation.last_message).joinedload(Message.product),
        )
        .filter(or_(Conversation.user_one_id == user.id, Conversation.user_two_id == user.id))
        .order_by(Conversation.updated_at.desc())
        .all()
    )
