from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
import logging

from database.connection import get_db
from core.response import success_response
from core.exceptions import AuthorizationError
from models.user import User
from schemas.message import MessageCreate, MessageResponse, MessageWithParties
from services.conversation import get_conversation
from services.message import MessageService
from services.user import resolve_user
from routers.auth import get_current_user
from routers.dependencies import get_message_service

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("", status_code=status.HTTP_201_CREATED)
async def send_message(
    message_data: MessageCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    message_service: MessageService = Depends(get_message_service)
):
    """Persist a message and push it to everyone watching the conversation"""
    if message_data.sender_id:
        sender = resolve_user(db, message_data.sender_id)
        if sender and sender.id != current_user.id:
            raise AuthorizationError("Messages can only be sent as yourself")

    message = await message_service.send_message(
        db,
        message_data.conversation_id,
        message_data.sender_id,
        message_data.receiver_id,
        message_data.content,
        message_data.product_id
    )

    return success_response(
        data=MessageResponse.model_validate(message).model_dump(mode="json"),
        message="Message sent successfully"
    )

@router.get("/{conversation_id}")
def get_conversation_messages(
    conversation_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    message_service: MessageService = Depends(get_message_service)
):
    conversation = get_conversation(db, conversation_id)
    if current_user.id not in conversation.participant_ids:
        raise AuthorizationError("You are not a participant of this conversation")

    messages = message_service.list_messages(db, conversation.id)
    return success_response(
        data=[MessageWithParties.model_validate(m).model_dump(mode="json") for m in messages],
        message=f"Retrieved {len(messages)} messages successfully"
    )
