from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
import logging

from database.connection import get_db
from core.response import success_response
from core.exceptions import AuthorizationError
from models.user import User
from schemas.conversation import ConversationCreate, ConversationWithDetails
from services.conversation import find_or_create_conversation, list_conversations_for_user
from services.message import MessageService
from services.user import get_user_or_404
from routers.auth import get_current_user
from routers.dependencies import get_message_service

logger = logging.getLogger(__name__)

router = APIRouter()

def _serialize(conversation) -> dict:
    return ConversationWithDetails.model_validate(conversation).model_dump(mode="json")

@router.post("/create")
async def create_conversation(
    conversation_data: ConversationCreate,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    message_service: MessageService = Depends(get_message_service)
):
    """
    Find or create the conversation between the caller and another user,
    optionally about a product. Answers 201 when the conversation is new.
    """
    conversation, created = find_or_create_conversation(
        db,
        current_user.id,
        conversation_data.receiver_id,
        conversation_data.product_id
    )

    if conversation_data.initial_message:
        receiver_id = next(iter(conversation.participant_ids - {current_user.id}))
        await message_service.send_message(
            db,
            conversation.id,
            current_user.id,
            receiver_id,
            conversation_data.initial_message,
            conversation.product_id
        )
        db.refresh(conversation)

    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return success_response(
        data=_serialize(conversation),
        message="Conversation created successfully" if created else "Conversation already exists"
    )

@router.get("/user/{user_id}")
def get_user_conversations(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    user = get_user_or_404(db, user_id)
    if user.id != current_user.id:
        raise AuthorizationError("You can only list your own conversations")

    conversations = list_conversations_for_user(db, user.id)
    return success_response(
        data=[_serialize(c) for c in conversations],
        message=f"Retrieved {len(conversations)} conversations successfully"
    )
