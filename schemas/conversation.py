from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from schemas.user import UserSummary
from schemas.product import ProductSummary
from schemas.message import MessageWithParties

class ConversationCreate(BaseModel):
    receiver_id: str = Field(..., min_length=1)
    product_id: Optional[str] = None
    initial_message: Optional[str] = Field(None, max_length=5000)

class ConversationResponse(BaseModel):
    id: str
    user_one_id: str
    user_two_id: str
    product_id: Optional[str] = None
    last_message_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class ConversationWithDetails(ConversationResponse):
    participants: List[UserSummary]
    product: Optional[ProductSummary] = None
    last_message: Optional[MessageWithParties] = None

class ContactSellerRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)
