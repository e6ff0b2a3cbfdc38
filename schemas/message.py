from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from schemas.user import UserSummary
from schemas.product import ProductSummary

class MessageCreate(BaseModel):
    # Emptiness is checked by the delivery pipeline so it can answer with its own error
    conversation_id: Optional[str] = None
    sender_id: Optional[str] = None
    receiver_id: Optional[str] = None
    content: Optional[str] = Field(None, max_length=5000)
    product_id: Optional[str] = None

class MessageResponse(BaseModel):
    id: str
    conversation_id: str
    sender_id: str
    receiver_id: str
    content: str
    product_id: Optional[str] = None
    is_read: bool = False
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class MessageWithParties(MessageResponse):
    sender: UserSummary
    receiver: UserSummary
    product: Optional[ProductSummary] = None
