from pydantic import BaseModel, Field, validator
from typing import Optional
from datetime import datetime, date
from decimal import Decimal

from models.transaction import TransactionStatus, PaymentMethod, DeliveryMethod
from schemas.user import UserSummary
from schemas.product import ProductSummary

class TransactionTerms(BaseModel):
    """What the buyer proposes when committing to a purchase."""
    payment_method: PaymentMethod = PaymentMethod.CASH
    delivery_method: DeliveryMethod = DeliveryMethod.IN_PERSON
    meeting_date: Optional[date] = None
    meeting_time: Optional[str] = Field(None, max_length=20)
    meeting_location: Optional[str] = Field(None, max_length=200)
    message_to_seller: Optional[str] = Field(None, max_length=1000)

    @validator('meeting_location', always=True)
    def validate_meeting(cls, v, values):
        if values.get('delivery_method') == DeliveryMethod.IN_PERSON:
            if not values.get('meeting_date') or not values.get('meeting_time') or not (v and v.strip()):
                raise ValueError('Meeting date, time and location are required for in-person delivery')
        return v.strip() if v else v

    @validator('message_to_seller')
    def validate_message(cls, v):
        if v is not None and not v.strip():
            return None
        return v.strip() if v else v

class TransactionCreate(TransactionTerms):
    # References may be internal ids or external identities; checked by the service
    buyer: Optional[str] = None
    product: Optional[str] = None
    seller: Optional[str] = None

    def terms(self) -> TransactionTerms:
        return TransactionTerms(**self.dict(exclude={'buyer', 'product', 'seller'}))

class TransactionStatusUpdate(BaseModel):
    status: str = Field(..., min_length=1)

class TransactionResponse(BaseModel):
    id: str
    buyer_id: str
    seller_id: str
    product_id: str
    price_amount: Decimal
    price_currency: str
    status: TransactionStatus
    payment_method: PaymentMethod
    delivery_method: DeliveryMethod
    meeting_date: Optional[date] = None
    meeting_time: Optional[str] = None
    meeting_location: Optional[str] = None
    message_to_seller: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class TransactionWithParties(TransactionResponse):
    buyer: UserSummary
    seller: UserSummary
    product: ProductSummary
