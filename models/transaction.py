import uuid
import enum
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Date, ForeignKey, Numeric, Text, Enum, Index, text
from sqlalchemy.orm import relationship
from database.base import Base

class TransactionStatus(str, enum.Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    COMPLETED = "Completed"
    CANCELED = "Canceled"

class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    ONLINE = "online"

class DeliveryMethod(str, enum.Enum):
    IN_PERSON = "inPerson"
    DELIVERY = "delivery"

# Enum columns persist member names
_ACTIVE_WHERE = text("status IN ('PENDING', 'CONFIRMED')")

class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    buyer_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    seller_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    product_id = Column(String, ForeignKey("products.id"), nullable=False, index=True)
    # Price snapshot copied from the product at creation
    price_amount = Column(Numeric(10, 2), nullable=False)
    price_currency = Column(String(3), nullable=False, default="EUR")
    status = Column(Enum(TransactionStatus), nullable=False, default=TransactionStatus.PENDING, index=True)
    payment_method = Column(Enum(PaymentMethod), nullable=False, default=PaymentMethod.CASH)
    delivery_method = Column(Enum(DeliveryMethod), nullable=False, default=DeliveryMethod.IN_PERSON)
    meeting_date = Column(Date, nullable=True)
    meeting_time = Column(String(20), nullable=True)
    meeting_location = Column(String(200), nullable=True)
    message_to_seller = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        # At most one Pending/Confirmed transaction per product
        Index(
            "uq_transactions_active_product",
            "product_id",
            unique=True,
            sqlite_where=_ACTIVE_WHERE,
            postgresql_where=_ACTIVE_WHERE,
        ),
    )

    # Relationships
    buyer = relationship("User", foreign_keys=[buyer_id])
    seller = relationship("User", foreign_keys=[seller_id])
    product = relationship("Product", back_populates="transactions")
