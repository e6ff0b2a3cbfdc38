import uuid
import enum
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Text, Enum
from sqlalchemy.orm import relationship
from database.base import Base
from models.product import ProductStatus

class SyncState(str, enum.Enum):
    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"

class ProductStatusSync(Base):
    """Outbox row for the product status write that follows a transaction status change."""
    __tablename__ = "product_status_syncs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    transaction_id = Column(String, ForeignKey("transactions.id"), nullable=False, index=True)
    product_id = Column(String, ForeignKey("products.id"), nullable=False, index=True)
    target_status = Column(Enum(ProductStatus), nullable=False)
    state = Column(Enum(SyncState), nullable=False, default=SyncState.PENDING, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    transaction = relationship("Transaction")
    product = relationship("Product")
