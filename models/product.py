import uuid
import enum
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Numeric, Integer, Text, JSON, Enum
from sqlalchemy.orm import relationship
from database.base import Base

class ProductStatus(str, enum.Enum):
    AVAILABLE = "Available"
    RESERVED = "Reserved"
    SOLD = "Sold"

class Product(Base):
    __tablename__ = "products"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    seller_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    price_amount = Column(Numeric(10, 2), nullable=False)
    price_currency = Column(String(3), nullable=False, default="EUR")
    category = Column(String, nullable=False)
    condition = Column(String, nullable=False)
    images = Column(JSON, nullable=False, default=list)  # Ordered list of image URLs
    # Denormalized snapshot of the seller's location at listing time
    location_city = Column(String, nullable=True)
    location_country = Column(String, nullable=True)
    status = Column(Enum(ProductStatus), nullable=False, default=ProductStatus.AVAILABLE, index=True)
    saves = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Every ORM flush checks and bumps the version; status writes from the
    # transaction state machine bump it through a conditional UPDATE.
    __mapper_args__ = {"version_id_col": version}

    # Relationships
    seller = relationship("User", back_populates="products", foreign_keys=[seller_id])
    transactions = relationship("Transaction", back_populates="product")
