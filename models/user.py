import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Float, Integer
from sqlalchemy.orm import relationship
from database.base import Base

DEFAULT_PROFILE_PICTURE = "https://www.gravatar.com/avatar/?d=mp"

class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    # Identity issued by the external auth provider
    external_id = Column(String, unique=True, index=True, nullable=False)
    username = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    profile_picture = Column(String, default=DEFAULT_PROFILE_PICTURE)
    rating_average = Column(Float, default=0.0)
    rating_count = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    products = relationship("Product", back_populates="seller", foreign_keys="Product.seller_id")

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
