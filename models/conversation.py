import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Index, func, literal_column
from sqlalchemy.orm import relationship
from database.base import Base

class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    # Participants are stored sorted so the pair is unordered for lookups
    user_one_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    user_two_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    product_id = Column(String, ForeignKey("products.id"), nullable=True, index=True)
    last_message_id = Column(
        String,
        ForeignKey("messages.id", use_alter=True, name="fk_conversations_last_message_id"),
        nullable=True
    )
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, index=True)

    # Relationships
    user_one = relationship("User", foreign_keys=[user_one_id])
    user_two = relationship("User", foreign_keys=[user_two_id])
    product = relationship("Product")
    last_message = relationship("Message", foreign_keys=[last_message_id], post_update=True)
    messages = relationship(
        "Message",
        back_populates="conversation",
        foreign_keys="Message.conversation_id",
        order_by="Message.created_at.desc()"
    )

    @property
    def participants(self):
        return [self.user_one, self.user_two]

    @property
    def participant_ids(self):
        return {self.user_one_id, self.user_two_id}

    @staticmethod
    def ordered_pair(user_a_id: str, user_b_id: str):
        return tuple(sorted((user_a_id, user_b_id)))

# One conversation per participant pair and product; "no product" is keyed as ''
Index(
    "uq_conversations_pair_product",
    Conversation.user_one_id,
    Conversation.user_two_id,
    func.coalesce(Conversation.product_id, literal_column("''")),
    unique=True,
)
