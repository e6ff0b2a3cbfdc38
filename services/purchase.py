"""
User-facing purchase actions composed from the transaction state machine,
the conversation registry and the message pipeline.
"""
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from typing import Dict, FrozenSet, Tuple
import logging

from models.conversation import Conversation
from models.message import Message
from models.transaction import Transaction, TransactionStatus
from schemas.transaction import TransactionTerms
from services.conversation import find_or_create_conversation
from services.message import MessageService
from services.product import get_product_or_404
from services.transaction import create_transaction, get_transaction, parse_status, update_transaction_status
from core.exceptions import AuthorizationError, BaseCustomException, ValidationError

logger = logging.getLogger(__name__)

BUYER = "buyer"
SELLER = "seller"

# Which party may move a transaction into each status
TRANSITION_ROLES: Dict[TransactionStatus, FrozenSet[str]] = {
    TransactionStatus.CONFIRMED: frozenset({SELLER}),
    TransactionStatus.COMPLETED: frozenset({BUYER}),
    TransactionStatus.CANCELED: frozenset({BUYER, SELLER}),
}


class PurchaseOrchestrator:
    def __init__(self, db: Session, message_service: MessageService):
        self.db = db
        self.messages = message_service

    async def buy(self, buyer_id: str, product_id: str, terms: TransactionTerms) -> Transaction:
        """
        Commit to buying a product from its seller. A message to the seller,
        if any, is also delivered in the product conversation; that delivery
        is best effort and never undoes the purchase.
        """
        product = get_product_or_404(self.db, product_id)
        transaction = create_transaction(self.db, buyer_id, product.id, product.seller_id, terms)

        if terms.message_to_seller:
            try:
                await self.contact_seller(buyer_id, product.id, terms.message_to_seller)
            except (BaseCustomException, SQLAlchemyError) as e:
                logger.warning(f"Purchase {transaction.id} created but message to seller failed: {str(e)}")

        return transaction

    async def contact_seller(self, buyer_id: str, product_id: str, content: str) -> Tuple[Conversation, Message]:
        product = get_product_or_404(self.db, product_id)
        if product.seller_id == buyer_id:
            raise ValidationError("You cannot message yourself about your own product", field="product_id")

        conversation, _ = find_or_create_conversation(self.db, buyer_id, product.seller_id, product.id)
        message = await self.messages.send_message(
            self.db,
            conversation.id,
            buyer_id,
            product.seller_id,
            content,
            product.id
        )
        return conversation, message

    def role_of(self, actor_id: str, transaction: Transaction) -> str:
        if actor_id == transaction.buyer_id:
            return BUYER
        if actor_id == transaction.seller_id:
            return SELLER
        raise AuthorizationError("You are not a party to this transaction")

    def update_status(self, actor_id: str, transaction_id: str, status) -> Transaction:
        """Apply a status change on behalf of the buyer or the seller"""
        target = parse_status(status)
        transaction = get_transaction(self.db, transaction_id)
        role = self.role_of(actor_id, transaction)

        if role not in TRANSITION_ROLES.get(target, frozenset()):
            raise AuthorizationError(
                f"The {role} cannot mark this transaction as {target.value}",
                details={"role": role, "status": target.value}
            )

        logger.info(f"{role.capitalize()} {actor_id} requests {target.value} on transaction {transaction.id}")
        return update_transaction_status(self.db, transaction.id, target)

    def confirm(self, seller_id: str, transaction_id: str) -> Transaction:
        return self._act_as(SELLER, seller_id, transaction_id, TransactionStatus.CONFIRMED)

    def decline(self, seller_id: str, transaction_id: str) -> Transaction:
        return self._act_as(SELLER, seller_id, transaction_id, TransactionStatus.CANCELED)

    def cancel(self, buyer_id: str, transaction_id: str) -> Transaction:
        return self._act_as(BUYER, buyer_id, transaction_id, TransactionStatus.CANCELED)

    def mark_received(self, buyer_id: str, transaction_id: str) -> Transaction:
        return self._act_as(BUYER, buyer_id, transaction_id, TransactionStatus.COMPLETED)

    def _act_as(self, expected_role: str, actor_id: str, transaction_id: str, target: TransactionStatus) -> Transaction:
        transaction = get_transaction(self.db, transaction_id)
        if self.role_of(actor_id, transaction) != expected_role:
            raise AuthorizationError(f"Only the {expected_role} can do this")
        return self.update_status(actor_id, transaction_id, target)
