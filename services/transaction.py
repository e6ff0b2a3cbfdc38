"""
Transaction lifecycle: creation, status transitions and the product
availability that follows from them.
"""
from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import IntegrityError
from sqlalchemy import update
from typing import Dict, FrozenSet, Iterable, List, Optional
import logging

from models.product import ProductStatus
from models.transaction import Transaction, TransactionStatus
from models.outbox import ProductStatusSync
from schemas.transaction import TransactionTerms
from services.user import resolve_user, get_user_or_404
from services.product import get_active_product, set_product_status
from services.product_sync import apply_product_sync
from core.exceptions import (
    BaseCustomException,
    ConflictError,
    InvalidStateTransitionError,
    ResourceNotFoundError,
    ValidationError,
)
from core.validators import is_valid_id, require_fields

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[TransactionStatus, FrozenSet[TransactionStatus]] = {
    TransactionStatus.PENDING: frozenset({TransactionStatus.CONFIRMED, TransactionStatus.CANCELED}),
    TransactionStatus.CONFIRMED: frozenset({TransactionStatus.COMPLETED, TransactionStatus.CANCELED}),
    TransactionStatus.COMPLETED: frozenset(),
    TransactionStatus.CANCELED: frozenset(),
}

# Product status implied by a transaction entering each status.
# Pending has no entry: the reservation happens at creation.
PRODUCT_STATUS_FOR_TRANSACTION: Dict[TransactionStatus, ProductStatus] = {
    TransactionStatus.COMPLETED: ProductStatus.SOLD,
    TransactionStatus.CANCELED: ProductStatus.AVAILABLE,
    TransactionStatus.CONFIRMED: ProductStatus.RESERVED,
}

# Higher rank means further along the happy path
_PROGRESS_RANK = {
    TransactionStatus.PENDING: 1,
    TransactionStatus.CONFIRMED: 2,
    TransactionStatus.COMPLETED: 3,
}


class TransactionStateMachine:
    """Validates status changes against the transaction lifecycle."""

    def __init__(self, transitions: Dict[TransactionStatus, FrozenSet[TransactionStatus]] = ALLOWED_TRANSITIONS):
        self.transitions = transitions

    def allowed_from(self, current: TransactionStatus) -> FrozenSet[TransactionStatus]:
        return self.transitions.get(current, frozenset())

    def can_transition(self, current: TransactionStatus, target: TransactionStatus) -> bool:
        return target in self.allowed_from(current)

    def validate_transition(self, current: TransactionStatus, target: TransactionStatus) -> None:
        if not self.can_transition(current, target):
            raise InvalidStateTransitionError(
                current.value,
                target.value,
                allowed=sorted(s.value for s in self.allowed_from(current))
            )

    def is_terminal(self, status: TransactionStatus) -> bool:
        return not self.allowed_from(status)


state_machine = TransactionStateMachine()


def derive_product_status(transactions: Iterable[Transaction]) -> ProductStatus:
    """Product status implied by the most advanced non-canceled transaction."""
    most_advanced = None
    for transaction in transactions:
        rank = _PROGRESS_RANK.get(transaction.status)
        if rank is None:
            continue
        if most_advanced is None or rank > _PROGRESS_RANK[most_advanced]:
            most_advanced = transaction.status

    if most_advanced is None:
        return ProductStatus.AVAILABLE
    if most_advanced == TransactionStatus.COMPLETED:
        return ProductStatus.SOLD
    return ProductStatus.RESERVED


def parse_status(value) -> TransactionStatus:
    if isinstance(value, TransactionStatus):
        return value
    try:
        return TransactionStatus(value)
    except ValueError:
        raise ValidationError(
            f"Invalid transaction status: {value}",
            field="status",
            details={"allowed": [s.value for s in TransactionStatus]}
        )


def create_transaction(
    db: Session,
    buyer: Optional[str],
    product: Optional[str],
    seller: Optional[str],
    terms: TransactionTerms
) -> Transaction:
    """
    Open a Pending transaction and reserve the product.

    The transaction row is flushed before the product is touched. The
    reservation is a conditional write (Available -> Reserved) in the same
    database transaction; losing it, or tripping the one-active-transaction
    index, rolls the creation back with a ConflictError.
    """
    require_fields(
        {"buyer": buyer, "product": product, "seller": seller},
        message="Buyer, product, and seller are required"
    )
    if not is_valid_id(product):
        raise ValidationError("Invalid product ID", field="product")

    user_buyer = resolve_user(db, buyer)
    if not user_buyer:
        raise ResourceNotFoundError("User", buyer)
    user_seller = resolve_user(db, seller)
    if not user_seller:
        raise ResourceNotFoundError("User", seller)
    product_record = get_active_product(db, product)
    if not product_record:
        raise ResourceNotFoundError("Product", product)

    if user_buyer.id == user_seller.id:
        raise ValidationError("Buyer and seller cannot be the same user", field="buyer")
    if product_record.seller_id != user_seller.id:
        raise ValidationError("Seller does not own this product", field="seller")
    if product_record.status != ProductStatus.AVAILABLE:
        raise ConflictError(
            "Product is not available",
            details={"product_id": product_record.id, "status": product_record.status.value}
        )

    try:
        transaction = Transaction(
            buyer_id=user_buyer.id,
            seller_id=user_seller.id,
            product_id=product_record.id,
            price_amount=product_record.price_amount,
            price_currency=product_record.price_currency,
            status=TransactionStatus.PENDING,
            payment_method=terms.payment_method,
            delivery_method=terms.delivery_method,
            meeting_date=terms.meeting_date,
            meeting_time=terms.meeting_time,
            meeting_location=terms.meeting_location,
            message_to_seller=terms.message_to_seller,
        )
        db.add(transaction)
        db.flush()

        reserved = set_product_status(
            db,
            product_record.id,
            ProductStatus.RESERVED,
            expected_status=ProductStatus.AVAILABLE
        )
        if not reserved:
            raise ConflictError(
                "Product was reserved by another buyer",
                details={"product_id": product_record.id}
            )

        db.commit()
        db.refresh(transaction)

        logger.info(
            f"Transaction created: {transaction.id} for product {product_record.id} "
            f"(buyer {user_buyer.id}, seller {user_seller.id})"
        )
        return transaction

    except IntegrityError:
        db.rollback()
        logger.warning(f"Rejected second active transaction for product {product_record.id}")
        raise ConflictError(
            "Product already has an active transaction",
            details={"product_id": product_record.id}
        )
    except BaseCustomException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error creating transaction: {str(e)}")
        raise


def get_transaction(db: Session, transaction_id: str) -> Transaction:
    if not is_valid_id(transaction_id):
        raise ValidationError("Invalid transaction ID", field="transaction_id")

    transaction = _with_parties(db.query(Transaction)).filter(Transaction.id == transaction_id).first()
    if not transaction:
        raise ResourceNotFoundError("Transaction", transaction_id)
    return transaction


def update_transaction_status(db: Session, transaction_id: str, new_status) -> Transaction:
    """
    Move a transaction along its lifecycle and bring the product along.

    The status write is a compare-and-swap on the status that was read, and
    it is committed together with an outbox row for the product update. The
    product write itself is attempted right after; if it fails the outbox row
    stays pending for the retry worker and the status change still stands.
    """
    target = parse_status(new_status)
    transaction = get_transaction(db, transaction_id)
    current = transaction.status

    state_machine.validate_transition(current, target)

    try:
        result = db.execute(
            update(Transaction)
            .where(Transaction.id == transaction.id, Transaction.status == current)
            .values(status=target)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError(
                "Transaction status changed concurrently",
                details={"transaction_id": transaction.id}
            )

        sync = None
        product_status = PRODUCT_STATUS_FOR_TRANSACTION.get(target)
        if product_status is not None:
            sync = ProductStatusSync(
                transaction_id=transaction.id,
                product_id=transaction.product_id,
                target_status=product_status,
            )
            db.add(sync)

        db.commit()

    except BaseCustomException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating transaction {transaction_id}: {str(e)}")
        raise

    logger.info(f"Transaction {transaction.id} moved {current.value} -> {target.value}")

    if sync is not None:
        apply_product_sync(db, sync.id)

    db.refresh(transaction)
    return transaction


def _with_parties(query):
    return query.options(
        joinedload(Transaction.buyer),
        joinedload(Transaction.seller),
        joinedload(Transaction.product),
    )


def list_transactions_by_buyer(db: Session, user_ref: str) -> List[Transaction]:
    """Purchases of a user, newest first"""
    user = get_user_or_404(db, user_ref)
    return (
        _with_parties(db.query(Transaction))
        .filter(Transaction.buyer_id == user.id)
        .order_by(Transaction.created_at.desc())
        .all()
    )


def list_transactions_by_seller(db: Session, user_ref: str) -> List[Transaction]:
    """Sales of a user, newest first"""
    user = get_user_or_404(db, user_ref)
    return (
        _with_parties(db.query(Transaction))
        .filter(Transaction.seller_id == user.id)
        .order_by(Transaction.created_at.desc())
        .all()
    )
