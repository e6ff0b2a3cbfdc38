from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
import logging

from database.connection import get_db
from core.response import success_response
from core.exceptions import AuthorizationError
from models.user import User
from schemas.transaction import TransactionCreate, TransactionStatusUpdate, TransactionWithParties
from services.purchase import PurchaseOrchestrator
from services.transaction import (
    create_transaction,
    get_transaction,
    list_transactions_by_buyer,
    list_transactions_by_seller,
)
from services.user import get_user_or_404, resolve_user
from routers.auth import get_current_user
from routers.dependencies import get_purchase_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter()

def _serialize(transaction) -> dict:
    return TransactionWithParties.model_validate(transaction).model_dump(mode="json")

def _require_self(db: Session, user_ref: str, current_user: User) -> User:
    user = get_user_or_404(db, user_ref)
    if user.id != current_user.id:
        raise AuthorizationError("You can only list your own transactions")
    return user

@router.post("/create", status_code=status.HTTP_201_CREATED)
def create_user_transaction(
    transaction_data: TransactionCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Buyer commits to purchase a product"""
    if transaction_data.buyer:
        buyer = resolve_user(db, transaction_data.buyer)
        if buyer and buyer.id != current_user.id:
            raise AuthorizationError("Transactions can only be created by the buyer")

    transaction = create_transaction(
        db,
        transaction_data.buyer,
        transaction_data.product,
        transaction_data.seller,
        transaction_data.terms()
    )
    transaction = get_transaction(db, transaction.id)

    return success_response(
        data=_serialize(transaction),
        message="Transaction created successfully"
    )

@router.get("/buyer/{user_id}")
def get_buyer_transactions(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    user = _require_self(db, user_id, current_user)
    transactions = list_transactions_by_buyer(db, user.id)
    return success_response(
        data=[_serialize(t) for t in transactions],
        message=f"Retrieved {len(transactions)} transactions successfully"
    )

@router.get("/seller/{user_id}")
def get_seller_transactions(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    user = _require_self(db, user_id, current_user)
    transactions = list_transactions_by_seller(db, user.id)
    return success_response(
        data=[_serialize(t) for t in transactions],
        message=f"Retrieved {len(transactions)} transactions successfully"
    )

@router.put("/update/{transaction_id}")
def update_user_transaction(
    transaction_id: str,
    status_data: TransactionStatusUpdate,
    current_user: User = Depends(get_current_user),
    orchestrator: PurchaseOrchestrator = Depends(get_purchase_orchestrator)
):
    """Move a transaction to a new status on behalf of the buyer or the seller"""
    transaction = orchestrator.update_status(current_user.id, transaction_id, status_data.status)
    transaction = get_transaction(orchestrator.db, transaction.id)

    return success_response(
        data=_serialize(transaction),
        message=f"Transaction marked as {transaction.status.value}"
    )

@router.get("/{transaction_id}")
def get_user_transaction(
    transaction_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    transaction = get_transaction(db, transaction_id)
    if current_user.id not in (transaction.buyer_id, transaction.seller_id):
        raise AuthorizationError("You are not a party to this transaction")

    return success_response(
        data=_serialize(transaction),
        message="Transaction retrieved successfully"
    )
