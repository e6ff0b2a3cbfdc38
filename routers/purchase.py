from fastapi import APIRouter, Depends, status
import logging

from core.response import success_response
from models.user import User
from schemas.conversation import ContactSellerRequest, ConversationResponse
from schemas.message import MessageResponse
from schemas.transaction import TransactionTerms, TransactionWithParties
from services.purchase import PurchaseOrchestrator
from services.transaction import get_transaction
from routers.auth import get_current_user
from routers.dependencies import get_purchase_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter()

def _transaction_payload(orchestrator: PurchaseOrchestrator, transaction) -> dict:
    transaction = get_transaction(orchestrator.db, transaction.id)
    return TransactionWithParties.model_validate(transaction).model_dump(mode="json")

@router.post("/{product_id}/buy", status_code=status.HTTP_201_CREATED)
async def buy_product(
    product_id: str,
    terms: TransactionTerms,
    current_user: User = Depends(get_current_user),
    orchestrator: PurchaseOrchestrator = Depends(get_purchase_orchestrator)
):
    transaction = await orchestrator.buy(current_user.id, product_id, terms)
    return success_response(
        data=_transaction_payload(orchestrator, transaction),
        message="Purchase request sent to the seller"
    )

@router.post("/{product_id}/contact", status_code=status.HTTP_201_CREATED)
async def contact_seller(
    product_id: str,
    request: ContactSellerRequest,
    current_user: User = Depends(get_current_user),
    orchestrator: PurchaseOrchestrator = Depends(get_purchase_orchestrator)
):
    conversation, message = await orchestrator.contact_seller(current_user.id, product_id, request.content)
    return success_response(
        data={
            "conversation": ConversationResponse.model_validate(conversation).model_dump(mode="json"),
            "message": MessageResponse.model_validate(message).model_dump(mode="json"),
        },
        message="Message sent to the seller"
    )

@router.post("/{transaction_id}/confirm")
def confirm_purchase(
    transaction_id: str,
    current_user: User = Depends(get_current_user),
    orchestrator: PurchaseOrchestrator = Depends(get_purchase_orchestrator)
):
    transaction = orchestrator.confirm(current_user.id, transaction_id)
    return success_response(data=_transaction_payload(orchestrator, transaction), message="Purchase confirmed")

@router.post("/{transaction_id}/decline")
def decline_purchase(
    transaction_id: str,
    current_user: User = Depends(get_current_user),
    orchestrator: PurchaseOrchestrator = Depends(get_purchase_orchestrator)
):
    transaction = orchestrator.decline(current_user.id, transaction_id)
    return success_response(data=_transaction_payload(orchestrator, transaction), message="Purchase declined")

@router.post("/{transaction_id}/cancel")
def cancel_purchase(
    transaction_id: str,
    current_user: User = Depends(get_current_user),
    orchestrator: PurchaseOrchestrator = Depends(get_purchase_orchestrator)
):
    transaction = orchestrator.cancel(current_user.id, transaction_id)
    return success_response(data=_transaction_payload(orchestrator, transaction), message="Purchase canceled")

@router.post("/{transaction_id}/received")
def mark_purchase_received(
    transaction_id: str,
    current_user: User = Depends(get_current_user),
    orchestrator: PurchaseOrchestrator = Depends(get_purchase_orchestrator)
):
    transaction = orchestrator.mark_received(current_user.id, transaction_id)
    return success_response(data=_transaction_payload(orchestrator, transaction), message="Purchase completed")
