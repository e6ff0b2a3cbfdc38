from fastapi import Depends, Request
from sqlalchemy.orm import Session

from database.connection import get_db
from services.message import MessageService
from services.purchase import PurchaseOrchestrator
from services.realtime import RealtimeChannel

def get_realtime_channel(request: Request) -> RealtimeChannel:
    return request.app.state.realtime_channel

def get_message_service(channel: RealtimeChannel = Depends(get_realtime_channel)) -> MessageService:
    return MessageService(channel)

def get_purchase_orchestrator(
    db: Session = Depends(get_db),
    message_service: MessageService = Depends(get_message_service)
) -> PurchaseOrchestrator:
    return PurchaseOrchestrator(db, message_service)
