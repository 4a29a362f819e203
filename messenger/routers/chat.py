from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, WebSocket, status

from messenger.database.connection import mongo_db_dependency
from messenger.repositories.message_repository import MessageRepository
from messenger.repositories.user_repository import UserRepository
from messenger.schemas.message import (
    CreateMessageInput,
    MessagePublic,
    SeenUpdateResult,
    UpdateMessageSeenInput,
)
from messenger.services.message_service import MessageService
from messenger.services.subscription_service import SubscriptionService
from messenger.utils.realtime_bus import EventBus, get_bus
from messenger.utils.websocket_manager import ConnectionManager


router = APIRouter(prefix="/messages", tags=["chat"])
manager = ConnectionManager()


def get_message_service(db = Depends(mongo_db_dependency), bus: EventBus = Depends(get_bus)) -> MessageService:
    return MessageService(MessageRepository(db), UserRepository(db), bus)


def get_subscription_service(bus: EventBus = Depends(get_bus)) -> SubscriptionService:
    return SubscriptionService(bus)


@router.get("", response_model=List[MessagePublic])
async def get_messages(auth_user_id: str, user_id: str, service: MessageService = Depends(get_message_service)):
    try:
        return await service.get_messages(auth_user_id, user_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.post("", response_model=MessagePublic, response_model_exclude_none=True, status_code=status.HTTP_201_CREATED)
async def create_message(body: CreateMessageInput, service: MessageService = Depends(get_message_service)):
    try:
        return await service.create_message(body.sender, body.receiver, body.message)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.post("/seen", response_model=SeenUpdateResult)
async def update_message_seen(body: UpdateMessageSeenInput, service: MessageService = Depends(get_message_service)):
    return await service.update_message_seen(body.sender, body.receiver)


@router.websocket("/ws/created")
async def message_created(
    websocket: WebSocket,
    auth_user_id: Optional[str] = None,
    user_id: Optional[str] = None,
    service: SubscriptionService = Depends(get_subscription_service),
):
    subscription = await service.message_created(auth_user_id, user_id)
    await manager.stream(auth_user_id or "", websocket, subscription)
