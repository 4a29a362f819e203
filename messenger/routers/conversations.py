from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, WebSocket, status

from messenger.routers.chat import get_message_service, get_subscription_service, manager
from messenger.schemas.message import ConversationSummary
from messenger.services.message_service import MessageService
from messenger.services.subscription_service import SubscriptionService


router = APIRouter(prefix="/conversations", tags=["chat"])


@router.get("", response_model=List[ConversationSummary])
async def list_conversations(auth_user_id: str, service: MessageService = Depends(get_message_service)):
    try:
        return await service.get_conversations(auth_user_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.websocket("/ws/new")
async def new_conversation(
    websocket: WebSocket,
    auth_user_id: Optional[str] = None,
    service: SubscriptionService = Depends(get_subscription_service),
):
    subscription = await service.new_conversation(auth_user_id)
    await manager.stream(auth_user_id or "", websocket, subscription)
