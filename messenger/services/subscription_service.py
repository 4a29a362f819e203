import logging
from typing import Optional

from messenger.schemas.message import ConversationNotification, MessagePublic
from messenger.utils.ids import to_object_id
from messenger.utils.realtime_bus import Channels, EventBus, Predicate, Subscription


logger = logging.getLogger(__name__)


def _canonical_id(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    try:
        return str(to_object_id(value))
    except ValueError:
        return None


def message_created_filter(auth_user_id: Optional[str], user_id: Optional[str]) -> Predicate:
    pair = {_canonical_id(auth_user_id), _canonical_id(user_id)}

    def _filter(message: MessagePublic) -> bool:
        if None in pair or message.sender is None or message.receiver is None:
            return False
        return {message.sender.id, message.receiver.id} == pair

    return _filter


def new_conversation_filter(auth_user_id: Optional[str]) -> Predicate:
    addressee = _canonical_id(auth_user_id)

    def _filter(notification: ConversationNotification) -> bool:
        return addressee is not None and notification.receiver_id == addressee

    return _filter


class SubscriptionService:

    def __init__(self, bus: EventBus) -> None:
        self._bus = bus

    async def message_created(self, auth_user_id: Optional[str], user_id: Optional[str]) -> Subscription:
        """Messages exchanged between ``auth_user_id`` and ``user_id``, either direction."""
        logger.info("Subscribing %s to messages with %s", auth_user_id, user_id)
        return await self._bus.subscribe(
            Channels.MESSAGE_CREATED,
            message_created_filter(auth_user_id, user_id),
        )

    async def new_conversation(self, auth_user_id: Optional[str]) -> Subscription:
        logger.info("Subscribing %s to new conversations", auth_user_id)
        return await self._bus.subscribe(
            Channels.NEW_CONVERSATION,
            new_conversation_filter(auth_user_id),
        )
