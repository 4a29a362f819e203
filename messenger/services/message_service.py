import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pymongo.errors import PyMongoError

from messenger.repositories.message_repository import MessageRepository
from messenger.repositories.user_repository import UserRepository
from messenger.schemas.message import (
    ConversationNotification,
    ConversationSummary,
    MessagePublic,
    SeenUpdateResult,
)
from messenger.schemas.user import UserPublic
from messenger.utils.realtime_bus import Channels, EventBus


logger = logging.getLogger(__name__)

_NEVER = datetime.min.replace(tzinfo=timezone.utc)


def _recency(summary: ConversationSummary) -> Tuple[bool, datetime]:
    created_at = summary.last_message_created_at
    return created_at is not None, created_at or _NEVER


def _find_last_message(last_messages: Iterable[Dict[str, Any]], partner_id: str) -> Tuple[Optional[Dict[str, Any]], bool]:
    """Pick the partner's entry from the per-sender aggregation.

    Returns the message and whether the requesting user wrote it.
    """
    for msg in last_messages:
        if msg["sender"] == partner_id:
            return msg, False
    for msg in last_messages:
        if msg["receiver"] == partner_id:
            return msg, True
    return None, False


class MessageService:

    def __init__(self, message_repo: MessageRepository, user_repo: UserRepository, bus: EventBus) -> None:
        self._message_repo = message_repo
        self._user_repo = user_repo
        self._bus = bus

    @staticmethod
    def _to_public(doc: Dict[str, Any], users: Dict[str, dict]) -> MessagePublic:
        sender = users.get(doc["sender"])
        receiver = users.get(doc["receiver"])
        return MessagePublic(
            id=doc["_id"],
            sender=UserPublic.from_document(sender) if sender else None,
            receiver=UserPublic.from_document(receiver) if receiver else None,
            message=doc["message"],
            seen=doc.get("seen", False),
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )

    async def _populate(self, messages: List[Dict[str, Any]]) -> List[MessagePublic]:
        user_ids = {m["sender"] for m in messages} | {m["receiver"] for m in messages}
        users = await self._user_repo.get_users_by_ids(user_ids)
        return [self._to_public(m, users) for m in messages]

    async def get_messages(self, auth_user_id: str, user_id: str) -> List[MessagePublic]:
        messages = await self._message_repo.get_messages_between(auth_user_id, user_id)
        return await self._populate(messages)

    async def get_conversations(self, auth_user_id: str) -> List[ConversationSummary]:
        partners = await self._user_repo.get_partners(auth_user_id)
        if not partners:
            return []
        last_messages = await self._message_repo.get_last_messages_by_sender(auth_user_id)

        conversations: List[ConversationSummary] = []
        for partner in partners:
            summary = ConversationSummary(**UserPublic.from_document(partner).model_dump())
            # Grouped by sender only: a partner's own last message wins over a
            # newer one the user sent them.
            last, sent_by_user = _find_last_message(last_messages, partner["_id"])
            if last is not None:
                summary.seen = last.get("seen", False)
                summary.last_message = last["message"]
                summary.last_message_sender = sent_by_user
                summary.last_message_created_at = last["created_at"]
            conversations.append(summary)

        conversations.sort(key=_recency, reverse=True)
        return conversations

    async def create_message(self, sender: str, receiver: str, message: str) -> MessagePublic:
        if not message or not message.strip():
            raise ValueError("Message content cannot be empty")
        sender_user = await self._user_repo.get_user_by_id(sender)
        if not sender_user:
            raise LookupError(f"Sender {sender} not found")

        saved = await self._message_repo.save_message(sender, receiver, message)
        users = await self._user_repo.get_users_by_ids([saved["sender"], saved["receiver"]])
        created = self._to_public(saved, users)
        logger.info("Message %s created from %s to %s", created.id, saved["sender"], saved["receiver"])

        await self._bus.publish(Channels.MESSAGE_CREATED, created.model_copy(deep=True))

        # Two separate writes; a failure in between leaves a one-sided
        # partnership that the next message from either side re-registers.
        receiver_user = users.get(saved["receiver"]) or {}
        sender_knows = saved["receiver"] in sender_user.get("messages", [])
        receiver_knows = saved["sender"] in receiver_user.get("messages", [])
        if not (sender_knows and receiver_knows):
            await self._user_repo.add_partner(saved["sender"], saved["receiver"])
            await self._user_repo.add_partner(saved["receiver"], saved["sender"])
            logger.info("Registered conversation between %s and %s", saved["sender"], saved["receiver"])
        if not sender_knows:
            created.is_first_message = True

        notification = ConversationNotification(
            **UserPublic.from_document(sender_user).model_dump(),
            receiver_id=saved["receiver"],
            seen=False,
            last_message=created.message,
            last_message_sender=False,
            last_message_created_at=created.created_at,
        )
        await self._bus.publish(Channels.NEW_CONVERSATION, notification)
        return created

    async def update_message_seen(self, sender: str, receiver: str) -> SeenUpdateResult:
        try:
            matched, modified = await self._message_repo.mark_seen(sender, receiver)
        except (ValueError, PyMongoError) as exc:
            logger.exception("Marking messages from %s to %s as seen failed", sender, receiver)
            return SeenUpdateResult(ok=False, error=str(exc))
        logger.debug("Marked %d of %d message(s) from %s to %s as seen", modified, matched, sender, receiver)
        return SeenUpdateResult(ok=True, matched=matched, modified=modified)
