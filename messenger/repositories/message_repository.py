from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from messenger.models.message import MessageDocument
from messenger.utils.ids import to_object_id


def last_messages_pipeline(user_oid: ObjectId) -> List[Dict[str, Any]]:
    """Newest message per sender among all messages ``user_oid`` sent or received.

    Grouping is by sender only, so for a given partner the result holds the
    partner's newest message to the user and, separately, the user's newest
    message overall (under the user's own group).
    """
    return [
        {"$match": {"$or": [{"receiver": user_oid}, {"sender": user_oid}]}},
        {"$sort": {"created_at": DESCENDING}},
        {"$group": {"_id": "$sender", "doc": {"$first": "$$ROOT"}}},
        {"$replaceRoot": {"newRoot": "$doc"}},
    ]


def _normalize(doc: Dict[str, Any]) -> MessageDocument:
    doc["_id"] = str(doc.get("_id"))
    doc["sender"] = str(doc.get("sender"))
    doc["receiver"] = str(doc.get("receiver"))
    return doc


class MessageRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["messages"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("sender", ASCENDING), ("receiver", ASCENDING)])
        await self.collection.create_index([("receiver", ASCENDING), ("sender", ASCENDING), ("seen", ASCENDING)])
        await self.collection.create_index([("created_at", DESCENDING)])

    async def save_message(self, sender: str, receiver: str, message: str) -> MessageDocument:
        now = datetime.now(timezone.utc)
        doc: Dict[str, Any] = {
            "sender": to_object_id(sender),
            "receiver": to_object_id(receiver),
            "message": message,
            "seen": False,
            "created_at": now,
            "updated_at": now,
        }
        result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return _normalize(dict(doc))

    async def get_messages_between(self, user_a: str, user_b: str) -> List[MessageDocument]:
        a, b = to_object_id(user_a), to_object_id(user_b)
        query = {"$or": [{"sender": a, "receiver": b}, {"sender": b, "receiver": a}]}
        cursor = self.collection.find(query).sort([("updated_at", ASCENDING), ("_id", ASCENDING)])
        items = await cursor.to_list(length=None)
        return [_normalize(it) for it in items]

    async def get_last_messages_by_sender(self, user_id: str) -> List[MessageDocument]:
        cursor = self.collection.aggregate(last_messages_pipeline(to_object_id(user_id)))
        items = await cursor.to_list(length=None)
        return [_normalize(it) for it in items]

    async def mark_seen(self, sender: str, receiver: str) -> Tuple[int, int]:
        """Flip every unseen sender->receiver message. Returns (matched, modified)."""
        result = await self.collection.update_many(
            {"sender": to_object_id(sender), "receiver": to_object_id(receiver), "seen": False},
            {"$set": {"seen": True, "updated_at": datetime.now(timezone.utc)}},
        )
        return result.matched_count or 0, result.modified_count or 0
