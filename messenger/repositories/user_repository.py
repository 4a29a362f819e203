from typing import Any, Dict, Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from messenger.models.user import UserDocument
from messenger.utils.ids import to_object_id


PROFILE_PROJECTION = {"username": 1, "full_name": 1, "image": 1, "is_online": 1}


def _normalize(doc: Dict[str, Any]) -> UserDocument:
    # normalize ids to strings for the service/API layer
    doc["_id"] = str(doc["_id"])
    if "messages" in doc:
        doc["messages"] = [str(pid) for pid in doc.get("messages") or []]
    return doc


class UserRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db.get_collection("users")

    async def get_user_by_id(self, user_id: str) -> Optional[UserDocument]:
        user = await self._collection.find_one({"_id": to_object_id(user_id)})
        if user:
            _normalize(user)
        return user

    async def get_users_by_ids(
        self,
        user_ids: Iterable[str],
        projection: Optional[Dict[str, int]] = None,
    ) -> Dict[str, UserDocument]:
        oids = list({to_object_id(uid) for uid in user_ids})
        if not oids:
            return {}
        users: Dict[str, UserDocument] = {}
        async for doc in self._collection.find({"_id": {"$in": oids}}, projection):
            _normalize(doc)
            users[doc["_id"]] = doc
        return users

    async def get_partners(self, user_id: str) -> List[UserDocument]:
        """Conversation partners of ``user_id`` as profile documents, in partner-list order."""
        user = await self._collection.find_one({"_id": to_object_id(user_id)}, {"messages": 1})
        if not user:
            return []
        partner_ids = [str(pid) for pid in user.get("messages") or []]
        by_id = await self.get_users_by_ids(partner_ids, PROFILE_PROJECTION)
        return [by_id[pid] for pid in partner_ids if pid in by_id]

    async def add_partner(self, user_id: str, partner_id: str) -> bool:
        # $addToSet keeps a repeated registration from duplicating the partner
        result = await self._collection.update_one(
            {"_id": to_object_id(user_id)},
            {"$addToSet": {"messages": to_object_id(partner_id)}},
        )
        return result.modified_count > 0
