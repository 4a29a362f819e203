import copy
from datetime import datetime, timedelta, timezone
from typing import Dict, List

import pytest
from bson import ObjectId
from pymongo.errors import PyMongoError

from messenger.services.message_service import MessageService
from messenger.services.subscription_service import SubscriptionService
from messenger.utils.ids import to_object_id
from messenger.utils.realtime_bus import EventBus


class Clock:
    """Strictly increasing timestamps, one second apart."""

    def __init__(self) -> None:
        self._now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self._now += timedelta(seconds=1)
        return self._now


class FakeUserRepository:

    def __init__(self) -> None:
        self.users: Dict[str, dict] = {}

    def add_user(self, username: str, **fields) -> str:
        user_id = str(ObjectId())
        self.users[user_id] = {
            "_id": user_id,
            "username": username,
            "full_name": fields.get("full_name", username.title()),
            "image": fields.get("image"),
            "is_online": fields.get("is_online", False),
            "messages": list(fields.get("messages", [])),
        }
        return user_id

    async def get_user_by_id(self, user_id: str):
        to_object_id(user_id)
        doc = self.users.get(user_id)
        return copy.deepcopy(doc) if doc else None

    async def get_users_by_ids(self, user_ids, projection=None):
        return {uid: copy.deepcopy(self.users[uid]) for uid in set(user_ids) if uid in self.users}

    async def get_partners(self, user_id: str):
        to_object_id(user_id)
        user = self.users.get(user_id)
        if not user:
            return []
        return [copy.deepcopy(self.users[pid]) for pid in user["messages"] if pid in self.users]

    async def add_partner(self, user_id: str, partner_id: str) -> bool:
        user = self.users.get(user_id)
        if not user or partner_id in user["messages"]:
            return False
        user["messages"].append(partner_id)
        return True


class FakeMessageRepository:
    """Mirrors the MongoDB queries of MessageRepository over a list."""

    def __init__(self, clock: Clock) -> None:
        self.messages: List[dict] = []
        self._clock = clock
        self.fail_mark_seen = False

    async def save_message(self, sender: str, receiver: str, message: str) -> dict:
        now = self._clock()
        doc = {
            "_id": str(ObjectId()),
            "sender": sender,
            "receiver": receiver,
            "message": message,
            "seen": False,
            "created_at": now,
            "updated_at": now,
        }
        self.messages.append(doc)
        return dict(doc)

    async def get_messages_between(self, user_a: str, user_b: str) -> List[dict]:
        to_object_id(user_a)
        to_object_id(user_b)
        pairs = {(user_a, user_b), (user_b, user_a)}
        found = [dict(m) for m in self.messages if (m["sender"], m["receiver"]) in pairs]
        return sorted(found, key=lambda m: m["updated_at"])

    async def get_last_messages_by_sender(self, user_id: str) -> List[dict]:
        relevant = [m for m in self.messages if user_id in (m["sender"], m["receiver"])]
        newest: Dict[str, dict] = {}
        for msg in sorted(relevant, key=lambda m: m["created_at"], reverse=True):
            newest.setdefault(msg["sender"], msg)
        return [dict(m) for m in newest.values()]

    async def mark_seen(self, sender: str, receiver: str):
        if self.fail_mark_seen:
            raise PyMongoError("write concern error")
        matched = [
            m for m in self.messages
            if m["sender"] == sender and m["receiver"] == receiver and not m["seen"]
        ]
        for msg in matched:
            msg["seen"] = True
            msg["updated_at"] = self._clock()
        return len(matched), len(matched)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def user_repo():
    return FakeUserRepository()


@pytest.fixture
def message_repo(clock):
    return FakeMessageRepository(clock)


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def users(user_repo):
    """Three users with no conversations yet, keyed alice/bob/carol."""
    return {name: user_repo.add_user(name) for name in ("alice", "bob", "carol")}


@pytest.fixture
def message_service(message_repo, user_repo, bus):
    return MessageService(message_repo, user_repo, bus)


@pytest.fixture
def subscription_service(bus):
    return SubscriptionService(bus)
