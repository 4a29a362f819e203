import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional


logger = logging.getLogger(__name__)

Predicate = Callable[[Any], bool]


class Channels:

    MESSAGE_CREATED = "MESSAGE_CREATED"
    NEW_CONVERSATION = "NEW_CONVERSATION"


_CLOSED = object()


class Subscription:
    """One subscriber's view of a channel.

    Iterate it (``async for``) to receive the payloads that passed the
    predicate. ``close()`` is terminal: the iterator drains what was already
    delivered and then stops.
    """

    def __init__(self, bus: "EventBus", channel: str, predicate: Optional[Predicate] = None) -> None:
        self._bus = bus
        self.channel = channel
        self._predicate = predicate
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def matches(self, payload: Any) -> bool:
        if self._predicate is None:
            return True
        try:
            return bool(self._predicate(payload))
        except Exception:
            logger.exception("Filter for %s subscription raised; event dropped", self.channel)
            return False

    def deliver(self, payload: Any) -> None:
        self._queue.put_nowait(payload)

    def pending(self) -> int:
        return self._queue.qsize()

    async def get(self) -> Any:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._bus.unsubscribe(self)
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Any:
        return await self.get()

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


class EventBus:
    """In-process pub/sub: fan-out per channel, best effort, no buffering for absent subscribers."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[Subscription]] = {}

    async def publish(self, channel: str, payload: Any) -> int:
        delivered = 0
        for sub in list(self._subscribers.get(channel, ())):
            if sub.matches(payload):
                sub.deliver(payload)
                delivered += 1
        logger.debug("Published on %s to %d subscriber(s)", channel, delivered)
        return delivered

    async def subscribe(self, channel: str, predicate: Optional[Predicate] = None) -> Subscription:
        sub = Subscription(self, channel, predicate)
        self._subscribers.setdefault(channel, []).append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        subs = self._subscribers.get(sub.channel)
        if not subs:
            return
        try:
            subs.remove(sub)
        except ValueError:
            pass
        if not subs:
            del self._subscribers[sub.channel]

    def subscriber_count(self, channel: str) -> int:
        return len(self._subscribers.get(channel, ()))


_bus: Optional[EventBus] = None


async def get_bus() -> EventBus:
    global _bus
    if _bus is None:
        _bus = EventBus()
    return _bus
