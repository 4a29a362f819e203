import asyncio

import pytest

from messenger.utils.realtime_bus import Channels, EventBus


async def _next(subscription):
    return await asyncio.wait_for(subscription.get(), timeout=1)


@pytest.mark.asyncio
async def test_message_created_delivers_both_directions(message_service, subscription_service, users):
    alice, bob, carol = users["alice"], users["bob"], users["carol"]
    sub = await subscription_service.message_created(alice, bob)

    await message_service.create_message(alice, bob, "to bob")
    await message_service.create_message(alice, carol, "to carol")
    await message_service.create_message(bob, alice, "to alice")

    assert (await _next(sub)).message == "to bob"
    assert (await _next(sub)).message == "to alice"
    assert sub.pending() == 0


@pytest.mark.asyncio
async def test_message_created_ignores_other_pairs(message_service, subscription_service, users):
    sub = await subscription_service.message_created(users["bob"], users["carol"])

    await message_service.create_message(users["alice"], users["bob"], "hi")
    await message_service.create_message(users["alice"], users["carol"], "hi")

    assert sub.pending() == 0


@pytest.mark.asyncio
async def test_message_created_requires_both_ids(message_service, subscription_service, users):
    alice, bob = users["alice"], users["bob"]
    missing_user = await subscription_service.message_created(alice, None)
    missing_auth = await subscription_service.message_created("", bob)

    await message_service.create_message(alice, bob, "hi")

    assert missing_user.pending() == 0
    assert missing_auth.pending() == 0


@pytest.mark.asyncio
async def test_message_created_matches_ids_case_insensitively(message_service, subscription_service, users):
    alice, bob = users["alice"], users["bob"]
    sub = await subscription_service.message_created(alice.upper(), bob)

    await message_service.create_message(bob, alice, "hi")

    assert (await _next(sub)).sender.id == bob


@pytest.mark.asyncio
async def test_new_conversation_addressed_to_receiver_only(message_service, subscription_service, users):
    alice, bob, carol = users["alice"], users["bob"], users["carol"]
    bob_sub = await subscription_service.new_conversation(bob)
    carol_sub = await subscription_service.new_conversation(carol)
    anonymous = await subscription_service.new_conversation(None)

    await message_service.create_message(alice, bob, "hi")

    notification = await _next(bob_sub)
    assert notification.receiver_id == bob
    assert notification.id == alice
    assert carol_sub.pending() == 0
    assert anonymous.pending() == 0


@pytest.mark.asyncio
async def test_closed_subscription_receives_nothing(message_service, subscription_service, bus, users):
    alice, bob = users["alice"], users["bob"]
    sub = await subscription_service.message_created(alice, bob)
    await sub.close()

    await message_service.create_message(alice, bob, "hi")

    assert bus.subscriber_count(Channels.MESSAGE_CREATED) == 0
    assert [event async for event in sub] == []


@pytest.mark.asyncio
async def test_bus_fans_out_to_matching_subscribers():
    bus = EventBus()
    evens = await bus.subscribe("numbers", lambda n: n % 2 == 0)
    everything = await bus.subscribe("numbers")
    other = await bus.subscribe("letters")

    delivered = [await bus.publish("numbers", n) for n in range(4)]

    assert delivered == [2, 1, 2, 1]
    assert evens.pending() == 2
    assert everything.pending() == 4
    assert other.pending() == 0


@pytest.mark.asyncio
async def test_bus_drops_event_when_filter_raises():
    bus = EventBus()
    broken = await bus.subscribe("numbers", lambda n: 1 / n > 0)
    healthy = await bus.subscribe("numbers")

    assert await bus.publish("numbers", 0) == 1
    assert broken.pending() == 0
    assert healthy.pending() == 1


@pytest.mark.asyncio
async def test_close_drains_delivered_events_then_stops():
    bus = EventBus()
    async with await bus.subscribe("numbers") as sub:
        await bus.publish("numbers", 1)
        await bus.publish("numbers", 2)

    assert sub.closed
    assert await bus.publish("numbers", 3) == 0
    assert [n async for n in sub] == [1, 2]


@pytest.mark.asyncio
async def test_close_wakes_waiting_consumer():
    bus = EventBus()
    sub = await bus.subscribe("numbers")

    async def consume():
        return [n async for n in sub]

    task = asyncio.create_task(consume())
    await asyncio.sleep(0)
    await bus.publish("numbers", 7)
    await sub.close()

    assert await asyncio.wait_for(task, timeout=1) == [7]
