from __future__ import annotations

import pytest

from dm_service.application.dto.events import ChangeEvent
from dm_service.application.exceptions import StoreError
from dm_service.domain.entities.message import Message
from dm_service.domain.value_objects.enums import ChangeType, FeedTable
from dm_service.domain.value_objects.timeline import MessageTimeline
from dm_service.services import conversation_service, message_service, subscription_service
from tests.conftest import FakeUoW, StepClock


class Recorder:
    def __init__(self) -> None:
        self.items: list = []

    async def __call__(self, item) -> None:
        self.items.append(item)


@pytest.fixture
def conversation(store, alice, bob):
    return store.add_conversation(alice.id, bob.id)


@pytest.mark.asyncio
async def test_subscribe_receives_messages_in_send_order(uow, dispatcher, conversation, alice, bob):
    received = Recorder()
    subscription = subscription_service.subscribe(conversation.id, received, dispatcher)

    clock = StepClock()
    sent = [
        await message_service.send_message(conversation.id, alice.id, "m1", uow, clock=clock),
        await message_service.send_message(conversation.id, bob.id, "m2", uow, clock=clock),
        await message_service.send_message(conversation.id, alice.id, "m3", uow, clock=clock),
    ]

    assert received.items == sent
    assert all(isinstance(m, Message) for m in received.items)
    subscription.cancel()


@pytest.mark.asyncio
async def test_subscribe_ignores_other_conversations(store, uow, dispatcher, conversation, alice, carol):
    other = store.add_conversation(alice.id, carol.id)
    received = Recorder()

    with subscription_service.subscribe(conversation.id, received, dispatcher):
        await message_service.send_message(other.id, alice.id, "elsewhere", uow)

    assert received.items == []


@pytest.mark.asyncio
async def test_subscribe_ignores_updates_and_deletes(dispatcher, conversation):
    received = Recorder()
    subscription_service.subscribe(conversation.id, received, dispatcher)

    for change in (ChangeType.UPDATE, ChangeType.DELETE):
        await dispatcher.dispatch(
            ChangeEvent(
                table=FeedTable.MESSAGES,
                type=change,
                record={"conversation_id": str(conversation.id)},
            )
        )

    assert received.items == []


@pytest.mark.asyncio
async def test_cancelled_subscription_receives_nothing(uow, dispatcher, conversation, alice):
    received = Recorder()
    subscription = subscription_service.subscribe(conversation.id, received, dispatcher)

    subscription.cancel()
    subscription.cancel()  # idempotent
    await message_service.send_message(conversation.id, alice.id, "after", uow)

    assert not subscription.active
    assert received.items == []
    assert dispatcher.listener_count() == 0


@pytest.mark.asyncio
async def test_subscription_released_on_scope_exit(dispatcher, conversation):
    with pytest.raises(RuntimeError):
        with subscription_service.subscribe(conversation.id, Recorder(), dispatcher):
            assert dispatcher.listener_count(FeedTable.MESSAGES) == 1
            raise RuntimeError("screen closed")

    assert dispatcher.listener_count() == 0


@pytest.mark.asyncio
async def test_live_and_history_merge_without_duplicates(uow, dispatcher, conversation, alice, bob):
    timeline = MessageTimeline(conversation.id)

    async def on_message(message: Message) -> None:
        timeline.add(message)

    clock = StepClock()
    with subscription_service.subscribe(conversation.id, on_message, dispatcher):
        await message_service.send_message(conversation.id, alice.id, "a", uow, clock=clock)
        await message_service.send_message(conversation.id, bob.id, "b", uow, clock=clock)
        history = await message_service.fetch_messages(conversation.id, uow)

    assert timeline.merge(history) == 0
    assert [m.body for m in timeline.messages] == ["a", "b"]


@pytest.mark.asyncio
async def test_subscribe_all_for_user_reports_own_conversations(
    store, uow, dispatcher, conversation, alice, bob, carol,
):
    foreign = store.add_conversation(bob.id, carol.id)
    events = Recorder()

    handle = await subscription_service.subscribe_all_for_user(alice.id, events, dispatcher, uow)
    await message_service.send_message(conversation.id, bob.id, "for alice", uow)
    await message_service.send_message(foreign.id, bob.id, "not for alice", uow)

    assert [e.record["body"] for e in events.items] == ["for alice"]
    handle.cancel()


@pytest.mark.asyncio
async def test_subscribe_all_for_user_sees_updates_and_deletes(dispatcher, uow, conversation, alice):
    events = Recorder()
    await subscription_service.subscribe_all_for_user(alice.id, events, dispatcher, uow)

    for change in (ChangeType.UPDATE, ChangeType.DELETE):
        await dispatcher.dispatch(
            ChangeEvent(
                table=FeedTable.MESSAGES,
                type=change,
                record={"conversation_id": str(conversation.id)},
            )
        )

    assert [e.type for e in events.items] == [ChangeType.UPDATE, ChangeType.DELETE]


@pytest.mark.asyncio
async def test_subscribe_all_for_user_picks_up_new_conversation(uow, dispatcher, alice, carol):
    events = Recorder()
    await subscription_service.subscribe_all_for_user(alice.id, events, dispatcher, uow)

    conversation_id = await conversation_service.find_or_create_conversation(carol.id, alice.id, uow)
    await message_service.send_message(conversation_id, carol.id, "hi alice", uow)

    tables = [e.table for e in events.items]
    assert tables == [FeedTable.PARTICIPANTS, FeedTable.MESSAGES]
    assert events.items[0].record["user_id"] == str(alice.id)
    assert events.items[1].record["body"] == "hi alice"


@pytest.mark.asyncio
async def test_subscribe_all_for_user_cancel(uow, dispatcher, conversation, alice, bob):
    events = Recorder()
    handle = await subscription_service.subscribe_all_for_user(alice.id, events, dispatcher, uow)

    handle.cancel()
    await message_service.send_message(conversation.id, bob.id, "late", uow)

    assert not handle.active
    assert events.items == []
    assert dispatcher.listener_count() == 0


@pytest.mark.asyncio
async def test_subscribe_all_for_user_releases_listeners_on_store_error(dispatcher, alice):
    uow = FakeUoW()

    async def failing(user_id):
        raise StoreError("connection reset")

    uow.participants.list_conversation_ids = failing

    with pytest.raises(StoreError):
        await subscription_service.subscribe_all_for_user(alice.id, Recorder(), dispatcher, uow)

    assert dispatcher.listener_count() == 0


@pytest.mark.asyncio
async def test_failing_listener_does_not_block_others(uow, dispatcher, conversation, alice):
    async def broken(message: Message) -> None:
        raise RuntimeError("boom")

    received = Recorder()
    subscription_service.subscribe(conversation.id, broken, dispatcher)
    subscription_service.subscribe(conversation.id, received, dispatcher)

    msg = await message_service.send_message(conversation.id, alice.id, "still delivered", uow)

    assert received.items == [msg]
