"""Shared test fixtures and in-memory fakes.

All fake repositories share one FakeStore, so several units of work opened
against the same store see each other's writes immediately. Staged change
events are handed to a FeedDispatcher on commit, the way the outbox worker
and the Redis subscriber deliver them after a real commit.
"""
from __future__ import annotations

import asyncio
import itertools
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

import pytest

from dm_service.application.dto.events import ChangeEvent
from dm_service.application.repositories.outbox import OutboxRecord
from dm_service.domain.entities.conversation import Conversation
from dm_service.domain.entities.message import Message
from dm_service.domain.entities.participant import Participant
from dm_service.domain.entities.profile import Profile
from dm_service.infrastructure.feed.dispatcher import FeedDispatcher

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class StepClock:
    """Returns BASE_TIME, then one second later on every call."""

    def __init__(self, start: datetime = BASE_TIME, step: timedelta = timedelta(seconds=1)) -> None:
        self._next = start
        self._step = step

    def now(self) -> datetime:
        value = self._next
        self._next += self._step
        return value


class FixedClock:
    def __init__(self, value: datetime = BASE_TIME) -> None:
        self.value = value

    def now(self) -> datetime:
        return self.value


def make_profile(username: str = "alice", *, display_name: str | None = None) -> Profile:
    return Profile(id=uuid.uuid4(), username=username, display_name=display_name)


def make_message(
    conversation_id: UUID,
    *,
    sender_id: UUID | None = None,
    body: str = "hello",
    created_at: datetime = BASE_TIME,
    message_id: UUID | None = None,
) -> Message:
    return Message(
        id=message_id or uuid.uuid4(),
        conversation_id=conversation_id,
        sender_id=sender_id or uuid.uuid4(),
        body=body,
        created_at=created_at,
    )


@dataclass
class FakeStore:
    conversations: dict[UUID, Conversation] = field(default_factory=dict)
    participants: list[Participant] = field(default_factory=list)
    messages: list[Message] = field(default_factory=list)
    profiles: dict[UUID, Profile] = field(default_factory=dict)
    outbox: list[dict[str, Any]] = field(default_factory=list)
    _outbox_ids: itertools.count = field(default_factory=lambda: itertools.count(1))

    def add_profile(self, username: str, *, display_name: str | None = None) -> Profile:
        profile = make_profile(username, display_name=display_name)
        self.profiles[profile.id] = profile
        return profile

    def add_conversation(
        self, *members: UUID, created_at: datetime = BASE_TIME
    ) -> Conversation:
        conversation = Conversation(id=uuid.uuid4(), created_at=created_at)
        self.conversations[conversation.id] = conversation
        for user_id in members:
            self.participants.append(
                Participant(conversation_id=conversation.id, user_id=user_id, joined_at=created_at)
            )
        return conversation


class FakeConversationRepo:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        return self._store.conversations.get(conversation_id)

    async def get_many(self, conversation_ids: list[UUID]) -> list[Conversation]:
        return [
            self._store.conversations[cid]
            for cid in conversation_ids
            if cid in self._store.conversations
        ]

    async def find_direct(self, user_a: UUID, user_b: UUID) -> Conversation | None:
        pair = {user_a, user_b}
        members: dict[UUID, set[UUID]] = {}
        for p in self._store.participants:
            members.setdefault(p.conversation_id, set()).add(p.user_id)
        matches = sorted(
            (self._store.conversations[cid] for cid, users in members.items() if users == pair),
            key=lambda c: (c.created_at, c.id),
        )
        # Yield after reading, like a network round-trip, so concurrent
        # callers can interleave between lookup and insert.
        await asyncio.sleep(0)
        return matches[0] if matches else None

    async def create(self, conversation: Conversation) -> Conversation:
        self._store.conversations[conversation.id] = conversation
        return conversation


class FakeParticipantRepo:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    async def is_participant(self, conversation_id: UUID, user_id: UUID) -> bool:
        return any(
            p.conversation_id == conversation_id and p.user_id == user_id
            for p in self._store.participants
        )

    async def list_participants(self, conversation_id: UUID) -> list[Participant]:
        return [p for p in self._store.participants if p.conversation_id == conversation_id]

    async def list_conversation_ids(self, user_id: UUID) -> list[UUID]:
        return [p.conversation_id for p in self._store.participants if p.user_id == user_id]

    async def list_for_conversations(self, conversation_ids: list[UUID]) -> list[Participant]:
        wanted = set(conversation_ids)
        return [p for p in self._store.participants if p.conversation_id in wanted]

    async def add(self, participant: Participant) -> None:
        self._store.participants.append(participant)


class FakeMessageRepo:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    async def list_messages(self, conversation_id: UUID) -> list[Message]:
        return sorted(
            (m for m in self._store.messages if m.conversation_id == conversation_id),
            key=lambda m: m.sort_key,
        )

    async def latest_for_conversations(
        self, conversation_ids: list[UUID]
    ) -> dict[UUID, Message]:
        latest: dict[UUID, Message] = {}
        wanted = set(conversation_ids)
        for m in self._store.messages:
            if m.conversation_id not in wanted:
                continue
            current = latest.get(m.conversation_id)
            if current is None or m.sort_key > current.sort_key:
                latest[m.conversation_id] = m
        return latest

    async def add(self, message: Message) -> Message:
        self._store.messages.append(message)
        return message


class FakeProfileRepo:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    async def get_by_id(self, user_id: UUID) -> Profile | None:
        return self._store.profiles.get(user_id)

    async def get_many(self, user_ids: list[UUID]) -> list[Profile]:
        return [self._store.profiles[uid] for uid in user_ids if uid in self._store.profiles]

    async def search(
        self, query: str, *, exclude_id: UUID | None = None, limit: int = 10
    ) -> list[Profile]:
        needle = query.lower()
        found = [
            p
            for p in self._store.profiles.values()
            if p.id != exclude_id
            and (needle in p.username.lower() or needle in (p.display_name or "").lower())
        ]
        found.sort(key=lambda p: p.username)
        return found[:limit]


class FakeOutbox:
    def __init__(self, store: FakeStore, staged: list[ChangeEvent]) -> None:
        self._store = store
        self._staged = staged

    async def add(self, event: ChangeEvent) -> None:
        self._staged.append(event)
        self.insert(event.event_type, event.record)

    def insert(
        self,
        event_type: str,
        payload: dict[str, Any],
        *,
        attempts: int = 0,
        next_retry_at: datetime | None = None,
    ) -> int:
        record_id = next(self._store._outbox_ids)
        self._store.outbox.append(
            {
                "id": record_id,
                "event_type": event_type,
                "payload": payload,
                "attempts": attempts,
                "next_retry_at": next_retry_at,
                "status": "pending",
            }
        )
        return record_id

    def status(self, record_id: int) -> str:
        return self._row(record_id)["status"]

    def _row(self, record_id: int) -> dict[str, Any]:
        return next(r for r in self._store.outbox if r["id"] == record_id)

    async def fetch_pending(self, batch_size: int) -> list[OutboxRecord]:
        rows = [r for r in self._store.outbox if r["status"] == "pending"][:batch_size]
        for r in rows:
            r["status"] = "processing"
        return [
            OutboxRecord(
                id=r["id"],
                event_type=r["event_type"],
                payload=r["payload"],
                attempts=r["attempts"],
                next_retry_at=r["next_retry_at"],
            )
            for r in rows
        ]

    async def mark_sent(self, ids: list[int]) -> None:
        for record_id in ids:
            self._row(record_id)["status"] = "sent"

    async def mark_failed(self, record_id: int, next_retry_at: datetime) -> None:
        row = self._row(record_id)
        row["status"] = "pending"
        row["attempts"] += 1
        row["next_retry_at"] = next_retry_at

    async def release(self, ids: list[int]) -> None:
        for record_id in ids:
            self._row(record_id)["status"] = "pending"

    async def mark_dead(self, ids: list[int]) -> None:
        for record_id in ids:
            self._row(record_id)["status"] = "dead"


class FakeUoW:
    def __init__(self, store: FakeStore | None = None, dispatcher: FeedDispatcher | None = None) -> None:
        self.store = store if store is not None else FakeStore()
        self.dispatcher = dispatcher
        self._staged: list[ChangeEvent] = []
        self.conversations = self.conversations_w = FakeConversationRepo(self.store)
        self.participants = self.participants_w = FakeParticipantRepo(self.store)
        self.messages = self.messages_w = FakeMessageRepo(self.store)
        self.profiles = FakeProfileRepo(self.store)
        self.outbox = FakeOutbox(self.store, self._staged)
        self.commits = 0

    @property
    def committed(self) -> bool:
        return self.commits > 0

    async def commit(self) -> None:
        self.commits += 1
        events, self._staged[:] = list(self._staged), []
        if self.dispatcher is not None:
            for event in events:
                await self.dispatcher.dispatch(event)

    async def rollback(self) -> None:
        self._staged.clear()

    async def flush(self) -> None:
        pass

    async def __aenter__(self) -> FakeUoW:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            await self.rollback()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def dispatcher() -> FeedDispatcher:
    return FeedDispatcher()


@pytest.fixture
def uow(store, dispatcher) -> FakeUoW:
    return FakeUoW(store, dispatcher)


@pytest.fixture
def alice(store) -> Profile:
    return store.add_profile("alice", display_name="Alice Liddell")


@pytest.fixture
def bob(store) -> Profile:
    return store.add_profile("bob")


@pytest.fixture
def carol(store) -> Profile:
    return store.add_profile("carol", display_name="Carol")
