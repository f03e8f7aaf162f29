"""Shared test helpers."""

import asyncio
import random
from datetime import timedelta

import pytest

from sportygo.models import Event, Group, utcnow
from sportygo.services import EventCoordinator, InviteLedger, ShardSet
from sportygo.store import MemoryStore


def run(coro):
    """Drive one async scenario to completion on a fresh event loop."""
    return asyncio.run(coro)


class ScriptedRandom(random.Random):
    """Random source whose ``randrange`` returns a fixed sequence of picks."""

    def __init__(self, picks):
        super().__init__(0)
        self._picks = iter(picks)

    def randrange(self, *args, **kwargs):
        return next(self._picks)


async def make_event(store, shards, event_id="evt-1", **overrides) -> Event:
    """Persist an event one day out with voting open and its shards seeded."""
    now = utcnow()
    fields = {
        "id": event_id,
        "event_date": now + timedelta(days=1),
        "cutoff_date": now + timedelta(hours=1),
    }
    fields.update(overrides)
    event = Event(**fields)
    await store.create_event(event, shards.seed(event.id))
    return event


async def make_group(store, group_id="grp-1", members=()) -> Group:
    group = Group(id=group_id, name="Tuesday Badminton", owner_id="owner", member_ids=list(members))
    await store.insert_group(group)
    return group


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def shards(store):
    return ShardSet(store, shard_count=10, rng=random.Random(1234))


@pytest.fixture
def coordinator(store, shards):
    return EventCoordinator(store, shards=shards)


@pytest.fixture
def invites(store):
    return InviteLedger(store)
