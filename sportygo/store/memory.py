"""In-process ``DocumentStore`` with the same transactional contract as MongoDB.

Transactions are serialised and their writes are buffered on the session
until commit, then applied in one step of the event loop. Reads always see
committed state. Every operation yields to the loop once, like a round trip
to a real server would.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple, TypeVar

from sportygo.exceptions import DocumentExistsError
from sportygo.models import (
    AttendanceRecord,
    Event,
    Group,
    InviteRecord,
    VoteRecord,
    VoteShard,
    VoteStatus,
    counter_attr,
)
from sportygo.store.base import DocumentStore, ShardStream

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CLOSED = object()


class MemorySession:
    def __init__(self):
        self.pending: List[Callable[[], Optional[str]]] = []


class MemoryShardStream(ShardStream):
    def __init__(self, store: "MemoryStore", event_id: str):
        self._store = store
        self.event_id = event_id
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self._closed = False

    async def open(self) -> None:
        self._store._watchers.setdefault(self.event_id, set()).add(self._queue)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        watchers = self._store._watchers.get(self.event_id)
        if watchers is not None:
            watchers.discard(self._queue)
        self._queue.put_nowait(_CLOSED)

    async def next_change(self) -> Any:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


class MemoryStore(DocumentStore):
    def __init__(self):
        self._events: Dict[str, Event] = {}
        self._shards: Dict[Tuple[str, int], VoteShard] = {}
        self._votes: Dict[Tuple[str, str], VoteRecord] = {}
        self._attendance: Dict[Tuple[str, str], AttendanceRecord] = {}
        self._invites: Dict[str, InviteRecord] = {}
        self._groups: Dict[str, Group] = {}
        self._watchers: Dict[str, Set["asyncio.Queue[Any]"]] = {}
        self._tx_lock = asyncio.Lock()

    async def run_transaction(self, fn: Callable[[Any], Awaitable[T]]) -> T:
        async with self._tx_lock:
            session = MemorySession()
            result = await fn(session)
            self._apply(session.pending)
            return result

    def _write(self, op: Callable[[], Optional[str]], session: Optional[MemorySession]) -> None:
        if session is not None:
            session.pending.append(op)
        else:
            self._apply([op])

    def _apply(self, ops: List[Callable[[], Optional[str]]]) -> None:
        touched = set()
        for op in ops:
            event_id = op()
            if event_id is not None:
                touched.add(event_id)
        for event_id in touched:
            for queue in self._watchers.get(event_id, ()):
                queue.put_nowait(event_id)

    # --- events ---

    async def create_event(self, event: Event, shards: List[VoteShard]) -> None:
        await asyncio.sleep(0)
        if event.id in self._events:
            raise DocumentExistsError("events", event.id)
        self._events[event.id] = event.model_copy(deep=True)
        for shard in shards:
            self._shards[(shard.event_id, shard.index)] = shard.model_copy()

    async def get_event(self, event_id: str, session: Any = None) -> Optional[Event]:
        await asyncio.sleep(0)
        event = self._events.get(event_id)
        return event.model_copy(deep=True) if event else None

    async def update_event(self, event_id: str, fields: dict) -> Optional[Event]:
        await asyncio.sleep(0)
        event = self._events.get(event_id)
        if event is None:
            return None
        updated = Event.model_validate({**event.model_dump(), **fields})
        self._events[event_id] = updated
        return updated.model_copy(deep=True)

    # --- vote shards ---

    async def increment_shard(
        self,
        event_id: str,
        index: int,
        status: VoteStatus,
        delta: int,
        session: Any = None,
    ) -> None:
        await asyncio.sleep(0)
        key = (event_id, index)
        field = counter_attr(status)

        def op() -> str:
            # $inc semantics: a missing shard starts from zero
            shard = self._shards.setdefault(key, VoteShard(event_id=event_id, index=index))
            setattr(shard, field, getattr(shard, field) + delta)
            return event_id

        self._write(op, session)

    async def list_shards(self, event_id: str) -> List[VoteShard]:
        await asyncio.sleep(0)
        return [
            shard.model_copy()
            for (shard_event, _), shard in sorted(self._shards.items())
            if shard_event == event_id
        ]

    def watch_shards(self, event_id: str) -> MemoryShardStream:
        return MemoryShardStream(self, event_id)

    # --- user votes ---

    async def get_vote(
        self, event_id: str, user_id: str, session: Any = None
    ) -> Optional[VoteRecord]:
        await asyncio.sleep(0)
        record = self._votes.get((event_id, user_id))
        return record.model_copy() if record else None

    async def put_vote(self, record: VoteRecord, session: Any = None) -> None:
        await asyncio.sleep(0)
        stored = record.model_copy()

        def op() -> None:
            self._votes[(stored.event_id, stored.user_id)] = stored

        self._write(op, session)

    async def list_votes(
        self, event_id: str, status: Optional[VoteStatus] = None
    ) -> List[VoteRecord]:
        await asyncio.sleep(0)
        records = [
            record.model_copy()
            for (vote_event, _), record in self._votes.items()
            if vote_event == event_id and (status is None or record.status == status)
        ]
        return sorted(records, key=lambda r: r.voted_at)

    # --- attendance ---

    async def put_attendance(self, record: AttendanceRecord) -> None:
        await asyncio.sleep(0)
        self._attendance[(record.event_id, record.user_id)] = record.model_copy()

    async def list_attendance(self, event_id: str) -> List[AttendanceRecord]:
        await asyncio.sleep(0)
        return [
            record.model_copy()
            for (record_event, _), record in self._attendance.items()
            if record_event == event_id
        ]

    # --- invites ---

    async def insert_invite(self, invite: InviteRecord) -> None:
        await asyncio.sleep(0)
        if invite.code in self._invites:
            raise DocumentExistsError("group_invites", invite.code)
        self._invites[invite.code] = invite.model_copy()

    async def get_invite(self, code: str, session: Any = None) -> Optional[InviteRecord]:
        await asyncio.sleep(0)
        invite = self._invites.get(code)
        return invite.model_copy() if invite else None

    async def list_invites(self, group_id: str) -> List[InviteRecord]:
        await asyncio.sleep(0)
        invites = [i.model_copy() for i in self._invites.values() if i.group_id == group_id]
        return sorted(invites, key=lambda i: i.valid_until, reverse=True)

    async def increment_invite_used(self, code: str, session: Any = None) -> None:
        await asyncio.sleep(0)

        def op() -> None:
            invite = self._invites.get(code)
            if invite is not None:
                invite.used += 1

        self._write(op, session)

    async def update_invite(self, code: str, fields: dict) -> bool:
        await asyncio.sleep(0)
        invite = self._invites.get(code)
        if invite is None:
            return False
        self._invites[code] = InviteRecord.model_validate({**invite.model_dump(), **fields})
        return True

    # --- groups ---

    async def insert_group(self, group: Group) -> None:
        await asyncio.sleep(0)
        if group.id in self._groups:
            raise DocumentExistsError("groups", group.id)
        self._groups[group.id] = group.model_copy(deep=True)

    async def get_group(self, group_id: str, session: Any = None) -> Optional[Group]:
        await asyncio.sleep(0)
        group = self._groups.get(group_id)
        return group.model_copy(deep=True) if group else None

    async def add_group_member(
        self, group_id: str, user_id: str, session: Any = None
    ) -> None:
        await asyncio.sleep(0)

        def op() -> None:
            group = self._groups.get(group_id)
            if group is not None and user_id not in group.member_ids:
                group.member_ids.append(user_id)

        self._write(op, session)
