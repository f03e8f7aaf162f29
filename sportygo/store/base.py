"""Persistence port for the vote and invite core.

The services only talk to a ``DocumentStore``. Writes accept an optional
``session``: when given, the write joins the transaction that produced the
session and becomes visible only when that transaction commits.
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

from sportygo.models import (
    AttendanceRecord,
    Event,
    Group,
    InviteRecord,
    VoteRecord,
    VoteShard,
    VoteStatus,
)

T = TypeVar("T")


class ShardStream(ABC):
    """Change notifications for the shards of one event.

    Used as ``async with store.watch_shards(event_id) as changes:`` followed
    by ``async for _ in changes:``. The stream is registered on enter, so
    nothing written after ``__aenter__`` returns is missed.
    """

    async def __aenter__(self) -> "ShardStream":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def __aiter__(self) -> "ShardStream":
        return self

    async def __anext__(self) -> Any:
        return await self.next_change()

    @abstractmethod
    async def open(self) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @abstractmethod
    async def next_change(self) -> Any:
        """Wait for the next change; raise ``StopAsyncIteration`` when closed."""
        pass


class DocumentStore(ABC):
    """Storage operations required by the SportyGo core."""

    @abstractmethod
    async def run_transaction(self, fn: Callable[[Any], Awaitable[T]]) -> T:
        """Run ``fn(session)`` atomically and return its result.

        Either every write made with ``session`` is committed or none is.
        Exceptions raised by ``fn`` abort the transaction and propagate.
        """
        pass

    # --- events ---

    @abstractmethod
    async def create_event(self, event: Event, shards: List[VoteShard]) -> None:
        """Persist an event and its pre-seeded shards as one batch."""
        pass

    @abstractmethod
    async def get_event(self, event_id: str, session: Any = None) -> Optional[Event]:
        pass

    @abstractmethod
    async def update_event(self, event_id: str, fields: dict) -> Optional[Event]:
        """Set ``fields`` on an event and return the updated event."""
        pass

    # --- vote shards ---

    @abstractmethod
    async def increment_shard(
        self,
        event_id: str,
        index: int,
        status: VoteStatus,
        delta: int,
        session: Any = None,
    ) -> None:
        """Atomically add ``delta`` to one status counter of one shard."""
        pass

    @abstractmethod
    async def list_shards(self, event_id: str) -> List[VoteShard]:
        pass

    @abstractmethod
    def watch_shards(self, event_id: str) -> ShardStream:
        pass

    # --- user votes ---

    @abstractmethod
    async def get_vote(
        self, event_id: str, user_id: str, session: Any = None
    ) -> Optional[VoteRecord]:
        pass

    @abstractmethod
    async def put_vote(self, record: VoteRecord, session: Any = None) -> None:
        """Insert or overwrite the vote of ``record.user_id`` on the event."""
        pass

    @abstractmethod
    async def list_votes(
        self, event_id: str, status: Optional[VoteStatus] = None
    ) -> List[VoteRecord]:
        pass

    # --- attendance ---

    @abstractmethod
    async def put_attendance(self, record: AttendanceRecord) -> None:
        """Insert or overwrite the attendance of ``record.user_id`` at the event."""
        pass

    @abstractmethod
    async def list_attendance(self, event_id: str) -> List[AttendanceRecord]:
        pass

    # --- invites ---

    @abstractmethod
    async def insert_invite(self, invite: InviteRecord) -> None:
        """Insert a new invite; raise ``DocumentExistsError`` if the code is taken."""
        pass

    @abstractmethod
    async def get_invite(self, code: str, session: Any = None) -> Optional[InviteRecord]:
        pass

    @abstractmethod
    async def list_invites(self, group_id: str) -> List[InviteRecord]:
        pass

    @abstractmethod
    async def increment_invite_used(self, code: str, session: Any = None) -> None:
        pass

    @abstractmethod
    async def update_invite(self, code: str, fields: dict) -> bool:
        """Set ``fields`` on an invite; return False if it does not exist."""
        pass

    # --- groups ---

    @abstractmethod
    async def insert_group(self, group: Group) -> None:
        pass

    @abstractmethod
    async def get_group(self, group_id: str, session: Any = None) -> Optional[Group]:
        pass

    @abstractmethod
    async def add_group_member(
        self, group_id: str, user_id: str, session: Any = None
    ) -> None:
        """Add ``user_id`` to the group's member set (no duplicates)."""
        pass
