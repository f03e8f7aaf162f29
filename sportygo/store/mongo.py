"""MongoDB adapter built on motor and beanie.

Requires a replica set (or sharded cluster): transactions and change streams
are unavailable on a standalone server.
"""

import logging
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from sportygo.exceptions import DocumentExistsError, TransientStoreError
from sportygo.models import (
    AttendanceRecord,
    Event,
    Group,
    InviteRecord,
    VoteRecord,
    VoteShard,
    VoteStatus,
    storage_field,
)
from sportygo.store.base import DocumentStore, ShardStream
from sportygo.store.documents import (
    AttendanceDocument,
    EventDocument,
    GroupDocument,
    InviteDocument,
    VoteRecordDocument,
    VoteShardDocument,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@contextmanager
def translate_errors(collection: str = "", key: str = ""):
    try:
        yield
    except DuplicateKeyError as exc:
        raise DocumentExistsError(collection, key) from exc
    except PyMongoError as exc:
        logger.warning("MongoDB operation on %s failed: %s", collection or "session", exc)
        raise TransientStoreError(str(exc)) from exc


class MongoShardStream(ShardStream):
    def __init__(self, event_id: str):
        self.event_id = event_id
        self._stream = None
        self._pending = None

    async def open(self) -> None:
        pipeline = [{"$match": {"fullDocument.event_id": self.event_id}}]
        with translate_errors(VoteShardDocument.Settings.name):
            self._stream = VoteShardDocument.get_motor_collection().watch(
                pipeline, full_document="updateLookup"
            )
            # opens the server-side cursor so later writes are not missed
            self._pending = await self._stream.try_next()

    async def close(self) -> None:
        if self._stream is not None:
            await self._stream.close()

    async def next_change(self) -> Any:
        if self._stream is None:
            raise StopAsyncIteration
        if self._pending is not None:
            change, self._pending = self._pending, None
            return change
        with translate_errors(VoteShardDocument.Settings.name):
            return await self._stream.next()


class MongoStore(DocumentStore):
    def __init__(self, client: AsyncIOMotorClient):
        self._client = client

    async def run_transaction(self, fn: Callable[[Any], Awaitable[T]]) -> T:
        with translate_errors():
            async with await self._client.start_session() as session:
                return await session.with_transaction(fn)

    # --- events ---

    async def create_event(self, event: Event, shards: List[VoteShard]) -> None:
        async def _insert(session):
            await EventDocument(**event.model_dump()).insert(session=session)
            if shards:
                await VoteShardDocument.insert_many(
                    [VoteShardDocument(**shard.model_dump()) for shard in shards],
                    session=session,
                )

        with translate_errors(EventDocument.Settings.name, event.id):
            async with await self._client.start_session() as session:
                await session.with_transaction(_insert)

    async def get_event(self, event_id: str, session: Any = None) -> Optional[Event]:
        with translate_errors(EventDocument.Settings.name, event_id):
            doc = await EventDocument.get(event_id, session=session)
        return Event.model_validate(doc.model_dump()) if doc else None

    async def update_event(self, event_id: str, fields: dict) -> Optional[Event]:
        with translate_errors(EventDocument.Settings.name, event_id):
            raw = await EventDocument.get_motor_collection().find_one_and_update(
                {"_id": event_id},
                {"$set": fields},
                return_document=ReturnDocument.AFTER,
            )
        if raw is None:
            return None
        raw["id"] = raw.pop("_id")
        return Event.model_validate(raw)

    # --- vote shards ---

    async def increment_shard(
        self,
        event_id: str,
        index: int,
        status: VoteStatus,
        delta: int,
        session: Any = None,
    ) -> None:
        with translate_errors(VoteShardDocument.Settings.name, f"{event_id}/{index}"):
            await VoteShardDocument.get_motor_collection().update_one(
                {"event_id": event_id, "index": index},
                {"$inc": {storage_field(status): delta}},
                upsert=True,
                session=session,
            )

    async def list_shards(self, event_id: str) -> List[VoteShard]:
        with translate_errors(VoteShardDocument.Settings.name, event_id):
            docs = await VoteShardDocument.find(
                VoteShardDocument.event_id == event_id
            ).sort("+index").to_list()
        return [VoteShard.model_validate(doc.model_dump()) for doc in docs]

    def watch_shards(self, event_id: str) -> MongoShardStream:
        return MongoShardStream(event_id)

    # --- user votes ---

    async def get_vote(
        self, event_id: str, user_id: str, session: Any = None
    ) -> Optional[VoteRecord]:
        with translate_errors(VoteRecordDocument.Settings.name, f"{event_id}/{user_id}"):
            doc = await VoteRecordDocument.find_one(
                VoteRecordDocument.event_id == event_id,
                VoteRecordDocument.user_id == user_id,
                session=session,
            )
        return VoteRecord.model_validate(doc.model_dump()) if doc else None

    async def put_vote(self, record: VoteRecord, session: Any = None) -> None:
        key = f"{record.event_id}/{record.user_id}"
        with translate_errors(VoteRecordDocument.Settings.name, key):
            await VoteRecordDocument.get_motor_collection().update_one(
                {"event_id": record.event_id, "user_id": record.user_id},
                {"$set": {"status": record.status.value, "voted_at": record.voted_at}},
                upsert=True,
                session=session,
            )

    async def list_votes(
        self, event_id: str, status: Optional[VoteStatus] = None
    ) -> List[VoteRecord]:
        query = {"event_id": event_id}
        if status is not None:
            query["status"] = VoteStatus(status).value
        with translate_errors(VoteRecordDocument.Settings.name, event_id):
            docs = await VoteRecordDocument.find(query).sort("+voted_at").to_list()
        return [VoteRecord.model_validate(doc.model_dump()) for doc in docs]

    # --- attendance ---

    async def put_attendance(self, record: AttendanceRecord) -> None:
        key = f"{record.event_id}/{record.user_id}"
        with translate_errors(AttendanceDocument.Settings.name, key):
            await AttendanceDocument.get_motor_collection().update_one(
                {"event_id": record.event_id, "user_id": record.user_id},
                {
                    "$set": {
                        "voted_status": record.voted_status.value if record.voted_status else None,
                        "arrived": record.arrived,
                        "arrival_time": record.arrival_time,
                    }
                },
                upsert=True,
            )

    async def list_attendance(self, event_id: str) -> List[AttendanceRecord]:
        with translate_errors(AttendanceDocument.Settings.name, event_id):
            docs = await AttendanceDocument.find(
                AttendanceDocument.event_id == event_id
            ).to_list()
        return [AttendanceRecord.model_validate(doc.model_dump()) for doc in docs]

    # --- invites ---

    async def insert_invite(self, invite: InviteRecord) -> None:
        with translate_errors(InviteDocument.Settings.name, invite.code):
            await InviteDocument(**invite.model_dump()).insert()

    async def get_invite(self, code: str, session: Any = None) -> Optional[InviteRecord]:
        with translate_errors(InviteDocument.Settings.name, code):
            doc = await InviteDocument.find_one(InviteDocument.code == code, session=session)
        return InviteRecord.model_validate(doc.model_dump()) if doc else None

    async def list_invites(self, group_id: str) -> List[InviteRecord]:
        with translate_errors(InviteDocument.Settings.name, group_id):
            docs = await InviteDocument.find(
                InviteDocument.group_id == group_id
            ).sort("-valid_until").to_list()
        return [InviteRecord.model_validate(doc.model_dump()) for doc in docs]

    async def increment_invite_used(self, code: str, session: Any = None) -> None:
        with translate_errors(InviteDocument.Settings.name, code):
            await InviteDocument.get_motor_collection().update_one(
                {"code": code}, {"$inc": {"used": 1}}, session=session
            )

    async def update_invite(self, code: str, fields: dict) -> bool:
        with translate_errors(InviteDocument.Settings.name, code):
            result = await InviteDocument.get_motor_collection().update_one(
                {"code": code}, {"$set": fields}
            )
        return result.matched_count > 0

    # --- groups ---

    async def insert_group(self, group: Group) -> None:
        with translate_errors(GroupDocument.Settings.name, group.id):
            await GroupDocument(**group.model_dump()).insert()

    async def get_group(self, group_id: str, session: Any = None) -> Optional[Group]:
        with translate_errors(GroupDocument.Settings.name, group_id):
            doc = await GroupDocument.get(group_id, session=session)
        return Group.model_validate(doc.model_dump()) if doc else None

    async def add_group_member(
        self, group_id: str, user_id: str, session: Any = None
    ) -> None:
        with translate_errors(GroupDocument.Settings.name, group_id):
            await GroupDocument.get_motor_collection().update_one(
                {"_id": group_id},
                {"$addToSet": {"member_ids": user_id}},
                session=session,
            )
