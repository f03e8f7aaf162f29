"""Tests for the in-process store's transactional contract."""

import asyncio
from datetime import timedelta

import pytest

from tests.conftest import make_event, make_group, run

from sportygo.exceptions import DocumentExistsError
from sportygo.models import AttendanceRecord, Event, InviteRecord, VoteStatus, utcnow


class TestTransactions:
    def test_writes_hidden_until_commit(self, store, shards):
        async def scenario():
            await make_event(store, shards)

            async def body(session):
                await store.increment_shard("evt-1", 0, VoteStatus.GOING, 1, session=session)
                inside = await store.list_shards("evt-1")
                return inside[0].going

            inside = await store.run_transaction(body)
            after = await store.list_shards("evt-1")
            return inside, after[0].going

        assert run(scenario()) == (0, 1)

    def test_exception_discards_writes(self, store, shards):
        async def scenario():
            await make_event(store, shards)
            await make_group(store)

            async def body(session):
                await store.increment_shard("evt-1", 2, VoteStatus.NOT, 1, session=session)
                await store.add_group_member("grp-1", "alice", session=session)
                raise RuntimeError("abort")

            with pytest.raises(RuntimeError):
                await store.run_transaction(body)
            return await store.list_shards("evt-1"), await store.get_group("grp-1")

        stored, group = run(scenario())
        assert stored[2].not_ == 0
        assert group.member_ids == []

    def test_watchers_notified_once_per_commit(self, store, shards):
        async def scenario():
            await make_event(store, shards)
            async with store.watch_shards("evt-1") as changes:

                async def body(session):
                    await store.increment_shard("evt-1", 1, VoteStatus.GOING, -1, session=session)
                    await store.increment_shard("evt-1", 4, VoteStatus.MAYBE, 1, session=session)

                await store.run_transaction(body)
                first = await asyncio.wait_for(changes.__anext__(), timeout=1)
                return first, changes._queue.qsize()

        first, remaining = run(scenario())
        assert first == "evt-1"
        assert remaining == 0

    def test_closed_stream_stops_iteration(self, store):
        async def scenario():
            stream = store.watch_shards("evt-1")
            await stream.open()
            await stream.close()
            return [change async for change in stream]

        assert run(scenario()) == []


class TestDocuments:
    def test_duplicate_event(self, store, shards):
        async def scenario():
            await make_event(store, shards)
            await make_event(store, shards)

        with pytest.raises(DocumentExistsError):
            run(scenario())

    def test_duplicate_invite_code(self, store):
        invite = InviteRecord(code="ABCDEFGH", group_id="grp-1", valid_until=utcnow() + timedelta(days=1))

        async def scenario():
            await store.insert_invite(invite)
            await store.insert_invite(invite)

        with pytest.raises(DocumentExistsError) as exc_info:
            run(scenario())
        assert exc_info.value.key == "ABCDEFGH"

    def test_returned_documents_are_copies(self, store, shards):
        async def scenario():
            await make_event(store, shards)
            event = await store.get_event("evt-1")
            event.started_early = True
            return await store.get_event("evt-1")

        assert run(scenario()).started_early is False

    def test_update_event_validates_fields(self, store, shards):
        async def scenario():
            await make_event(store, shards)
            return await store.update_event("evt-1", {"voting_enabled": False})

        updated = run(scenario())
        assert isinstance(updated, Event)
        assert updated.voting_enabled is False

    def test_add_member_is_a_set(self, store):
        async def scenario():
            await make_group(store)
            await store.add_group_member("grp-1", "alice")
            await store.add_group_member("grp-1", "alice")
            return await store.get_group("grp-1")

        assert run(scenario()).member_ids == ["alice"]


class TestAttendanceDocuments:
    def test_put_attendance_overwrites_per_user(self, store):
        async def scenario():
            await store.put_attendance(AttendanceRecord(event_id="evt-1", user_id="alice", arrived=True, arrival_time=utcnow()))
            await store.put_attendance(AttendanceRecord(event_id="evt-1", user_id="alice", arrived=False))
            await store.put_attendance(AttendanceRecord(event_id="evt-2", user_id="bob", arrived=True))
            return await store.list_attendance("evt-1")

        (record,) = run(scenario())
        assert record.user_id == "alice"
        assert record.arrived is False
        assert record.arrival_time is None
