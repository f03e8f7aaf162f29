"""Tests for the per-user vote ledger."""

import pytest

from tests.conftest import make_event, run

from sportygo.exceptions import TransientStoreError
from sportygo.models import VoteStatus
from sportygo.services import VoteAggregator, VoteLedger


@pytest.fixture
def ledger(store, shards):
    return VoteLedger(store, shards)


class TestVoteLedger:
    def test_no_vote_is_none(self, store, shards, ledger):
        async def scenario():
            await make_event(store, shards)
            return await ledger.get_vote("evt-1", "alice")

        assert run(scenario()) is None

    def test_first_vote(self, store, shards, ledger):
        async def scenario():
            await make_event(store, shards)
            change = await ledger.set_vote("evt-1", "alice", VoteStatus.GOING)
            return change, await ledger.get_vote("evt-1", "alice"), await VoteAggregator(store).read_totals("evt-1")

        change, vote, totals = run(scenario())
        assert change.changed is True
        assert change.previous is None
        assert vote == VoteStatus.GOING
        assert totals.as_dict() == {"going": 1, "maybe": 0, "not": 0}

    def test_repeat_vote_is_idempotent(self, store, shards, ledger):
        async def scenario():
            await make_event(store, shards)
            await ledger.set_vote("evt-1", "alice", VoteStatus.MAYBE)
            again = await ledger.set_vote("evt-1", "alice", "maybe")
            return again, await VoteAggregator(store).read_totals("evt-1")

        again, totals = run(scenario())
        assert again.changed is False
        assert again.previous == VoteStatus.MAYBE
        assert totals.as_dict() == {"going": 0, "maybe": 1, "not": 0}

    def test_revote_moves_one_count(self, store, shards, ledger):
        async def scenario():
            await make_event(store, shards)
            await ledger.set_vote("evt-1", "alice", VoteStatus.GOING)
            change = await ledger.set_vote("evt-1", "alice", VoteStatus.MAYBE)
            return change, await VoteAggregator(store).read_totals("evt-1")

        change, totals = run(scenario())
        assert change.previous == VoteStatus.GOING
        assert change.status == VoteStatus.MAYBE
        assert totals.as_dict() == {"going": 0, "maybe": 1, "not": 0}
        assert totals.responses == 1

    def test_record_is_overwritten_not_duplicated(self, store, shards, ledger):
        async def scenario():
            await make_event(store, shards)
            await ledger.set_vote("evt-1", "alice", VoteStatus.GOING)
            await ledger.set_vote("evt-1", "alice", VoteStatus.NOT)
            return await ledger.list_voters("evt-1")

        voters = run(scenario())
        assert len(voters) == 1
        assert voters[0].status == VoteStatus.NOT

    def test_list_voters_by_status(self, store, shards, ledger):
        async def scenario():
            await make_event(store, shards)
            await ledger.set_vote("evt-1", "alice", VoteStatus.GOING)
            await ledger.set_vote("evt-1", "bob", VoteStatus.MAYBE)
            await ledger.set_vote("evt-1", "carol", VoteStatus.GOING)
            return await ledger.list_voters("evt-1", VoteStatus.GOING)

        assert [r.user_id for r in run(scenario())] == ["alice", "carol"]

    def test_failed_transaction_writes_nothing(self, store, shards, ledger, monkeypatch):
        async def failing_put_vote(record, session=None):
            raise TransientStoreError("connection reset")

        async def scenario():
            await make_event(store, shards)
            await ledger.set_vote("evt-1", "alice", VoteStatus.GOING)
            monkeypatch.setattr(store, "put_vote", failing_put_vote)
            with pytest.raises(TransientStoreError):
                await ledger.set_vote("evt-1", "alice", VoteStatus.NOT)
            monkeypatch.undo()
            return await ledger.get_vote("evt-1", "alice"), await VoteAggregator(store).read_totals("evt-1")

        vote, totals = run(scenario())
        assert vote == VoteStatus.GOING
        assert totals.as_dict() == {"going": 1, "maybe": 0, "not": 0}

    def test_many_users_sum(self, store, shards, ledger):
        async def scenario():
            await make_event(store, shards)
            for i in range(40):
                status = [VoteStatus.GOING, VoteStatus.MAYBE, VoteStatus.NOT][i % 3]
                await ledger.set_vote("evt-1", f"user-{i}", status)
            for i in range(0, 40, 2):
                await ledger.set_vote("evt-1", f"user-{i}", VoteStatus.NOT)
            return await ledger.list_voters("evt-1"), await VoteAggregator(store).read_totals("evt-1")

        voters, totals = run(scenario())
        for status in VoteStatus:
            assert totals.get(status) == sum(1 for r in voters if r.status == status)
        assert totals.responses == 40
