"""Tests for sharded counters and the totals aggregator."""

import asyncio
import random

import pytest

from tests.conftest import ScriptedRandom, make_event, run

from sportygo.exceptions import ConfigurationError
from sportygo.models import VoteStatus
from sportygo.services import ShardSet, VoteAggregator


class TestShardSet:
    def test_seed_creates_zeroed_shards(self, shards):
        seeded = shards.seed("evt-1")
        assert [s.index for s in seeded] == list(range(10))
        assert all(s.going == s.maybe == s.not_ == 0 for s in seeded)
        assert all(s.event_id == "evt-1" for s in seeded)

    def test_default_shard_count_is_ten(self, store):
        assert ShardSet(store).shard_count == 10

    def test_sum_matches_net_deltas(self, store):
        rng = random.Random(99)
        shards = ShardSet(store, rng=random.Random(5))
        aggregator = VoteAggregator(store)
        expected = {status: 0 for status in VoteStatus}

        async def scenario():
            await make_event(store, shards)
            for _ in range(300):
                status = rng.choice(list(VoteStatus))
                if rng.random() < 0.4:
                    await shards.decrement("evt-1", status)
                    expected[status] -= 1
                else:
                    await shards.increment("evt-1", status)
                    expected[status] += 1
            return await aggregator.read_totals("evt-1")

        totals = run(scenario())
        assert totals.going == expected[VoteStatus.GOING]
        assert totals.maybe == expected[VoteStatus.MAYBE]
        assert totals.not_ == expected[VoteStatus.NOT]

    def test_decrement_on_other_shard_goes_negative(self, store):
        """Only the sum is invariant; an individual shard may dip below zero."""
        shards = ShardSet(store, rng=ScriptedRandom([0, 3]))

        async def scenario():
            await make_event(store, shards)
            await shards.increment("evt-1", VoteStatus.GOING)
            await shards.decrement("evt-1", VoteStatus.GOING)
            return await store.list_shards("evt-1"), await VoteAggregator(store).read_totals("evt-1")

        stored, totals = run(scenario())
        assert stored[0].going == 1
        assert stored[3].going == -1
        assert totals.going == 0

    def test_writes_spread_over_all_shards(self, store, shards):
        async def scenario():
            await make_event(store, shards)
            for _ in range(500):
                await shards.increment("evt-1", VoteStatus.MAYBE)
            return await store.list_shards("evt-1")

        stored = run(scenario())
        assert all(s.maybe > 0 for s in stored)
        assert sum(s.maybe for s in stored) == 500

    def test_increment_returns_shard_index(self, store):
        shards = ShardSet(store, rng=ScriptedRandom([7]))

        async def scenario():
            await make_event(store, shards)
            return await shards.increment("evt-1", VoteStatus.NOT)

        assert run(scenario()) == 7


class TestVoteAggregator:
    def test_unknown_event_reads_zero(self, store):
        totals = run(VoteAggregator(store).read_totals("missing"))
        assert totals.as_dict() == {"going": 0, "maybe": 0, "not": 0}
        assert totals.responses == 0

    def test_totals_serialize_not_under_alias(self, store, shards):
        async def scenario():
            await make_event(store, shards)
            await shards.increment("evt-1", VoteStatus.NOT)
            return await VoteAggregator(store).read_totals("evt-1")

        totals = run(scenario())
        assert totals.model_dump(by_alias=True)["not"] == 1
        assert totals.get(VoteStatus.NOT) == 1


class TestSubscription:
    def test_initial_update_then_changes(self, store, shards):
        aggregator = VoteAggregator(store)

        async def scenario():
            await make_event(store, shards)
            updates = asyncio.Queue()
            sub = aggregator.subscribe("evt-1", updates.put_nowait)
            first = await asyncio.wait_for(updates.get(), timeout=1)
            await shards.increment("evt-1", VoteStatus.GOING)
            second = await asyncio.wait_for(updates.get(), timeout=1)
            await sub.aclose()
            return first, second

        first, second = run(scenario())
        assert first.as_dict() == {"going": 0, "maybe": 0, "not": 0}
        assert second.as_dict() == {"going": 1, "maybe": 0, "not": 0}

    def test_no_callbacks_after_cancel(self, store, shards):
        aggregator = VoteAggregator(store)

        async def scenario():
            await make_event(store, shards)
            updates = asyncio.Queue()
            sub = aggregator.subscribe("evt-1", updates.put_nowait)
            await asyncio.wait_for(updates.get(), timeout=1)
            sub()
            await shards.increment("evt-1", VoteStatus.MAYBE)
            await asyncio.sleep(0.05)
            return updates.qsize(), sub.active

        pending, active = run(scenario())
        assert pending == 0
        assert active is False

    def test_async_callback(self, store, shards):
        aggregator = VoteAggregator(store)

        async def scenario():
            await make_event(store, shards)
            seen = []
            done = asyncio.Event()

            async def on_update(totals):
                seen.append(totals.going)
                if len(seen) == 2:
                    done.set()

            sub = aggregator.subscribe("evt-1", on_update)
            await asyncio.sleep(0.01)
            await shards.increment("evt-1", VoteStatus.GOING)
            await asyncio.wait_for(done.wait(), timeout=1)
            await sub.aclose()
            return seen

        assert run(scenario()) == [0, 1]

    def test_failing_callback_keeps_stream_alive(self, store, shards):
        aggregator = VoteAggregator(store)

        async def scenario():
            await make_event(store, shards)
            seen = asyncio.Queue()
            calls = []

            def on_update(totals):
                calls.append(totals)
                if len(calls) == 1:
                    raise RuntimeError("boom")
                seen.put_nowait(totals)

            sub = aggregator.subscribe("evt-1", on_update)
            await asyncio.sleep(0.01)
            await shards.increment("evt-1", VoteStatus.NOT)
            totals = await asyncio.wait_for(seen.get(), timeout=1)
            await sub.aclose()
            return totals

        assert run(scenario()).not_ == 1


class TestShardSetConfiguration:
    def test_negative_shard_count_rejected(self, store):
        with pytest.raises(ConfigurationError):
            ShardSet(store, shard_count=-1)

    def test_zero_shard_count_rejected(self, store):
        with pytest.raises(ConfigurationError):
            ShardSet(store, shard_count=0)


class TestSubscriptionLifecycle:
    def test_cancel_lets_running_callback_finish(self, store, shards):
        aggregator = VoteAggregator(store)

        async def scenario():
            await make_event(store, shards)
            started = asyncio.Event()
            finished = []

            async def on_update(totals):
                started.set()
                await asyncio.sleep(0.05)
                finished.append(totals)

            sub = aggregator.subscribe("evt-1", on_update)
            await asyncio.wait_for(started.wait(), timeout=1)
            sub()
            await asyncio.sleep(0.1)
            await shards.increment("evt-1", VoteStatus.GOING)
            await asyncio.sleep(0.05)
            return finished, sub._task.done()

        finished, done = run(scenario())
        assert len(finished) == 1
        assert done is True

    def test_callback_may_cancel_its_own_subscription(self, store, shards):
        aggregator = VoteAggregator(store)

        async def scenario():
            await make_event(store, shards)
            calls = []

            def on_update(totals):
                calls.append(totals)
                sub.cancel()

            sub = aggregator.subscribe("evt-1", on_update)
            await asyncio.sleep(0.01)
            await shards.increment("evt-1", VoteStatus.MAYBE)
            await asyncio.sleep(0.01)
            return len(calls), sub._task.done()

        assert run(scenario()) == (1, True)

    def test_unexpected_store_error_stops_stream(self, store, shards, monkeypatch):
        aggregator = VoteAggregator(store)

        async def broken_list_shards(event_id):
            raise RuntimeError("cursor died")

        async def scenario():
            await make_event(store, shards)
            monkeypatch.setattr(store, "list_shards", broken_list_shards)
            sub = aggregator.subscribe("evt-1", lambda totals: None)
            await asyncio.sleep(0.01)
            return sub.active, sub._task.done(), sub._task.exception()

        active, done, exc = run(scenario())
        assert active is False
        assert done is True
        assert exc is None
