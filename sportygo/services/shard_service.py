"""Sharded vote counters and their aggregate read side.

Each event owns ``N`` shard documents. Every increment or decrement picks a
shard uniformly at random, so concurrent voters rarely touch the same
document. Only the sum across shards is meaningful: a decrement may land on a
shard that never received the matching increment and drive it below zero.
"""

import asyncio
import inspect
import logging
import random
from typing import Any, Awaitable, Callable, List, Optional, Union

from sportygo.config import settings
from sportygo.exceptions import ConfigurationError
from sportygo.models import VoteShard, VoteStatus, VoteTotals
from sportygo.store.base import DocumentStore

logger = logging.getLogger(__name__)

TotalsCallback = Callable[[VoteTotals], Union[None, Awaitable[None]]]

__all__ = ["ShardSet", "Subscription", "VoteAggregator"]


class ShardSet:
    """Write side of the sharded counter."""

    def __init__(
        self,
        store: DocumentStore,
        shard_count: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.shard_count = (
            settings.vote_shard_count if shard_count is None else shard_count
        )
        if self.shard_count < 1:
            raise ConfigurationError(f"shard_count must be positive, got {self.shard_count}")
        self._rng = rng or random.Random()

    def seed(self, event_id: str) -> List[VoteShard]:
        """Zeroed shards for a new event, to be written with the event itself."""
        return [VoteShard(event_id=event_id, index=i) for i in range(self.shard_count)]

    def pick_index(self) -> int:
        return self._rng.randrange(self.shard_count)

    async def increment(
        self, event_id: str, status: VoteStatus, session: Any = None
    ) -> int:
        return await self._apply(event_id, status, 1, session)

    async def decrement(
        self, event_id: str, status: VoteStatus, session: Any = None
    ) -> int:
        return await self._apply(event_id, status, -1, session)

    async def _apply(
        self, event_id: str, status: VoteStatus, delta: int, session: Any
    ) -> int:
        index = self.pick_index()
        await self.store.increment_shard(
            event_id, index, VoteStatus(status), delta, session=session
        )
        logger.debug(
            "Shard %s/%d %s %+d", event_id, index, VoteStatus(status).value, delta
        )
        return index


class VoteAggregator:
    """Read side: sums shards once or as a live stream."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def read_totals(self, event_id: str) -> VoteTotals:
        shards = await self.store.list_shards(event_id)
        return VoteTotals.from_shards(shards)

    def subscribe(self, event_id: str, callback: TotalsCallback) -> "Subscription":
        """Stream totals for an event to ``callback``.

        Must be called from a running event loop. The callback receives the
        current totals right away and again after every shard change. Call
        the returned handle to stop the stream.
        """
        return Subscription(self, event_id, callback)


class Subscription:
    """Handle for a live totals stream.

    After ``cancel()`` no new callback is started. A callback that was
    already running when ``cancel()`` was called is allowed to finish, and
    the stream closes right after it returns.
    """

    def __init__(self, aggregator: VoteAggregator, event_id: str, callback: TotalsCallback):
        self.event_id = event_id
        self._aggregator = aggregator
        self._callback = callback
        self._active = True
        self._in_callback = False
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.debug("Opened vote totals subscription for event %s", event_id)

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        if not self._in_callback:
            self._task.cancel()
        logger.debug("Cancelled vote totals subscription for event %s", self.event_id)

    __call__ = cancel

    async def aclose(self) -> None:
        """Cancel and wait for the background task to finish."""
        self.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        store = self._aggregator.store
        try:
            async with store.watch_shards(self.event_id) as changes:
                await self._emit()
                if not self._active:
                    return
                async for _ in changes:
                    await self._emit()
                    if not self._active:
                        break
        except Exception:
            logger.exception("Vote totals stream for event %s stopped", self.event_id)
            self._active = False

    async def _emit(self) -> None:
        totals = await self._aggregator.read_totals(self.event_id)
        if not self._active:
            return
        self._in_callback = True
        try:
            result = self._callback(totals)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Vote totals callback failed for event %s", self.event_id)
        finally:
            self._in_callback = False
