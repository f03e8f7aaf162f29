"""Per-user vote ledger.

The ledger is the source of truth for what each user voted. A vote change
updates the user's record and both shard counters in one transaction, so a
failed change leaves nothing behind. The shard total is only eventually
consistent with the ledger.
"""

import logging
from typing import List, Optional

from sportygo.models import VoteChange, VoteRecord, VoteStatus, utcnow
from sportygo.services.shard_service import ShardSet
from sportygo.store.base import DocumentStore

logger = logging.getLogger(__name__)

__all__ = ["VoteLedger"]


class VoteLedger:
    def __init__(self, store: DocumentStore, shards: ShardSet):
        self.store = store
        self.shards = shards

    async def get_vote(self, event_id: str, user_id: str) -> Optional[VoteStatus]:
        """Return the user's current vote, or None if they have not voted."""
        record = await self.store.get_vote(event_id, user_id)
        return record.status if record else None

    async def set_vote(
        self, event_id: str, user_id: str, status: VoteStatus
    ) -> VoteChange:
        """Record ``status`` as the user's vote.

        Repeating the current vote writes nothing. Otherwise the previous
        status is decremented, the new one incremented and the record
        upserted, all in one transaction.

        Args:
            event_id: Event being voted on.
            user_id: Already-authenticated user id.
            status: The new vote.

        Returns:
            VoteChange describing the transition.

        Raises:
            TransientStoreError: If the transaction could not be committed.
        """
        status = VoteStatus(status)

        async def _change(session) -> VoteChange:
            existing = await self.store.get_vote(event_id, user_id, session=session)
            previous = existing.status if existing else None
            if previous == status:
                return VoteChange(
                    event_id=event_id,
                    user_id=user_id,
                    previous=previous,
                    status=status,
                    changed=False,
                )
            if previous is not None:
                await self.shards.decrement(event_id, previous, session=session)
            await self.shards.increment(event_id, status, session=session)
            await self.store.put_vote(
                VoteRecord(
                    event_id=event_id,
                    user_id=user_id,
                    status=status,
                    voted_at=utcnow(),
                ),
                session=session,
            )
            return VoteChange(
                event_id=event_id,
                user_id=user_id,
                previous=previous,
                status=status,
                changed=True,
            )

        change = await self.store.run_transaction(_change)
        if change.changed:
            logger.info(
                "User %s vote on event %s: %s -> %s",
                user_id,
                event_id,
                change.previous.value if change.previous else None,
                status.value,
            )
        else:
            logger.debug("User %s repeated vote %s on event %s", user_id, status.value, event_id)
        return change

    async def list_voters(
        self, event_id: str, status: Optional[VoteStatus] = None
    ) -> List[VoteRecord]:
        """Vote records for an event, oldest first, optionally for one status."""
        if status is not None:
            status = VoteStatus(status)
        return await self.store.list_votes(event_id, status)
