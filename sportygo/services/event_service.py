"""Entry points used by the client for one event's voting.

``EventCoordinator`` holds no state. Every call takes explicit ids and runs
load event -> window check -> ledger update, or goes straight to the
aggregator for reads.
"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional, Union

from sportygo.models import (
    AttendanceRecord,
    AttendanceRejection,
    AttendanceResult,
    CastVoteResult,
    Event,
    VoteRecord,
    VoteRejection,
    VoteStatus,
    VoteTotals,
    WindowDecision,
    ensure_utc,
    utcnow,
)
from sportygo.services.shard_service import (
    ShardSet,
    Subscription,
    TotalsCallback,
    VoteAggregator,
)
from sportygo.services.vote_service import VoteLedger
from sportygo.services.voting_window import VotingWindow
from sportygo.store.base import DocumentStore

logger = logging.getLogger(__name__)

__all__ = ["EventCoordinator"]


class EventCoordinator:
    def __init__(
        self,
        store: DocumentStore,
        shards: Optional[ShardSet] = None,
        window: Optional[VotingWindow] = None,
    ):
        self.store = store
        self.shards = shards or ShardSet(store)
        self.ledger = VoteLedger(store, self.shards)
        self.aggregator = VoteAggregator(store)
        self.window = window or VotingWindow()

    async def create_event(
        self,
        event_date: datetime,
        *,
        event_id: Optional[str] = None,
        group_id: Optional[str] = None,
        title: str = "",
        location: str = "",
        cutoff_date: Optional[datetime] = None,
        voting_enabled: bool = True,
        creator_id: Optional[str] = None,
    ) -> Event:
        """Create an event together with its zeroed vote shards."""
        event = Event(
            id=event_id or uuid.uuid4().hex,
            group_id=group_id,
            title=title,
            location=location,
            event_date=event_date,
            cutoff_date=cutoff_date,
            voting_enabled=voting_enabled,
            creator_id=creator_id,
        )
        await self.store.create_event(event, self.shards.seed(event.id))
        logger.info(
            "Created event %s with %d vote shards", event.id, self.shards.shard_count
        )
        return event

    async def get_event(self, event_id: str) -> Optional[Event]:
        return await self.store.get_event(event_id)

    async def start_early(self, event_id: str) -> Optional[Event]:
        """Admin action: close voting now, whatever the cutoff says."""
        event = await self.store.update_event(
            event_id, {"started_early": True, "started_early_at": utcnow()}
        )
        if event is not None:
            logger.info("Event %s started early", event_id)
        return event

    async def set_voting_enabled(self, event_id: str, enabled: bool) -> Optional[Event]:
        return await self.store.update_event(event_id, {"voting_enabled": enabled})

    def is_voting_open(
        self, event: Event, now: Optional[datetime] = None
    ) -> WindowDecision:
        return self.window.evaluate(event, now)

    async def cast_vote(
        self,
        event_id: str,
        user_id: str,
        status: Union[VoteStatus, str],
        now: Optional[datetime] = None,
    ) -> CastVoteResult:
        """Cast or change a user's vote if the event is open for voting.

        Policy rejections come back as ``success=False`` with a reason and
        write nothing. Store failures raise ``TransientStoreError``.
        """
        status = VoteStatus(status)
        event = await self.store.get_event(event_id)
        if event is None:
            return CastVoteResult(
                success=False, reason=VoteRejection.EVENT_NOT_FOUND, status=status
            )

        decision = self.window.evaluate(event, now)
        if not decision.open:
            logger.info(
                "Rejected %s vote by %s on event %s: %s",
                status.value,
                user_id,
                event_id,
                decision.reason.value,
            )
            return CastVoteResult(success=False, reason=decision.reason, status=status)

        change = await self.ledger.set_vote(event_id, user_id, status)
        return CastVoteResult(
            success=True,
            status=status,
            previous=change.previous,
            changed=change.changed,
        )

    async def get_user_vote(self, event_id: str, user_id: str) -> Optional[VoteStatus]:
        return await self.ledger.get_vote(event_id, user_id)

    async def get_vote_totals(self, event_id: str) -> VoteTotals:
        return await self.aggregator.read_totals(event_id)

    def subscribe_vote_totals(
        self, event_id: str, on_update: TotalsCallback
    ) -> Subscription:
        return self.aggregator.subscribe(event_id, on_update)

    async def list_voters(
        self, event_id: str, status: Optional[VoteStatus] = None
    ) -> List[VoteRecord]:
        return await self.ledger.list_voters(event_id, status)

    async def record_attendance(
        self,
        event_id: str,
        user_id: str,
        arrived: bool = True,
        now: Optional[datetime] = None,
    ) -> AttendanceResult:
        """Mark a member as arrived (or not) at an event that has started.

        Recording opens when the event starts, either at ``event_date`` or
        through ``start_early``. Unmarking clears the arrival time.
        """
        now = ensure_utc(now) if now is not None else utcnow()
        event = await self.store.get_event(event_id)
        if event is None:
            return AttendanceResult(
                success=False, reason=AttendanceRejection.EVENT_NOT_FOUND
            )
        if not self.window.has_started(event, now):
            return AttendanceResult(success=False, reason=AttendanceRejection.NOT_STARTED)

        record = AttendanceRecord(
            event_id=event_id,
            user_id=user_id,
            voted_status=await self.ledger.get_vote(event_id, user_id),
            arrived=arrived,
            arrival_time=now if arrived else None,
        )
        await self.store.put_attendance(record)
        logger.info(
            "Marked %s as %s at event %s",
            user_id,
            "arrived" if arrived else "absent",
            event_id,
        )
        return AttendanceResult(success=True, record=record)

    async def get_attendance(self, event_id: str) -> List[AttendanceRecord]:
        """Attendance sheet: going/maybe voters first, then anyone else marked."""
        stored = {r.user_id: r for r in await self.store.list_attendance(event_id)}
        sheet = []
        for vote in await self.ledger.list_voters(event_id):
            if vote.status not in (VoteStatus.GOING, VoteStatus.MAYBE):
                continue
            record = stored.pop(vote.user_id, None)
            if record is None:
                record = AttendanceRecord(event_id=event_id, user_id=vote.user_id)
            sheet.append(record.model_copy(update={"voted_status": vote.status}))
        sheet.extend(sorted(stored.values(), key=lambda r: r.user_id))
        return sheet
