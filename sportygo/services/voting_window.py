"""Whether an event accepts votes right now.

Checks run in a fixed order and the first closed condition wins:

1. voting disabled
2. event started early (admin action)
3. event start time reached
4. cutoff reached

An early start therefore closes voting even with a future cutoff, and an
event without a cutoff still closes when it begins.
"""

from datetime import datetime
from typing import Callable, Optional

from sportygo.models import Event, VoteRejection, WindowDecision, ensure_utc, utcnow

__all__ = ["VotingWindow"]


class VotingWindow:
    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock

    def _now(self, now: Optional[datetime]) -> datetime:
        return ensure_utc(now) if now is not None else self._clock()

    def evaluate(self, event: Event, now: Optional[datetime] = None) -> WindowDecision:
        now = self._now(now)
        if event.voting_enabled is False:
            return WindowDecision(open=False, reason=VoteRejection.VOTING_DISABLED)
        if event.started_early is True:
            return WindowDecision(open=False, reason=VoteRejection.STARTED_EARLY)
        if now >= event.event_date:
            return WindowDecision(open=False, reason=VoteRejection.EVENT_STARTED)
        if event.cutoff_date is not None and now >= event.cutoff_date:
            return WindowDecision(open=False, reason=VoteRejection.CUTOFF_PASSED)
        return WindowDecision(open=True)

    def is_open(self, event: Event, now: Optional[datetime] = None) -> bool:
        return self.evaluate(event, now).open

    def has_started(self, event: Event, now: Optional[datetime] = None) -> bool:
        """True once the event began, on schedule or by an early start."""
        return event.started_early or self._now(now) >= event.event_date

    def deadline(self, event: Event) -> datetime:
        """Moment voting closes on its own: the cutoff or the event start."""
        if event.cutoff_date is not None and event.cutoff_date < event.event_date:
            return event.cutoff_date
        return event.event_date

    def countdown(self, event: Event, now: Optional[datetime] = None) -> str:
        """Human-readable voting status for display."""
        now = self._now(now)
        decision = self.evaluate(event, now)
        if not decision.open:
            return {
                VoteRejection.VOTING_DISABLED: "Voting Disabled",
                VoteRejection.STARTED_EARLY: "Event Started Early",
                VoteRejection.EVENT_STARTED: "Event Started",
            }.get(decision.reason, "Voting Closed")

        remaining = int((self.deadline(event) - now).total_seconds())
        days, remaining = divmod(remaining, 86400)
        hours, remaining = divmod(remaining, 3600)
        minutes = remaining // 60

        parts = []
        if days > 0:
            parts.append(_plural(days, "day"))
        parts.append(_plural(hours, "hour"))
        if days == 0 and hours < 2:
            parts.append(_plural(minutes, "minute"))
        return "Closes in " + ", ".join(parts)


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"
