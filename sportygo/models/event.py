from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from sportygo.models.common import ensure_utc, utcnow
from sportygo.models.vote import VoteStatus


class Event(BaseModel):
    """A scheduled activity members vote on."""

    id: str
    group_id: Optional[str] = None
    title: str = ""
    location: str = ""
    event_date: datetime
    cutoff_date: Optional[datetime] = None
    voting_enabled: bool = True
    started_early: bool = False
    started_early_at: Optional[datetime] = None
    creator_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("event_date", "cutoff_date", "started_early_at", "created_at")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)


class VoteRejection(str, Enum):
    VOTING_DISABLED = "voting disabled"
    STARTED_EARLY = "event started early"
    EVENT_STARTED = "event started"
    CUTOFF_PASSED = "cutoff passed"
    EVENT_NOT_FOUND = "event not found"


class WindowDecision(BaseModel):
    open: bool
    reason: Optional[VoteRejection] = None

    def __bool__(self) -> bool:
        return self.open


class CastVoteResult(BaseModel):
    success: bool
    reason: Optional[VoteRejection] = None
    status: VoteStatus
    previous: Optional[VoteStatus] = None
    changed: bool = False
