from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator

from sportygo.models.common import ensure_utc
from sportygo.models.vote import VoteStatus


class AttendanceRecord(BaseModel):
    """Whether a member turned up to an event that has started.

    ``voted_status`` is the member's vote when the sheet was built; members
    marked without a stored record carry ``arrived=False``.
    """

    event_id: str
    user_id: str
    voted_status: Optional[VoteStatus] = None
    arrived: bool = False
    arrival_time: Optional[datetime] = None

    @field_validator("arrival_time")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)


class AttendanceRejection(str, Enum):
    EVENT_NOT_FOUND = "event not found"
    NOT_STARTED = "event not started"


class AttendanceResult(BaseModel):
    success: bool
    reason: Optional[AttendanceRejection] = None
    record: Optional[AttendanceRecord] = None
