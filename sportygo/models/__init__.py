from sportygo.models.attendance import AttendanceRecord, AttendanceRejection, AttendanceResult
from sportygo.models.common import ensure_utc, utcnow
from sportygo.models.event import CastVoteResult, Event, VoteRejection, WindowDecision
from sportygo.models.group import Group
from sportygo.models.invitation import (
    ConsumeResult,
    InviteRecord,
    InviteRejection,
    InviteResolution,
    InviteStatus,
)
from sportygo.models.vote import (
    VoteChange,
    VoteCounts,
    VoteRecord,
    VoteShard,
    VoteStatus,
    VoteTotals,
    counter_attr,
    storage_field,
)

__all__ = [
    "AttendanceRecord",
    "AttendanceRejection",
    "AttendanceResult",
    "CastVoteResult",
    "ConsumeResult",
    "Event",
    "Group",
    "InviteRecord",
    "InviteRejection",
    "InviteResolution",
    "InviteStatus",
    "VoteChange",
    "VoteCounts",
    "VoteRecord",
    "VoteRejection",
    "VoteShard",
    "VoteStatus",
    "VoteTotals",
    "WindowDecision",
    "counter_attr",
    "ensure_utc",
    "storage_field",
    "utcnow",
]
