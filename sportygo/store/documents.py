from datetime import datetime
from typing import List, Optional

from beanie import Document, Indexed
from pydantic import ConfigDict, Field
from pymongo import ASCENDING, DESCENDING, IndexModel

from sportygo.models import VoteStatus, utcnow


class EventDocument(Document):
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

    class Settings:
        name = "events"


class VoteShardDocument(Document):
    model_config = ConfigDict(populate_by_name=True)

    event_id: str
    index: int
    going: int = 0
    maybe: int = 0
    not_: int = Field(default=0, alias="not")

    class Settings:
        name = "vote_shards"
        indexes = [
            IndexModel([("event_id", ASCENDING), ("index", ASCENDING)], unique=True),
        ]


class VoteRecordDocument(Document):
    event_id: str
    user_id: str
    status: VoteStatus
    voted_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "user_votes"
        indexes = [
            IndexModel([("event_id", ASCENDING), ("user_id", ASCENDING)], unique=True),
            IndexModel([("event_id", ASCENDING), ("status", ASCENDING), ("voted_at", ASCENDING)]),
        ]


class AttendanceDocument(Document):
    event_id: str
    user_id: str
    voted_status: Optional[VoteStatus] = None
    arrived: bool = False
    arrival_time: Optional[datetime] = None

    class Settings:
        name = "event_attendance"
        indexes = [
            IndexModel([("event_id", ASCENDING), ("user_id", ASCENDING)], unique=True),
        ]


class InviteDocument(Document):
    code: Indexed(str, unique=True)
    group_id: Indexed(str)
    valid_until: datetime
    max_uses: Optional[int] = None
    used: int = 0
    expired: bool = False
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "group_invites"
        indexes = [
            IndexModel([("group_id", ASCENDING), ("valid_until", DESCENDING)]),
        ]


class GroupDocument(Document):
    id: str
    name: str = ""
    owner_id: str = ""
    member_ids: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "groups"


DOCUMENT_MODELS = [
    EventDocument,
    VoteShardDocument,
    VoteRecordDocument,
    AttendanceDocument,
    InviteDocument,
    GroupDocument,
]
