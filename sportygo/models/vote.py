from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from sportygo.models.common import ensure_utc, utcnow


class VoteStatus(str, Enum):
    GOING = "going"
    MAYBE = "maybe"
    NOT = "not"


class VoteCounts(BaseModel):
    """Per-status counters. ``not`` is a keyword, so the field is ``not_``."""

    model_config = ConfigDict(populate_by_name=True)

    going: int = 0
    maybe: int = 0
    not_: int = Field(default=0, alias="not")

    def get(self, status: VoteStatus) -> int:
        return getattr(self, counter_attr(status))


class VoteShard(VoteCounts):
    event_id: str
    index: int = Field(ge=0)


class VoteTotals(VoteCounts):
    @computed_field
    @property
    def responses(self) -> int:
        return self.going + self.maybe + self.not_

    @classmethod
    def from_shards(cls, shards) -> "VoteTotals":
        totals = cls()
        for shard in shards:
            totals.going += shard.going
            totals.maybe += shard.maybe
            totals.not_ += shard.not_
        return totals

    def as_dict(self) -> dict:
        return {"going": self.going, "maybe": self.maybe, "not": self.not_}


class VoteRecord(BaseModel):
    event_id: str
    user_id: str
    status: VoteStatus
    voted_at: datetime = Field(default_factory=utcnow)

    @field_validator("voted_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class VoteChange(BaseModel):
    """Outcome of a ledger update for one user."""

    event_id: str
    user_id: str
    previous: Optional[VoteStatus] = None
    status: VoteStatus
    changed: bool


_FIELD_BY_STATUS = {
    VoteStatus.GOING: "going",
    VoteStatus.MAYBE: "maybe",
    VoteStatus.NOT: "not_",
}


def counter_attr(status: VoteStatus) -> str:
    return _FIELD_BY_STATUS[VoteStatus(status)]


def storage_field(status: VoteStatus) -> str:
    """Field name a status is stored under in a shard document."""
    return VoteStatus(status).value
