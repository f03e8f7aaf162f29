from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from sportygo.models.common import ensure_utc, utcnow


class InviteStatus(str, Enum):
    VALID = "valid"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"
    NOT_FOUND = "not_found"


class InviteRecord(BaseModel):
    """A bounded-use, time-boxed code for joining a group.

    ``max_uses`` of ``None`` means unlimited.
    """

    code: str
    group_id: str
    valid_until: datetime
    max_uses: Optional[int] = Field(default=None, ge=1)
    used: int = Field(default=0, ge=0)
    expired: bool = False
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("valid_until", "created_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def unlimited(self) -> bool:
        return self.max_uses is None

    def is_expired(self, now: datetime) -> bool:
        return self.expired or ensure_utc(now) >= self.valid_until

    def is_exhausted(self) -> bool:
        return self.max_uses is not None and self.used >= self.max_uses

    def status(self, now: datetime) -> InviteStatus:
        """Expiry wins over exhaustion."""
        if self.is_expired(now):
            return InviteStatus.EXPIRED
        if self.is_exhausted():
            return InviteStatus.EXHAUSTED
        return InviteStatus.VALID


class InviteRejection(str, Enum):
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"
    ALREADY_MEMBER = "already_member"
    GROUP_NOT_FOUND = "group_not_found"


class InviteResolution(BaseModel):
    status: InviteStatus
    record: Optional[InviteRecord] = None


class ConsumeResult(BaseModel):
    success: bool
    reason: Optional[InviteRejection] = None
    group_id: Optional[str] = None
    used: Optional[int] = None
