from datetime import datetime
from typing import List

from pydantic import BaseModel, Field

from sportygo.models.common import utcnow


class Group(BaseModel):
    id: str
    name: str = ""
    owner_id: str = ""
    member_ids: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)

    def has_member(self, user_id: str) -> bool:
        return user_id in self.member_ids
