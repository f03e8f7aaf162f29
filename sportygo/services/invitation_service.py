import logging
import secrets
from datetime import datetime
from typing import List, Optional

from sportygo.config import settings
from sportygo.exceptions import DocumentExistsError, InviteValidationError
from sportygo.models import (
    ConsumeResult,
    InviteRecord,
    InviteRejection,
    InviteResolution,
    InviteStatus,
    ensure_utc,
    utcnow,
)
from sportygo.store.base import DocumentStore

logger = logging.getLogger(__name__)

__all__ = ["InviteLedger", "generate_code"]

MAX_CODE_ATTEMPTS = 5


def generate_code(length: Optional[int] = None, alphabet: Optional[str] = None) -> str:
    length = length or settings.invite_code_length
    alphabet = alphabet or settings.invite_code_alphabet
    return "".join(secrets.choice(alphabet) for _ in range(length))


class InviteLedger:
    """Group invite codes: creation, lookup and atomic consumption."""

    def __init__(self, store: DocumentStore, code_length: Optional[int] = None):
        self.store = store
        self.code_length = code_length or settings.invite_code_length

    async def create_invite(
        self,
        group_id: str,
        valid_until: datetime,
        max_uses: Optional[int] = None,
        created_by: Optional[str] = None,
    ) -> InviteRecord:
        """Create an invite for a group.

        Args:
            group_id: Group the invite grants membership to.
            valid_until: Expiry instant; must be in the future.
            max_uses: Maximum number of joins, or None for unlimited.
            created_by: Id of the admin creating the invite.

        Returns:
            The stored InviteRecord.

        Raises:
            InviteValidationError: If ``valid_until`` or ``max_uses`` is invalid.
            DocumentExistsError: If no free code was found.
        """
        valid_until = ensure_utc(valid_until)
        if valid_until <= utcnow():
            raise InviteValidationError("valid_until must be in the future")
        if max_uses is not None and max_uses < 1:
            raise InviteValidationError("max_uses must be a positive integer")

        for _ in range(MAX_CODE_ATTEMPTS):
            invite = InviteRecord(
                code=generate_code(self.code_length),
                group_id=group_id,
                valid_until=valid_until,
                max_uses=max_uses,
                created_by=created_by,
            )
            try:
                await self.store.insert_invite(invite)
            except DocumentExistsError:
                logger.warning("Invite code collision for group %s, retrying", group_id)
                continue
            logger.info(
                "Created invite %s for group %s (max_uses=%s, valid_until=%s)",
                invite.code,
                group_id,
                max_uses if max_uses is not None else "unlimited",
                valid_until.isoformat(),
            )
            return invite
        raise DocumentExistsError("group_invites", "<generated>")

    async def resolve_invite(
        self, code: str, now: Optional[datetime] = None
    ) -> InviteResolution:
        invite = await self.store.get_invite(code)
        if invite is None:
            return InviteResolution(status=InviteStatus.NOT_FOUND)
        return InviteResolution(status=invite.status(now or utcnow()), record=invite)

    async def consume_invite(
        self, code: str, user_id: str, now: Optional[datetime] = None
    ) -> ConsumeResult:
        """Join ``user_id`` to the invite's group and count the use.

        Validity is re-checked inside the same transaction that increments
        ``used`` and adds the member, so two racing joins cannot both take
        the last use. Rejections write nothing.
        """
        now = ensure_utc(now) if now is not None else utcnow()

        async def _consume(session) -> ConsumeResult:
            invite = await self.store.get_invite(code, session=session)
            if invite is None:
                return ConsumeResult(success=False, reason=InviteRejection.NOT_FOUND)
            status = invite.status(now)
            if status is InviteStatus.EXPIRED:
                return _rejected(InviteRejection.EXPIRED, invite)
            if status is InviteStatus.EXHAUSTED:
                return _rejected(InviteRejection.EXHAUSTED, invite)

            group = await self.store.get_group(invite.group_id, session=session)
            if group is None:
                return _rejected(InviteRejection.GROUP_NOT_FOUND, invite)
            if group.has_member(user_id):
                return _rejected(InviteRejection.ALREADY_MEMBER, invite)

            await self.store.increment_invite_used(code, session=session)
            await self.store.add_group_member(group.id, user_id, session=session)
            return ConsumeResult(success=True, group_id=group.id, used=invite.used + 1)

        result = await self.store.run_transaction(_consume)
        if result.success:
            logger.info("User %s joined group %s via invite %s", user_id, result.group_id, code)
        else:
            logger.info("Invite %s rejected for user %s: %s", code, user_id, result.reason.value)
        return result

    async def list_invites(self, group_id: str) -> List[InviteRecord]:
        """A group's invites, latest expiry first."""
        return await self.store.list_invites(group_id)

    async def expire_invite(self, code: str) -> bool:
        found = await self.store.update_invite(code, {"expired": True})
        if found:
            logger.info("Expired invite %s", code)
        return found

    def invite_link(self, code: str) -> str:
        return f"{settings.invite_link_base_url.rstrip('/')}/{code}"


def _rejected(reason: InviteRejection, invite: InviteRecord) -> ConsumeResult:
    return ConsumeResult(
        success=False, reason=reason, group_id=invite.group_id, used=invite.used
    )
