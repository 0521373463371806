from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from chapter_access.core.access import MemberProfile, Principal
from chapter_access.core.errors import AccessErrorKind, Result
from chapter_access.crud.access import AccessRepository
from chapter_access.services.membership_expiry import ExpiryStatus, MembershipExpiryChecker

logger = logging.getLogger(__name__)

MEMBER_NOT_FOUND_MESSAGE = "Access denied: No member profile found"
MEMBERSHIP_EXPIRED_MESSAGE = "Your membership has expired. Please contact your administrator."


@dataclass(frozen=True)
class ResolvedMember:
    profile: MemberProfile
    expiry: Optional[ExpiryStatus] = None


class IdentityResolver:
    """Load a principal's member profile with its chapter and zone role assignments."""

    def __init__(
        self,
        repo: AccessRepository,
        expiry_checker: Optional[MembershipExpiryChecker] = None,
    ) -> None:
        self.repo = repo
        self.expiry_checker = expiry_checker

    async def resolve(self, principal: Principal) -> Result[ResolvedMember]:
        try:
            profile = await self.repo.get_member_profile(principal.id)
            if profile is None:
                return Result.failure(
                    AccessErrorKind.MEMBER_NOT_FOUND,
                    MEMBER_NOT_FOUND_MESSAGE,
                    principal_id=principal.id,
                )

            expiry = None
            if self.expiry_checker is not None:
                # lapsed members are rejected whatever roles they still hold
                expiry = await self.expiry_checker.check_expiry(principal.id)
                if not expiry.active:
                    return Result.failure(
                        AccessErrorKind.MEMBERSHIP_EXPIRED,
                        MEMBERSHIP_EXPIRED_MESSAGE,
                        principal_id=principal.id,
                        member_id=profile.id,
                    )
        except Exception:
            # storage outages and malformed rows alike end as a typed 500
            logger.exception("Member lookup failed for principal %s", principal.id)
            return Result.failure(
                AccessErrorKind.INTERNAL_ERROR,
                "Server error during role inference",
                principal_id=principal.id,
                step="identity",
            )

        return Result.success(ResolvedMember(profile=profile, expiry=expiry))
