from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Optional

from chapter_access.auth.permissions import permissions_for_level
from chapter_access.core.access import MemberProfile, Principal, RoleInfo
from chapter_access.core.errors import AccessErrorKind, Result
from chapter_access.core.roles import (
    ADMIN_CONTEXT_LABEL,
    ADMIN_LABEL,
    CHAPTER_ROLE_CATEGORIES,
    CHAPTER_ROLE_LABELS,
    ZONE_ROLE_CATEGORIES,
    ZONE_ROLE_LABELS,
    AccessLevel,
    RoleCategory,
    chapter_role_rank,
    zone_role_rank,
)
from chapter_access.crud.access import AccessRepository
from chapter_access.services.identity import IdentityResolver
from chapter_access.services.membership_expiry import ExpiryStatus

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_ROLES = frozenset({"admin", "super_admin"})
NO_ROLE_ASSIGNMENTS_MESSAGE = "Access denied: No role assignments found"
INFERENCE_ERROR_MESSAGE = "Server error during role inference"

ADMIN_ROLE_INFO = RoleInfo(
    role=ADMIN_LABEL,
    access_level=AccessLevel.ADMIN,
    authorized_chapters=frozenset(),  # empty == unrestricted for ADMIN
    authorized_zones=frozenset(),
    context_label=ADMIN_CONTEXT_LABEL,
    permissions=permissions_for_level(AccessLevel.ADMIN),
)

AccessibleChapters = Dict[RoleCategory, FrozenSet[int]]


@dataclass(frozen=True)
class InferredAccess:
    role_info: RoleInfo
    # None for admins and when expiry is not enforced
    expiry: Optional[ExpiryStatus] = None


def _context_label(role_label: str, scope_name: str, scope_count: int) -> str:
    label = f"{role_label} - {scope_name}"
    if scope_count > 1:
        label += f" (+{scope_count - 1} more)"
    return label


def infer_role_info(
    profile: MemberProfile,
    *,
    contained_chapters: Iterable[int] = (),
) -> Result[RoleInfo]:
    """
    Collapse a profile's raw assignments into one RoleInfo.

    Zone assignments outrank chapter assignments. The role label and context
    label come from the primary assignment: lowest (role precedence, scope id).
    `contained_chapters` is only merged in for zone-level principals.
    """
    zones = frozenset(a.zone_id for a in profile.zone_roles)
    chapters = frozenset(a.chapter_id for a in profile.chapter_roles)

    if not zones and not chapters:
        return Result.failure(
            AccessErrorKind.NO_ROLE_ASSIGNMENTS,
            NO_ROLE_ASSIGNMENTS_MESSAGE,
            principal_id=profile.user_id,
            member_id=profile.id,
        )

    if zones:
        primary = min(profile.zone_roles, key=lambda a: (zone_role_rank(a.role_type), a.zone_id))
        role_label = ZONE_ROLE_LABELS.get(primary.role_type, primary.role_type.value)
        scope_name = primary.zone_name or f"Zone {primary.zone_id}"
        level = AccessLevel.ZONE
        chapters = chapters | frozenset(contained_chapters)
        scope_count = len(zones)
    else:
        primary = min(profile.chapter_roles, key=lambda a: (chapter_role_rank(a.role_type), a.chapter_id))
        role_label = CHAPTER_ROLE_LABELS.get(primary.role_type, primary.role_type.value)
        scope_name = primary.chapter_name or f"Chapter {primary.chapter_id}"
        level = AccessLevel.CHAPTER
        scope_count = len(chapters)

    return Result.success(
        RoleInfo(
            role=role_label,
            access_level=level,
            authorized_chapters=chapters,
            authorized_zones=zones,
            context_label=_context_label(role_label, scope_name, scope_count),
            permissions=permissions_for_level(level),
        )
    )


class RoleInferenceEngine:
    """
    Derive the request-scoped RoleInfo for a principal.

    Nothing is cached: every call reads current assignments so a revoked role
    stops granting access on the very next request.
    """

    def __init__(
        self,
        repo: AccessRepository,
        resolver: Optional[IdentityResolver] = None,
        *,
        admin_roles: Iterable[str] = DEFAULT_ADMIN_ROLES,
        zone_includes_chapters: bool = False,
    ) -> None:
        self.repo = repo
        self.resolver = resolver or IdentityResolver(repo)
        self.admin_roles = frozenset(r.strip().lower() for r in admin_roles)
        self.zone_includes_chapters = zone_includes_chapters

    def is_admin(self, principal: Principal) -> bool:
        return principal.has_any_role(self.admin_roles)

    async def infer(self, principal: Principal) -> Result[RoleInfo]:
        result = await self.infer_access(principal)
        if not result.ok:
            return Result.from_error(result.error)
        return Result.success(result.value.role_info)

    async def infer_access(self, principal: Principal) -> Result[InferredAccess]:
        """RoleInfo together with the membership status checked on the way."""
        if self.is_admin(principal):
            return Result.success(InferredAccess(role_info=ADMIN_ROLE_INFO))

        resolved = await self.resolver.resolve(principal)
        if not resolved.ok:
            logger.info(
                "Role inference failed for user %s: %s",
                principal.id,
                resolved.error.kind.value,
            )
            return Result.from_error(resolved.error)

        profile = resolved.value.profile
        contained: FrozenSet[int] = frozenset()
        if self.zone_includes_chapters and profile.zone_roles:
            try:
                rows = await self.repo.list_chapters_in_zones({a.zone_id for a in profile.zone_roles})
            except Exception:
                logger.exception("Zone chapter lookup failed for principal %s", principal.id)
                return Result.failure(
                    AccessErrorKind.INTERNAL_ERROR,
                    INFERENCE_ERROR_MESSAGE,
                    principal_id=principal.id,
                    step="zone_containment",
                )
            contained = frozenset(c.id for c in rows)

        result = infer_role_info(profile, contained_chapters=contained)
        if not result.ok:
            logger.info("User %s has a member profile but no role assignments", principal.id)
            return Result.from_error(result.error)

        logger.debug(
            "User %s inferred as %s with %s access",
            principal.id,
            result.value.role,
            result.value.access_level.value,
        )
        return Result.success(InferredAccess(role_info=result.value, expiry=resolved.value.expiry))

    async def accessible_chapters(self, principal_id: int) -> Result[AccessibleChapters]:
        """
        Chapter ids per role category (OB / RD / DC).

        RD resolves through zone containment: every chapter inside a zone the
        member directs. A principal without a member profile gets empty sets.
        """
        breakdown: AccessibleChapters = {c: frozenset() for c in RoleCategory}
        try:
            member_id = await self.repo.get_member_id(principal_id)
            if member_id is None:
                return Result.success(breakdown)

            chapter_types = frozenset().union(*CHAPTER_ROLE_CATEGORIES.values())
            chapter_roles = await self.repo.list_chapter_roles(member_id, role_types=chapter_types)
            for category, types in CHAPTER_ROLE_CATEGORIES.items():
                breakdown[category] = frozenset(a.chapter_id for a in chapter_roles if a.role_type in types)

            for category, types in ZONE_ROLE_CATEGORIES.items():
                zone_roles = await self.repo.list_zone_roles(member_id, role_types=types)
                if zone_roles:
                    rows = await self.repo.list_chapters_in_zones({a.zone_id for a in zone_roles})
                    breakdown[category] = frozenset(c.id for c in rows)
        except Exception:
            logger.exception("Accessible chapter lookup failed for principal %s", principal_id)
            return Result.failure(
                AccessErrorKind.INTERNAL_ERROR,
                "Server error while authorizing chapter access",
                principal_id=principal_id,
                step="accessible_chapters",
            )

        return Result.success(breakdown)
