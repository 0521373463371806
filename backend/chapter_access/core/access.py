from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, Iterable, Optional, Tuple

from chapter_access.core.roles import AccessLevel, ChapterRoleType, ZoneRoleType, normalize_role_tags


@dataclass(frozen=True)
class Principal:
    """Authenticated identity attached to a request. Immutable for the request lifetime."""

    id: int
    roles: Tuple[str, ...] = ()
    active: bool = True
    email: Optional[str] = None

    def __post_init__(self) -> None:
        # accepts "Admin" or ["member", "ADMIN"]
        object.__setattr__(self, "roles", normalize_role_tags(self.roles))

    def has_any_role(self, tags: Iterable[str]) -> bool:
        wanted = {t.strip().lower() for t in tags}
        return any(r in wanted for r in self.roles)

    @classmethod
    def from_user(cls, user) -> "Principal":
        return cls(
            id=user.id,
            roles=user.role,
            active=bool(getattr(user, "is_active", True)),
            email=getattr(user, "email", None),
        )


@dataclass(frozen=True)
class ChapterRoleAssignment:
    member_id: int
    chapter_id: int
    role_type: ChapterRoleType
    chapter_name: Optional[str] = None


@dataclass(frozen=True)
class ZoneRoleAssignment:
    member_id: int
    zone_id: int
    role_type: ZoneRoleType
    zone_name: Optional[str] = None


@dataclass(frozen=True)
class MemberProfile:
    id: int
    user_id: int
    member_name: str
    chapter_roles: Tuple[ChapterRoleAssignment, ...] = ()
    zone_roles: Tuple[ZoneRoleAssignment, ...] = ()


@dataclass(frozen=True)
class ZoneRecord:
    id: int
    name: str


@dataclass(frozen=True)
class ChapterRecord:
    id: int
    name: str
    zone_id: Optional[int] = None


@dataclass(frozen=True)
class MembershipDates:
    member_id: int
    is_active: bool
    ho_expiry_date: Optional[datetime] = None
    venue_expiry_date: Optional[datetime] = None


@dataclass(frozen=True)
class RoleInfo:
    """
    Per-request authorization descriptor.

    For ADMIN the authorized sets are empty and mean "unrestricted";
    consumers must look at access_level before reading the sets.
    """

    role: str
    access_level: AccessLevel
    authorized_chapters: FrozenSet[int] = field(default_factory=frozenset)
    authorized_zones: FrozenSet[int] = field(default_factory=frozenset)
    context_label: str = ""
    permissions: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_unrestricted(self) -> bool:
        return self.access_level == AccessLevel.ADMIN
