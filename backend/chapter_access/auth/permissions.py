from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Mapping

from chapter_access.core.roles import AccessLevel

WILDCARD = "*"


@dataclass(frozen=True)
class Permission:
    # dashboard.*
    DASHBOARD_READ: str = "dashboard.read"
    PERFORMANCE_READ: str = "performance.read"

    # scope reads
    ZONE_READ: str = "zone.read"
    CHAPTER_READ: str = "chapter.read"
    MEMBER_READ: str = "member.read"

    # export.*
    EXPORT_READ: str = "export.read"


PERM = Permission()

_BASE = frozenset({PERM.DASHBOARD_READ, PERM.PERFORMANCE_READ})

ACCESS_LEVEL_PERMISSIONS: Mapping[AccessLevel, FrozenSet[str]] = {
    AccessLevel.ADMIN: frozenset({WILDCARD}),
    AccessLevel.ZONE: _BASE
    | frozenset({PERM.ZONE_READ, PERM.CHAPTER_READ, PERM.MEMBER_READ, PERM.EXPORT_READ}),
    AccessLevel.CHAPTER: _BASE
    | frozenset({PERM.CHAPTER_READ, PERM.MEMBER_READ, PERM.EXPORT_READ}),
    AccessLevel.MEMBER: _BASE,
}


def permissions_for_level(level: AccessLevel) -> FrozenSet[str]:
    return ACCESS_LEVEL_PERMISSIONS.get(level, frozenset())


def _has_domain_wildcard(grants: FrozenSet[str], required: str) -> bool:
    if required in grants:
        return True
    idx = required.find(".")
    if idx <= 0:
        return False
    domain = required[:idx]
    return f"{domain}.*" in grants


def is_permitted(*, grants: Iterable[str], required: str) -> bool:
    """
    "*" grants everything; "chapter.*" grants every chapter.* permission.
    """
    have = frozenset(grants)
    if WILDCARD in have:
        return True
    return _has_domain_wildcard(have, required)
