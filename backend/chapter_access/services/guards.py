"""
Authorization checks shared by every protected route.

All functions here are pure: they read a RoleInfo (or a role-category
breakdown) plus the resource id the request targets, and return a Result.
They never touch storage or mutate authorization state; the only side
effect is logging the decision.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Sequence, Tuple

from chapter_access.auth.permissions import is_permitted
from chapter_access.core.access import RoleInfo
from chapter_access.core.errors import AccessErrorKind, Result
from chapter_access.core.roles import AccessLevel, RoleCategory

logger = logging.getLogger(__name__)

CHAPTER_GUARD = "chapter_access"
ZONE_GUARD = "zone_access"
CHAPTER_ROLE_GUARD = "chapter_role_access"
PERMISSION_GUARD = "permission_access"

CHAPTER_ROLE_DENIED_MESSAGE = "Forbidden: You do not have the required role for this chapter."

_INT_RE = re.compile(r"^[+-]?\d+$")


class ExtractionSource(str, enum.Enum):
    PATH = "path"
    QUERY = "query"
    BODY = "body"


DEFAULT_SOURCES: Tuple[ExtractionSource, ...] = (
    ExtractionSource.PATH,
    ExtractionSource.QUERY,
    ExtractionSource.BODY,
)


@dataclass(frozen=True)
class RequestData:
    """Transport-neutral view of where a resource id may appear."""

    path_params: Mapping[str, Any] = field(default_factory=dict)
    query_params: Mapping[str, Any] = field(default_factory=dict)
    body: Mapping[str, Any] = field(default_factory=dict)

    def values_for(self, source: ExtractionSource) -> Mapping[str, Any]:
        if source is ExtractionSource.PATH:
            return self.path_params
        if source is ExtractionSource.QUERY:
            return self.query_params
        return self.body


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _parse_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _INT_RE.match(value.strip()):
        return int(value.strip())
    return None


@dataclass(frozen=True)
class ResourceIdExtractor:
    """
    Try each source in order; the first non-empty value wins and must parse
    as an integer. An absent id is only acceptable when `optional` is set.
    """

    field: str
    label: str = "resource"
    optional: bool = False
    sources: Tuple[ExtractionSource, ...] = DEFAULT_SOURCES

    def _bad_request(self, raw: Any = None) -> Result[Optional[int]]:
        return Result.failure(
            AccessErrorKind.BAD_REQUEST,
            f"Bad Request: Invalid or missing {self.label} ID in parameter '{self.field}'",
            field=self.field,
            resource_id=raw,
        )

    def extract(self, request: RequestData) -> Result[Optional[int]]:
        for source in self.sources:
            raw = request.values_for(source).get(self.field)
            if _is_empty(raw):
                continue
            value = _parse_int(raw)
            if value is None:
                return self._bad_request(raw)
            return Result.success(value)

        if self.optional:
            return Result.success(None)
        return self._bad_request()


def _forbidden(message: str, **context: Any) -> Result[None]:
    logger.info("Access denied (%s): %s", context.get("guard"), context)
    return Result.failure(AccessErrorKind.FORBIDDEN, message, **context)


# ---------------------------------------------------------
# Chapter-scoped
# ---------------------------------------------------------
def authorize_chapter(role_info: RoleInfo, chapter_id: Optional[int]) -> Result[None]:
    if role_info.is_unrestricted or chapter_id is None:
        return Result.success()
    if chapter_id in role_info.authorized_chapters:
        return Result.success()
    return _forbidden(
        f"Access denied: You don't have permission to access chapter {chapter_id}",
        guard=CHAPTER_GUARD,
        resource_id=chapter_id,
    )


def guard_chapter(role_info: RoleInfo, request: RequestData, extractor: ResourceIdExtractor) -> Result[None]:
    if role_info.is_unrestricted:
        return Result.success()
    extracted = extractor.extract(request)
    if not extracted.ok:
        return Result.from_error(extracted.error)
    return authorize_chapter(role_info, extracted.value)


# ---------------------------------------------------------
# Zone-scoped
# ---------------------------------------------------------
def authorize_zone(role_info: RoleInfo, zone_id: Optional[int]) -> Result[None]:
    if role_info.is_unrestricted:
        return Result.success()
    # no containment: a chapter officer is never zone-authorized
    if role_info.access_level != AccessLevel.ZONE:
        return _forbidden(
            "Access denied: Zone-level access required",
            guard=ZONE_GUARD,
            resource_id=zone_id,
        )
    if zone_id is None or zone_id in role_info.authorized_zones:
        return Result.success()
    return _forbidden(
        f"Access denied: You don't have permission to access zone {zone_id}",
        guard=ZONE_GUARD,
        resource_id=zone_id,
    )


def guard_zone(role_info: RoleInfo, request: RequestData, extractor: ResourceIdExtractor) -> Result[None]:
    if role_info.is_unrestricted:
        return Result.success()
    if role_info.access_level != AccessLevel.ZONE:
        return authorize_zone(role_info, None)
    extracted = extractor.extract(request)
    if not extracted.ok:
        return Result.from_error(extracted.error)
    return authorize_zone(role_info, extracted.value)


# ---------------------------------------------------------
# Role-type-scoped (OB / RD / DC)
# ---------------------------------------------------------
def authorize_chapter_role(
    chapter_id: int,
    accepted: Sequence[RoleCategory],
    breakdown: Mapping[RoleCategory, Iterable[int]],
) -> Result[None]:
    """Pass iff `chapter_id` sits under any accepted category. No categories denies."""
    if not accepted:
        return _forbidden(CHAPTER_ROLE_DENIED_MESSAGE, guard=CHAPTER_ROLE_GUARD, resource_id=chapter_id, accepted=[])

    if any(chapter_id in frozenset(breakdown.get(c, ())) for c in accepted):
        return Result.success()
    return _forbidden(
        CHAPTER_ROLE_DENIED_MESSAGE,
        guard=CHAPTER_ROLE_GUARD,
        resource_id=chapter_id,
        accepted=[c.value for c in accepted],
    )


def authorize_any_chapter_role(
    accepted: Sequence[RoleCategory],
    breakdown: Mapping[RoleCategory, Iterable[int]],
) -> Result[None]:
    if accepted and any(frozenset(breakdown.get(c, ())) for c in accepted):
        return Result.success()
    return _forbidden(
        "Forbidden: You do not have the required role to access this resource.",
        guard=CHAPTER_ROLE_GUARD,
        accepted=[c.value for c in accepted],
    )


# ---------------------------------------------------------
# Permission-scoped
# ---------------------------------------------------------
def authorize_permissions(role_info: RoleInfo, required: Sequence[str], *, any_of: bool = False) -> Result[None]:
    checks = [is_permitted(grants=role_info.permissions, required=p) for p in required]
    allowed = any(checks) if any_of else all(checks)
    if allowed:
        return Result.success()
    missing = [p for p, ok in zip(required, checks) if not ok]
    return _forbidden(
        "Access denied: Insufficient permissions for this resource",
        guard=PERMISSION_GUARD,
        required=list(required),
        missing=missing,
    )
