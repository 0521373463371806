from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from chapter_access.core.access import ChapterRecord, ChapterRoleAssignment, RoleInfo
from chapter_access.services.membership_expiry import ExpiryInfo


class RoleInfoOut(BaseModel):
    role: str
    access_level: str
    authorized_chapters: List[int] = []
    authorized_zones: List[int] = []
    context_label: str
    permissions: List[str] = []

    @classmethod
    def from_role_info(cls, info: RoleInfo) -> "RoleInfoOut":
        return cls(
            role=info.role,
            access_level=info.access_level.value,
            authorized_chapters=sorted(info.authorized_chapters),
            authorized_zones=sorted(info.authorized_zones),
            context_label=info.context_label,
            permissions=sorted(info.permissions),
        )


class MembershipStatusOut(BaseModel):
    active: bool
    ho_expiry_date: Optional[datetime] = None
    venue_expiry_date: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    days_remaining: Optional[int] = None

    @classmethod
    def from_expiry(cls, active: bool, info: Optional[ExpiryInfo]) -> "MembershipStatusOut":
        if info is None:
            return cls(active=active)
        return cls(
            active=active,
            ho_expiry_date=info.ho_expiry_date,
            venue_expiry_date=info.venue_expiry_date,
            expires_at=info.expires_at,
            days_remaining=info.days_remaining,
        )


class MeAccessOut(BaseModel):
    id: int
    email: Optional[str] = None
    roles: List[str] = []
    role_info: RoleInfoOut
    membership: Optional[MembershipStatusOut] = None


class AccessibleChaptersOut(BaseModel):
    role: str
    chapters: List[int] = []


class ChapterOut(BaseModel):
    id: int
    name: str
    zone_id: Optional[int] = None

    @classmethod
    def from_record(cls, record: ChapterRecord) -> "ChapterOut":
        return cls(id=record.id, name=record.name, zone_id=record.zone_id)


class ZoneChaptersOut(BaseModel):
    zone_id: int
    zone_name: str
    chapters: List[ChapterOut] = []


class ChapterOfficerOut(BaseModel):
    member_id: int
    chapter_id: int
    role_type: str
    chapter_name: Optional[str] = None

    @classmethod
    def from_assignment(cls, a: ChapterRoleAssignment) -> "ChapterOfficerOut":
        return cls(
            member_id=a.member_id,
            chapter_id=a.chapter_id,
            role_type=a.role_type.value,
            chapter_name=a.chapter_name,
        )


class DashboardScopeOut(BaseModel):
    access_level: str
    context_label: str
    unrestricted: bool
    chapter_ids: List[int] = []
