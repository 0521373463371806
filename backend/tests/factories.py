# tests/factories.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Collection, Dict, List, Optional, Union

from chapter_access.core.access import (
    ChapterRecord,
    ChapterRoleAssignment,
    MemberProfile,
    MembershipDates,
    ZoneRecord,
    ZoneRoleAssignment,
)
from chapter_access.core.roles import ChapterRoleType, ZoneRoleType
from chapter_access.core.security import create_access_token
from chapter_access.models.chapter import Chapter
from chapter_access.models.member import Member
from chapter_access.models.role_assignment import ChapterRole, ZoneRole
from chapter_access.models.user import User
from chapter_access.models.zone import Zone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


# ---------------------------------------------------------
# ORM rows
# ---------------------------------------------------------
async def create_user(db, email: str, role: str = "member", is_active: bool = True) -> User:
    user = User(email=email.lower().strip(), name=email.split("@")[0], role=role, is_active=is_active)
    db.add(user)
    await db.flush()
    return user


async def create_zone(db, name: str) -> Zone:
    zone = Zone(name=name, is_active=True)
    db.add(zone)
    await db.flush()
    return zone


async def create_chapter(db, name: str, zone: Optional[Zone] = None) -> Chapter:
    chapter = Chapter(name=name, zone_id=zone.id if zone else None, is_active=True)
    db.add(chapter)
    await db.flush()
    return chapter


async def create_member(
    db,
    user: User,
    *,
    is_active: bool = True,
    ho_expiry_date: Optional[datetime] = None,
    venue_expiry_date: Optional[datetime] = None,
) -> Member:
    member = Member(
        user_id=user.id,
        member_name=user.name or user.email,
        is_active=is_active,
        ho_expiry_date=ho_expiry_date if ho_expiry_date is not None else utcnow() + timedelta(days=180),
        venue_expiry_date=venue_expiry_date,
    )
    db.add(member)
    await db.flush()
    return member


async def add_chapter_role(db, member: Member, chapter: Chapter, role_type: Union[ChapterRoleType, str]) -> ChapterRole:
    row = ChapterRole(member_id=member.id, chapter_id=chapter.id, role_type=getattr(role_type, "value", role_type))
    db.add(row)
    await db.flush()
    return row


async def add_zone_role(db, member: Member, zone: Zone, role_type: Union[ZoneRoleType, str]) -> ZoneRole:
    # raw strings store legacy spellings such as "Regional Director"
    row = ZoneRole(member_id=member.id, zone_id=zone.id, role_type=getattr(role_type, "value", role_type))
    db.add(row)
    await db.flush()
    return row


# ---------------------------------------------------------
# In-memory AccessRepository for service-level tests
# ---------------------------------------------------------
class InMemoryAccessRepository:
    def __init__(self) -> None:
        self.profiles: Dict[int, MemberProfile] = {}
        self.dates: Dict[int, MembershipDates] = {}
        self.zones: Dict[int, ZoneRecord] = {}
        self.chapters: Dict[int, ChapterRecord] = {}
        self.calls: List[str] = []

    def add_zone(self, zone_id: int, name: str) -> None:
        self.zones[zone_id] = ZoneRecord(id=zone_id, name=name)

    def add_chapter(self, chapter_id: int, name: str, zone_id: Optional[int] = None) -> None:
        self.chapters[chapter_id] = ChapterRecord(id=chapter_id, name=name, zone_id=zone_id)

    def add_profile(
        self,
        user_id: int,
        *,
        member_id: Optional[int] = None,
        chapter_roles=(),
        zone_roles=(),
        is_active: bool = True,
        ho_expiry_date: Optional[datetime] = None,
        venue_expiry_date: Optional[datetime] = None,
    ) -> MemberProfile:
        """chapter_roles: [(chapter_id, ChapterRoleType)], zone_roles: [(zone_id, ZoneRoleType)]"""
        member_id = member_id or user_id + 1000
        profile = MemberProfile(
            id=member_id,
            user_id=user_id,
            member_name=f"Member {user_id}",
            chapter_roles=tuple(
                ChapterRoleAssignment(
                    member_id=member_id,
                    chapter_id=cid,
                    role_type=rt,
                    chapter_name=self.chapters[cid].name if cid in self.chapters else None,
                )
                for cid, rt in chapter_roles
            ),
            zone_roles=tuple(
                ZoneRoleAssignment(
                    member_id=member_id,
                    zone_id=zid,
                    role_type=rt,
                    zone_name=self.zones[zid].name if zid in self.zones else None,
                )
                for zid, rt in zone_roles
            ),
        )
        self.profiles[user_id] = profile
        self.dates[user_id] = MembershipDates(
            member_id=member_id,
            is_active=is_active,
            ho_expiry_date=ho_expiry_date,
            venue_expiry_date=venue_expiry_date,
        )
        return profile

    def _profile_by_member(self, member_id: int) -> Optional[MemberProfile]:
        for p in self.profiles.values():
            if p.id == member_id:
                return p
        return None

    async def get_member_profile(self, user_id: int) -> Optional[MemberProfile]:
        self.calls.append("get_member_profile")
        return self.profiles.get(user_id)

    async def get_member_id(self, user_id: int) -> Optional[int]:
        self.calls.append("get_member_id")
        p = self.profiles.get(user_id)
        return p.id if p else None

    async def get_membership_dates(self, user_id: int) -> Optional[MembershipDates]:
        self.calls.append("get_membership_dates")
        return self.dates.get(user_id)

    async def get_zone(self, zone_id: int) -> Optional[ZoneRecord]:
        self.calls.append("get_zone")
        return self.zones.get(zone_id)

    async def get_chapter(self, chapter_id: int) -> Optional[ChapterRecord]:
        self.calls.append("get_chapter")
        return self.chapters.get(chapter_id)

    async def list_chapters_in_zones(self, zone_ids: Collection[int]) -> List[ChapterRecord]:
        self.calls.append("list_chapters_in_zones")
        return [c for c in sorted(self.chapters.values(), key=lambda c: c.id) if c.zone_id in set(zone_ids)]

    async def list_chapter_roles(
        self,
        member_id: int,
        role_types: Optional[Collection[ChapterRoleType]] = None,
    ) -> List[ChapterRoleAssignment]:
        self.calls.append("list_chapter_roles")
        p = self._profile_by_member(member_id)
        rows = list(p.chapter_roles) if p else []
        if role_types is not None:
            rows = [r for r in rows if r.role_type in set(role_types)]
        return rows

    async def list_zone_roles(
        self,
        member_id: int,
        role_types: Optional[Collection[ZoneRoleType]] = None,
    ) -> List[ZoneRoleAssignment]:
        self.calls.append("list_zone_roles")
        p = self._profile_by_member(member_id)
        rows = list(p.zone_roles) if p else []
        if role_types is not None:
            rows = [r for r in rows if r.role_type in set(role_types)]
        return rows

    async def list_chapter_officers(self, chapter_id: int) -> List[ChapterRoleAssignment]:
        self.calls.append("list_chapter_officers")
        return [r for p in self.profiles.values() for r in p.chapter_roles if r.chapter_id == chapter_id]
