# chapter_access/crud/access.py
from __future__ import annotations

import logging
from typing import Collection, List, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from chapter_access.core.access import (
    ChapterRecord,
    ChapterRoleAssignment,
    MemberProfile,
    MembershipDates,
    ZoneRecord,
    ZoneRoleAssignment,
)
from chapter_access.core.roles import (
    ChapterRoleType,
    ZoneRoleType,
    parse_chapter_role_type,
    parse_zone_role_type,
)
from chapter_access.models.chapter import Chapter
from chapter_access.models.member import Member
from chapter_access.models.role_assignment import ChapterRole, ZoneRole
from chapter_access.models.zone import Zone

logger = logging.getLogger(__name__)


class AccessRepository(Protocol):
    """Read-only queries the authorization core needs from storage."""

    async def get_member_profile(self, user_id: int) -> Optional[MemberProfile]: ...

    async def get_member_id(self, user_id: int) -> Optional[int]: ...

    async def get_membership_dates(self, user_id: int) -> Optional[MembershipDates]: ...

    async def get_zone(self, zone_id: int) -> Optional[ZoneRecord]: ...

    async def get_chapter(self, chapter_id: int) -> Optional[ChapterRecord]: ...

    async def list_chapters_in_zones(self, zone_ids: Collection[int]) -> List[ChapterRecord]: ...

    async def list_chapter_roles(
        self,
        member_id: int,
        role_types: Optional[Collection[ChapterRoleType]] = None,
    ) -> List[ChapterRoleAssignment]: ...

    async def list_zone_roles(
        self,
        member_id: int,
        role_types: Optional[Collection[ZoneRoleType]] = None,
    ) -> List[ZoneRoleAssignment]: ...

    async def list_chapter_officers(self, chapter_id: int) -> List[ChapterRoleAssignment]: ...


def _chapter_assignments(rows, *, with_name: bool = False) -> List[ChapterRoleAssignment]:
    """Rows with an unrecognized role_type grant nothing and are skipped."""
    out: List[ChapterRoleAssignment] = []
    for row in rows:
        role_type = parse_chapter_role_type(row.role_type)
        if role_type is None:
            logger.warning("Ignoring chapter_roles row %s with unknown role_type %r", row.id, row.role_type)
            continue
        out.append(
            ChapterRoleAssignment(
                member_id=row.member_id,
                chapter_id=row.chapter_id,
                role_type=role_type,
                chapter_name=row.chapter.name if with_name and row.chapter is not None else None,
            )
        )
    return out


def _zone_assignments(rows, *, with_name: bool = False) -> List[ZoneRoleAssignment]:
    out: List[ZoneRoleAssignment] = []
    for row in rows:
        role_type = parse_zone_role_type(row.role_type)
        if role_type is None:
            logger.warning("Ignoring zone_roles row %s with unknown role_type %r", row.id, row.role_type)
            continue
        out.append(
            ZoneRoleAssignment(
                member_id=row.member_id,
                zone_id=row.zone_id,
                role_type=role_type,
                zone_name=row.zone.name if with_name and row.zone is not None else None,
            )
        )
    return out


class SqlAlchemyAccessRepository:
    """AccessRepository over one request-scoped AsyncSession."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_member_profile(self, user_id: int) -> Optional[MemberProfile]:
        stmt = (
            select(Member)
            .where(Member.user_id == user_id)
            .options(
                selectinload(Member.chapter_roles).selectinload(ChapterRole.chapter),
                selectinload(Member.zone_roles).selectinload(ZoneRole.zone),
            )
        )
        member = (await self.db.execute(stmt)).scalar_one_or_none()
        if member is None:
            return None

        chapter_roles = sorted(member.chapter_roles, key=lambda r: r.id)
        zone_roles = sorted(member.zone_roles, key=lambda r: r.id)
        return MemberProfile(
            id=member.id,
            user_id=member.user_id,
            member_name=member.member_name,
            chapter_roles=tuple(_chapter_assignments(chapter_roles, with_name=True)),
            zone_roles=tuple(_zone_assignments(zone_roles, with_name=True)),
        )

    async def get_member_id(self, user_id: int) -> Optional[int]:
        stmt = select(Member.id).where(Member.user_id == user_id)
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def get_membership_dates(self, user_id: int) -> Optional[MembershipDates]:
        stmt = select(
            Member.id,
            Member.is_active,
            Member.ho_expiry_date,
            Member.venue_expiry_date,
        ).where(Member.user_id == user_id)
        row = (await self.db.execute(stmt)).one_or_none()
        if row is None:
            return None
        return MembershipDates(
            member_id=row.id,
            is_active=bool(row.is_active),
            ho_expiry_date=row.ho_expiry_date,
            venue_expiry_date=row.venue_expiry_date,
        )

    async def get_zone(self, zone_id: int) -> Optional[ZoneRecord]:
        zone = await self.db.get(Zone, zone_id)
        if zone is None:
            return None
        return ZoneRecord(id=zone.id, name=zone.name)

    async def get_chapter(self, chapter_id: int) -> Optional[ChapterRecord]:
        chapter = await self.db.get(Chapter, chapter_id)
        if chapter is None:
            return None
        return ChapterRecord(id=chapter.id, name=chapter.name, zone_id=chapter.zone_id)

    async def list_chapters_in_zones(self, zone_ids: Collection[int]) -> List[ChapterRecord]:
        if not zone_ids:
            return []
        stmt = select(Chapter).where(Chapter.zone_id.in_(list(zone_ids))).order_by(Chapter.id)
        rows = (await self.db.execute(stmt)).scalars().all()
        return [ChapterRecord(id=c.id, name=c.name, zone_id=c.zone_id) for c in rows]

    async def list_chapter_roles(
        self,
        member_id: int,
        role_types: Optional[Collection[ChapterRoleType]] = None,
    ) -> List[ChapterRoleAssignment]:
        if role_types is not None and not role_types:
            return []
        stmt = select(ChapterRole).where(ChapterRole.member_id == member_id).order_by(ChapterRole.id)
        rows = _chapter_assignments((await self.db.execute(stmt)).scalars().all())
        # filtered after parsing so every stored spelling of a type matches
        if role_types is not None:
            wanted = set(role_types)
            rows = [r for r in rows if r.role_type in wanted]
        return rows

    async def list_zone_roles(
        self,
        member_id: int,
        role_types: Optional[Collection[ZoneRoleType]] = None,
    ) -> List[ZoneRoleAssignment]:
        if role_types is not None and not role_types:
            return []
        stmt = select(ZoneRole).where(ZoneRole.member_id == member_id).order_by(ZoneRole.id)
        rows = _zone_assignments((await self.db.execute(stmt)).scalars().all())
        if role_types is not None:
            wanted = set(role_types)
            rows = [r for r in rows if r.role_type in wanted]
        return rows

    async def list_chapter_officers(self, chapter_id: int) -> List[ChapterRoleAssignment]:
        stmt = (
            select(ChapterRole)
            .where(ChapterRole.chapter_id == chapter_id)
            .options(selectinload(ChapterRole.chapter))
            .order_by(ChapterRole.id)
        )
        rows = (await self.db.execute(stmt)).scalars().all()
        return _chapter_assignments(rows, with_name=True)
