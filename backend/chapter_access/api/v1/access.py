# chapter_access/api/v1/access.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from chapter_access.api.deps.auth import get_current_principal
from chapter_access.api.deps.guards import (
    require_any_chapter_role,
    require_chapter_access,
    require_chapter_role,
    require_dashboard_access,
    require_zone_access,
)
from chapter_access.api.deps.roles import (
    get_access_repository,
    get_active_principal,
    get_inferred_access,
    get_role_inference_engine,
    get_role_info,
)
from chapter_access.core.access import Principal, RoleInfo
from chapter_access.core.roles import RoleCategory
from chapter_access.crud.access import SqlAlchemyAccessRepository
from chapter_access.schemas.access import (
    AccessibleChaptersOut,
    ChapterOfficerOut,
    ChapterOut,
    DashboardScopeOut,
    MeAccessOut,
    MembershipStatusOut,
    RoleInfoOut,
    ZoneChaptersOut,
)
from chapter_access.services.role_inference import InferredAccess, RoleInferenceEngine

router = APIRouter(prefix="/access", tags=["access"])


@router.get("/me", response_model=MeAccessOut)
async def my_access(
    principal: Principal = Depends(get_current_principal),
    access: InferredAccess = Depends(get_inferred_access),
) -> MeAccessOut:
    """
    Current principal, inferred role and access scope. `membership` is the
    expiry status checked during inference (null for admins).
    """
    membership = None
    if access.expiry is not None:
        membership = MembershipStatusOut.from_expiry(access.expiry.active, access.expiry.expiry_info)

    return MeAccessOut(
        id=principal.id,
        email=principal.email,
        roles=list(principal.roles),
        role_info=RoleInfoOut.from_role_info(access.role_info),
        membership=membership,
    )


@router.get("/me/accessible-chapters", response_model=List[AccessibleChaptersOut])
async def my_accessible_chapters(
    principal: Principal = Depends(get_active_principal),
    engine: RoleInferenceEngine = Depends(get_role_inference_engine),
) -> List[AccessibleChaptersOut]:
    """
    Chapter ids grouped by role category (OB / RD / DC).
    """
    breakdown = (await engine.accessible_chapters(principal.id)).unwrap()
    return [AccessibleChaptersOut(role=c.value, chapters=sorted(breakdown.get(c, ()))) for c in RoleCategory]


@router.get(
    "/me/office-bearer-chapters",
    response_model=AccessibleChaptersOut,
    dependencies=[Depends(require_any_chapter_role("OB"))],
)
async def my_office_bearer_chapters(
    principal: Principal = Depends(get_active_principal),
    engine: RoleInferenceEngine = Depends(get_role_inference_engine),
) -> AccessibleChaptersOut:
    """
    Chapters where the caller is an office bearer. Admins pass the guard and
    get whatever office-bearer chapters their own member profile holds.
    """
    breakdown = (await engine.accessible_chapters(principal.id)).unwrap()
    return AccessibleChaptersOut(
        role=RoleCategory.OB.value,
        chapters=sorted(breakdown.get(RoleCategory.OB, ())),
    )


@router.get(
    "/chapters/{chapterId}",
    response_model=ChapterOut,
    dependencies=[Depends(require_chapter_access())],
)
async def get_chapter(
    chapterId: int,  # noqa: N803
    repo: SqlAlchemyAccessRepository = Depends(get_access_repository),
) -> ChapterOut:
    chapter = await repo.get_chapter(chapterId)
    if chapter is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chapter not found")
    return ChapterOut.from_record(chapter)


@router.get(
    "/zones/{zoneId}/chapters",
    response_model=ZoneChaptersOut,
    dependencies=[Depends(require_zone_access())],
)
async def get_chapters_in_zone(
    zoneId: int,  # noqa: N803
    repo: SqlAlchemyAccessRepository = Depends(get_access_repository),
) -> ZoneChaptersOut:
    zone = await repo.get_zone(zoneId)
    if zone is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Zone not found")

    chapters = await repo.list_chapters_in_zones([zone.id])
    return ZoneChaptersOut(
        zone_id=zone.id,
        zone_name=zone.name,
        chapters=[ChapterOut.from_record(c) for c in chapters],
    )


@router.get(
    "/chapters/{chapterId}/roles",
    response_model=List[ChapterOfficerOut],
    dependencies=[Depends(require_chapter_role("OB", "DC"))],
)
async def get_chapter_roles(
    chapterId: int,  # noqa: N803
    repo: SqlAlchemyAccessRepository = Depends(get_access_repository),
) -> List[ChapterOfficerOut]:
    """
    Officer assignments of a chapter. Office bearers and development
    coordinators of that chapter only.
    """
    officers = await repo.list_chapter_officers(chapterId)
    return [ChapterOfficerOut.from_assignment(a) for a in officers]


@router.get(
    "/dashboard/scope",
    response_model=DashboardScopeOut,
    dependencies=[Depends(require_dashboard_access), Depends(require_chapter_access(optional=True))],
)
async def get_dashboard_scope(
    chapter_id: Optional[int] = Query(default=None, alias="chapterId"),
    role_info: RoleInfo = Depends(get_role_info),
) -> DashboardScopeOut:
    """
    Chapters the performance dashboard may query for this caller. A
    `chapterId` narrows the scope to that chapter (already authorized above).
    """
    if chapter_id is not None:
        chapter_ids = [chapter_id]
    else:
        chapter_ids = sorted(role_info.authorized_chapters)

    return DashboardScopeOut(
        access_level=role_info.access_level.value,
        context_label=role_info.context_label,
        unrestricted=role_info.is_unrestricted,
        chapter_ids=chapter_ids,
    )
