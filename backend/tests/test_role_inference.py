# tests/test_role_inference.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from chapter_access.core.access import Principal
from chapter_access.core.errors import AccessErrorKind
from chapter_access.core.roles import AccessLevel, ChapterRoleType, RoleCategory, ZoneRoleType
from chapter_access.services.identity import IdentityResolver
from chapter_access.services.membership_expiry import MembershipExpiryChecker
from chapter_access.services.role_inference import RoleInferenceEngine

from factories import InMemoryAccessRepository


def make_engine(repo, *, expiry: bool = True, zone_includes_chapters: bool = False) -> RoleInferenceEngine:
    checker = MembershipExpiryChecker(repo) if expiry else None
    return RoleInferenceEngine(
        repo,
        IdentityResolver(repo, checker),
        zone_includes_chapters=zone_includes_chapters,
    )


@pytest.fixture()
def repo() -> InMemoryAccessRepository:
    r = InMemoryAccessRepository()
    r.add_zone(12, "North Zone")
    r.add_zone(13, "South Zone")
    r.add_chapter(1, "Alpha", zone_id=12)
    r.add_chapter(2, "Bravo", zone_id=12)
    r.add_chapter(3, "Charlie", zone_id=13)
    r.add_chapter(7, "Golf", zone_id=13)
    r.add_chapter(9, "India", zone_id=13)
    return r


@pytest.mark.asyncio
@pytest.mark.parametrize("roles", ["admin", "super_admin", "ADMIN", ["member", "Super_Admin"]])
async def test_admin_short_circuits_without_queries(repo, roles):
    engine = make_engine(repo)
    result = await engine.infer(Principal(id=1, roles=roles))

    assert result.ok
    info = result.value
    assert info.access_level is AccessLevel.ADMIN
    assert info.authorized_chapters == frozenset()
    assert info.authorized_zones == frozenset()
    assert info.permissions == frozenset({"*"})
    assert info.is_unrestricted
    assert repo.calls == []


@pytest.mark.asyncio
async def test_missing_profile_is_member_not_found(repo):
    result = await make_engine(repo).infer(Principal(id=50, roles="member"))
    assert result.error.kind is AccessErrorKind.MEMBER_NOT_FOUND
    assert result.error.status_code == 403


@pytest.mark.asyncio
async def test_profile_without_assignments_is_no_role_assignments(repo):
    repo.add_profile(51)
    result = await make_engine(repo).infer(Principal(id=51, roles="member"))
    assert result.error.kind is AccessErrorKind.NO_ROLE_ASSIGNMENTS
    assert result.error.message == "Access denied: No role assignments found"


@pytest.mark.asyncio
async def test_chapter_officer(repo):
    repo.add_profile(60, chapter_roles=[(1, ChapterRoleType.SECRETARY)])
    info = (await make_engine(repo).infer(Principal(id=60, roles="member"))).unwrap()

    assert info.access_level is AccessLevel.CHAPTER
    assert info.authorized_chapters == frozenset({1})
    assert info.authorized_zones == frozenset()
    assert info.role == "Secretary"
    assert info.context_label == "Secretary - Alpha"
    assert "dashboard.read" in info.permissions
    assert "zone.read" not in info.permissions


@pytest.mark.asyncio
async def test_zone_officer_example(repo):
    repo.add_profile(61, zone_roles=[(12, ZoneRoleType.REGIONAL_DIRECTOR)])
    info = (await make_engine(repo).infer(Principal(id=61, roles="member"))).unwrap()

    assert info.access_level is AccessLevel.ZONE
    assert info.authorized_zones == frozenset({12})
    # no containment: zone 12's chapters are not granted implicitly
    assert info.authorized_chapters == frozenset()
    assert info.role == "Regional Director"
    assert info.context_label == "Regional Director - North Zone"
    assert "zone.read" in info.permissions


@pytest.mark.asyncio
async def test_zone_assignment_outranks_chapter_assignments(repo):
    repo.add_profile(
        62,
        chapter_roles=[(3, ChapterRoleType.CHAPTER_HEAD)],
        zone_roles=[(13, ZoneRoleType.JOINT_SECRETARY)],
    )
    info = (await make_engine(repo).infer(Principal(id=62, roles="member"))).unwrap()

    assert info.access_level is AccessLevel.ZONE
    assert info.authorized_zones == frozenset({13})
    assert info.authorized_chapters == frozenset({3})
    assert info.role == "Joint Secretary"


@pytest.mark.asyncio
async def test_primary_assignment_uses_precedence_then_lowest_id(repo):
    repo.add_profile(
        63,
        chapter_roles=[
            (1, ChapterRoleType.TREASURER),
            (9, ChapterRoleType.CHAPTER_HEAD),
            (7, ChapterRoleType.CHAPTER_HEAD),
            (7, ChapterRoleType.GUARDIAN),
        ],
    )
    info = (await make_engine(repo).infer(Principal(id=63, roles="member"))).unwrap()

    assert info.authorized_chapters == frozenset({1, 7, 9})
    assert info.role == "Chapter Head"
    assert info.context_label == "Chapter Head - Golf (+2 more)"


@pytest.mark.asyncio
async def test_zone_tie_break_prefers_regional_director(repo):
    repo.add_profile(
        64,
        zone_roles=[(12, ZoneRoleType.JOINT_SECRETARY), (13, ZoneRoleType.REGIONAL_DIRECTOR)],
    )
    info = (await make_engine(repo).infer(Principal(id=64, roles="member"))).unwrap()

    assert info.role == "Regional Director"
    assert info.context_label == "Regional Director - South Zone (+1 more)"


@pytest.mark.asyncio
async def test_inference_is_idempotent(repo):
    repo.add_profile(
        65,
        chapter_roles=[(2, ChapterRoleType.DISTRICT_COORDINATOR), (1, ChapterRoleType.GUARDIAN)],
    )
    engine = make_engine(repo)
    principal = Principal(id=65, roles="member")

    first = (await engine.infer(principal)).unwrap()
    second = (await engine.infer(principal)).unwrap()
    assert first == second


@pytest.mark.asyncio
async def test_inference_reads_current_assignments_every_call(repo):
    engine = make_engine(repo)
    principal = Principal(id=66, roles="member")

    repo.add_profile(66, chapter_roles=[(1, ChapterRoleType.SECRETARY)])
    assert (await engine.infer(principal)).unwrap().authorized_chapters == frozenset({1})

    repo.add_profile(66, chapter_roles=[])
    assert (await engine.infer(principal)).error.kind is AccessErrorKind.NO_ROLE_ASSIGNMENTS


@pytest.mark.asyncio
async def test_zone_containment_toggle(repo):
    repo.add_profile(
        67,
        chapter_roles=[(1, ChapterRoleType.SECRETARY)],
        zone_roles=[(13, ZoneRoleType.REGIONAL_DIRECTOR)],
    )
    principal = Principal(id=67, roles="member")

    off = (await make_engine(repo).infer(principal)).unwrap()
    assert off.authorized_chapters == frozenset({1})

    on = (await make_engine(repo, zone_includes_chapters=True).infer(principal)).unwrap()
    assert on.authorized_chapters == frozenset({1, 3, 7, 9})
    assert on.authorized_zones == frozenset({13})


@pytest.mark.asyncio
async def test_expired_member_is_rejected_before_inference(repo):
    past = datetime.now(timezone.utc) - timedelta(days=3)
    repo.add_profile(
        68,
        zone_roles=[(12, ZoneRoleType.REGIONAL_DIRECTOR)],
        ho_expiry_date=past,
        venue_expiry_date=past - timedelta(days=30),
    )
    result = await make_engine(repo).infer(Principal(id=68, roles="member"))
    assert result.error.kind is AccessErrorKind.MEMBERSHIP_EXPIRED
    assert result.error.message == "Your membership has expired. Please contact your administrator."

    # with enforcement off the same member infers normally
    assert (await make_engine(repo, expiry=False).infer(Principal(id=68, roles="member"))).ok


@pytest.mark.asyncio
async def test_expired_member_without_roles_still_reports_expiry(repo):
    repo.add_profile(69, is_active=False)
    result = await make_engine(repo).infer(Principal(id=69, roles="member"))
    assert result.error.kind is AccessErrorKind.MEMBERSHIP_EXPIRED


@pytest.mark.asyncio
async def test_storage_failure_becomes_internal_error(repo):
    async def _boom(user_id):
        raise OperationalError("SELECT 1", {}, Exception("connection reset"))

    repo.get_member_profile = _boom
    result = await make_engine(repo).infer(Principal(id=70, roles="member"))
    assert result.error.kind is AccessErrorKind.INTERNAL_ERROR
    assert result.error.status_code == 500
    assert result.error.context["principal_id"] == 70


# ---------------------------------------------------------
# Accessible chapters by role category
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_accessible_chapters_breakdown(repo):
    repo.add_profile(
        80,
        chapter_roles=[
            (1, ChapterRoleType.CHAPTER_HEAD),
            (2, ChapterRoleType.TREASURER),
            (3, ChapterRoleType.GUARDIAN),
        ],
        zone_roles=[(13, ZoneRoleType.REGIONAL_DIRECTOR), (12, ZoneRoleType.JOINT_SECRETARY)],
    )
    breakdown = (await make_engine(repo).accessible_chapters(80)).unwrap()

    assert breakdown[RoleCategory.OB] == frozenset({1, 2})
    assert breakdown[RoleCategory.DC] == frozenset({3})
    # only regional directors resolve through their zone's chapters
    assert breakdown[RoleCategory.RD] == frozenset({3, 7, 9})


@pytest.mark.asyncio
async def test_accessible_chapters_without_profile_is_empty(repo):
    breakdown = (await make_engine(repo).accessible_chapters(404)).unwrap()
    assert breakdown == {c: frozenset() for c in RoleCategory}


@pytest.mark.asyncio
@pytest.mark.parametrize("exc", [LookupError("bad role_type"), ValueError("bad row"), RuntimeError("driver")])
async def test_any_lookup_failure_becomes_internal_error(repo, caplog, exc):
    async def _raise(user_id):
        raise exc

    repo.get_member_profile = _raise
    with caplog.at_level(logging.ERROR, logger="chapter_access"):
        result = await make_engine(repo).infer(Principal(id=71, roles="member"))

    assert result.error.kind is AccessErrorKind.INTERNAL_ERROR
    assert result.error.message == "Server error during role inference"
    assert result.error.context["principal_id"] == 71
    assert "Member lookup failed for principal 71" in caplog.text


@pytest.mark.asyncio
async def test_zone_containment_failure_becomes_internal_error(repo):
    repo.add_profile(72, zone_roles=[(12, ZoneRoleType.REGIONAL_DIRECTOR)])

    async def _raise(zone_ids):
        raise KeyError("zone")

    repo.list_chapters_in_zones = _raise
    result = await make_engine(repo, zone_includes_chapters=True).infer(Principal(id=72, roles="member"))
    assert result.error.kind is AccessErrorKind.INTERNAL_ERROR
    assert result.error.context["step"] == "zone_containment"


@pytest.mark.asyncio
async def test_accessible_chapters_failure_becomes_internal_error(repo):
    repo.add_profile(73, chapter_roles=[(1, ChapterRoleType.SECRETARY)])

    async def _raise(member_id, role_types=None):
        raise ValueError("unexpected")

    repo.list_chapter_roles = _raise
    result = await make_engine(repo).accessible_chapters(73)
    assert result.error.kind is AccessErrorKind.INTERNAL_ERROR
    assert result.error.context["principal_id"] == 73


@pytest.mark.asyncio
async def test_infer_access_carries_the_expiry_already_checked(repo):
    ends = datetime.now(timezone.utc) + timedelta(days=30)
    repo.add_profile(74, chapter_roles=[(1, ChapterRoleType.TREASURER)], ho_expiry_date=ends)

    access = (await make_engine(repo).infer_access(Principal(id=74, roles="member"))).unwrap()

    assert access.role_info.access_level is AccessLevel.CHAPTER
    assert access.expiry.active
    assert access.expiry.expiry_info.expires_at == ends
    assert repo.calls.count("get_membership_dates") == 1


@pytest.mark.asyncio
async def test_infer_access_for_admin_has_no_expiry(repo):
    access = (await make_engine(repo).infer_access(Principal(id=75, roles="admin"))).unwrap()
    assert access.expiry is None
    assert repo.calls == []
