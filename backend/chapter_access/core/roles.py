# chapter_access/core/roles.py

import enum


class AccessLevel(str, enum.Enum):
    ADMIN = "admin"
    ZONE = "zone"
    CHAPTER = "chapter"
    MEMBER = "member"


class RoleCategory(str, enum.Enum):
    OB = "OB"  # office bearer
    RD = "RD"  # regional director
    DC = "DC"  # development coordinator


class ChapterRoleType(str, enum.Enum):
    CHAPTER_HEAD = "chapterHead"
    SECRETARY = "secretary"
    TREASURER = "treasurer"
    GUARDIAN = "guardian"
    DISTRICT_COORDINATOR = "districtCoordinator"
    DEVELOPMENT_COORDINATOR = "developmentCoordinator"


class ZoneRoleType(str, enum.Enum):
    REGIONAL_DIRECTOR = "regionalDirector"
    JOINT_SECRETARY = "jointSecretary"


# Declaration order is precedence order.
CHAPTER_ROLE_LABELS = {
    ChapterRoleType.CHAPTER_HEAD: "Chapter Head",
    ChapterRoleType.SECRETARY: "Secretary",
    ChapterRoleType.TREASURER: "Treasurer",
    ChapterRoleType.GUARDIAN: "Guardian",
    ChapterRoleType.DISTRICT_COORDINATOR: "District Coordinator",
    ChapterRoleType.DEVELOPMENT_COORDINATOR: "Development Coordinator",
}

ZONE_ROLE_LABELS = {
    ZoneRoleType.REGIONAL_DIRECTOR: "Regional Director",
    ZoneRoleType.JOINT_SECRETARY: "Joint Secretary",
}

CHAPTER_ROLE_CATEGORIES = {
    RoleCategory.OB: frozenset(
        {ChapterRoleType.CHAPTER_HEAD, ChapterRoleType.SECRETARY, ChapterRoleType.TREASURER}
    ),
    RoleCategory.DC: frozenset(
        {
            ChapterRoleType.GUARDIAN,
            ChapterRoleType.DISTRICT_COORDINATOR,
            ChapterRoleType.DEVELOPMENT_COORDINATOR,
        }
    ),
}

ZONE_ROLE_CATEGORIES = {
    RoleCategory.RD: frozenset({ZoneRoleType.REGIONAL_DIRECTOR}),
}

# zone_roles rows also carry the display spelling
ZONE_ROLE_ALIASES = {
    "regional director": ZoneRoleType.REGIONAL_DIRECTOR,
    "joint secretary": ZoneRoleType.JOINT_SECRETARY,
}

ADMIN_LABEL = "Administrator"
ADMIN_CONTEXT_LABEL = "All System Data"

_CHAPTER_RANK = {t: i for i, t in enumerate(CHAPTER_ROLE_LABELS)}
_ZONE_RANK = {t: i for i, t in enumerate(ZONE_ROLE_LABELS)}


def chapter_role_rank(role_type: ChapterRoleType) -> int:
    return _CHAPTER_RANK.get(role_type, len(_CHAPTER_RANK))


def zone_role_rank(role_type: ZoneRoleType) -> int:
    return _ZONE_RANK.get(role_type, len(_ZONE_RANK))


def normalize_role_tags(raw) -> tuple[str, ...]:
    """
    Principal roles arrive as one tag or many ("admin", ["member", "Admin"]).
    Returns lowercased, de-duplicated tags in first-seen order.
    """
    if raw is None:
        return ()
    items = [raw] if isinstance(raw, str) else list(raw)
    seen: dict[str, None] = {}
    for item in items:
        tag = str(item or "").strip().lower()
        if tag:
            seen.setdefault(tag, None)
    return tuple(seen)


def parse_role_categories(*categories: str) -> tuple[RoleCategory, ...]:
    """
    Validate route-declared role categories (OB/RD/DC).
    Unknown tags are a programming error and raise at route-definition time.
    """
    allowed = {c.value for c in RoleCategory}
    normalized = [(c or "").strip().upper() for c in categories]
    unknown = sorted({c for c in normalized if c not in allowed})
    if unknown:
        raise ValueError(f"Unknown role category(s): {unknown}. Allowed: {sorted(allowed)}")
    return tuple(dict.fromkeys(RoleCategory(c) for c in normalized))


def parse_chapter_role_type(value: str | None) -> ChapterRoleType | None:
    """Stored chapter role string -> ChapterRoleType, None if unrecognized."""
    try:
        return ChapterRoleType((value or "").strip())
    except ValueError:
        return None


def parse_zone_role_type(value: str | None) -> ZoneRoleType | None:
    """
    Stored zone role string -> ZoneRoleType.

    Accepts the canonical tag ("regionalDirector") and the display spelling
    ("Regional Director"). Returns None if unrecognized.
    """
    raw = (value or "").strip()
    try:
        return ZoneRoleType(raw)
    except ValueError:
        return ZONE_ROLE_ALIASES.get(raw.lower())
