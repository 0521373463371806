# Import models here so Base.metadata sees every table.
from chapter_access.models.user import User  # noqa: F401

# Geography: zones contain chapters
from chapter_access.models.zone import Zone  # noqa: F401
from chapter_access.models.chapter import Chapter  # noqa: F401

# Membership + role assignments
from chapter_access.models.member import Member  # noqa: F401
from chapter_access.models.role_assignment import ChapterRole, ZoneRole  # noqa: F401
