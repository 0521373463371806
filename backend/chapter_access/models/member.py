# backend/chapter_access/models/member.py
from datetime import datetime
from typing import List, Optional

from sqlalchemy import String, Boolean, DateTime, Integer, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from chapter_access.db.base import Base


class Member(Base):
    __tablename__ = "members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # one-to-one (optional) with users
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    member_name: Mapped[str] = mapped_column(String(200), nullable=False)

    # home chapter; role assignments may point elsewhere
    chapter_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("chapters.id", ondelete="SET NULL"),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Membership package end dates (head-office fee / venue fee)
    ho_expiry_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    venue_expiry_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Member owns its assignments; deleting the member removes them.
    chapter_roles: Mapped[List["ChapterRole"]] = relationship(  # noqa: F821
        back_populates="member",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    zone_roles: Mapped[List["ZoneRole"]] = relationship(  # noqa: F821
        back_populates="member",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
