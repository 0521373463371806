# backend/chapter_access/models/role_assignment.py
from sqlalchemy import Integer, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from chapter_access.db.base import Base


class ChapterRole(Base):
    __tablename__ = "chapter_roles"
    __table_args__ = (
        UniqueConstraint("member_id", "chapter_id", "role_type", name="uq_chapter_roles_member_chapter_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    member_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    chapter_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("chapters.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # ChapterRoleType value; read back through parse_chapter_role_type
    role_type: Mapped[str] = mapped_column(String(50), nullable=False)

    member: Mapped["Member"] = relationship(back_populates="chapter_roles")  # noqa: F821
    chapter: Mapped["Chapter"] = relationship()  # noqa: F821


class ZoneRole(Base):
    __tablename__ = "zone_roles"
    __table_args__ = (
        UniqueConstraint("member_id", "zone_id", "role_type", name="uq_zone_roles_member_zone_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    member_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    zone_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("zones.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # ZoneRoleType value or its display spelling ("Regional Director")
    role_type: Mapped[str] = mapped_column(String(50), nullable=False)

    member: Mapped["Member"] = relationship(back_populates="zone_roles")  # noqa: F821
    zone: Mapped["Zone"] = relationship()  # noqa: F821
