# backend/chapter_access/models/chapter.py
from typing import Optional

from sqlalchemy import String, Boolean, Integer, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from chapter_access.db.base import Base


class Chapter(Base):
    __tablename__ = "chapters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    zone_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("zones.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    zone: Mapped[Optional["Zone"]] = relationship(back_populates="chapters")  # noqa: F821
