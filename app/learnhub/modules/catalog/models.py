from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.learnhub.models import Base


LEVELS = ("Beginner", "Intermediate", "Advanced")


class CatalogEntityMixin:
    """
    Columns shared by every enrollable catalog collection.

    `slug` is unique per table and forms part of public URLs (`/{kind}/{slug}`),
    so its format must stay stable once rows exist.
    """

    KIND: ClassVar[str]

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # Required
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    image: Mapped[str] = mapped_column(String(1024), nullable=False)
    duration: Mapped[str] = mapped_column(String(128), nullable=False)
    level: Mapped[str] = mapped_column(String(32), nullable=False, default="Beginner")
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # Ordered lists, stored as JSON
    skills: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    perks: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    syllabus: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    students: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Derived
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    href: Mapped[str] = mapped_column(String(512), nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    def to_dict(self) -> dict[str, Any]:
        """Public JSON shape (keys match what the admin forms post)."""
        return {
            "id": str(self.id),
            "name": self.name,
            "img": self.image,
            "duration": self.duration,
            "level": self.level,
            "desc": self.description,
            "skills": list(self.skills or []),
            "perks": list(self.perks or []),
            "syllabus": list(self.syllabus or []),
            "rating": self.rating,
            "students": self.students,
            "slug": self.slug,
            "href": self.href,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


class SkillPath(CatalogEntityMixin, Base):
    __tablename__ = "skill_paths"
    KIND = "skillpath"


class Hackathon(CatalogEntityMixin, Base):
    __tablename__ = "hackathons"
    KIND = "hackathon"


# kind (URL type segment) -> model
CATALOG_MODELS: dict[str, type[CatalogEntityMixin]] = {
    SkillPath.KIND: SkillPath,
    Hackathon.KIND: Hackathon,
}

# collection path segment used by the HTTP routes -> kind
COLLECTION_KINDS = {
    "skillpaths": SkillPath.KIND,
    "hackathons": Hackathon.KIND,
}
