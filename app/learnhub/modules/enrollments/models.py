from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from app.learnhub.models import Base


class Enrollment(Base):
    """
    One row per checkout submission. Always written as `pending`; the payment
    confirmation flow owns later status transitions.
    """

    __tablename__ = "enrollments"
    __table_args__ = (
        Index("idx_enrollments_email", "user_email"),
        Index("idx_enrollments_course", "course_type", "course_slug"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    user_email: Mapped[str] = mapped_column(String(320), nullable=False)
    course_type: Mapped[str] = mapped_column(String(32), nullable=False)  # skillpath, careerpath, course, hackathon
    course_slug: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")  # payment flow sets later states

    # Client-supplied; not checked against a catalog price.
    amount: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "userEmail": self.user_email,
            "courseType": self.course_type,
            "courseSlug": self.course_slug,
            "status": self.status,
            "amount": self.amount,
            "currency": self.currency,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
