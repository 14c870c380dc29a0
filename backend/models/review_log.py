from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.config import utcnow
from backend.models.base import Base


class ReviewLog(Base):
    __tablename__ = "review_logs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    review_id: Mapped[int] = mapped_column(ForeignKey("reviews.id"), nullable=False)
    child_id: Mapped[int] = mapped_column(ForeignKey("children.id"), nullable=False)
    result: Mapped[str] = mapped_column(String(10), nullable=False)  # again, hard, good, easy
    interval_before: Mapped[int] = mapped_column(Integer, nullable=False)
    interval_after: Mapped[int] = mapped_column(Integer, nullable=False)
    ease_before: Mapped[float] = mapped_column(Float, nullable=False)
    ease_after: Mapped[float] = mapped_column(Float, nullable=False)
    status_after: Mapped[str] = mapped_column(String(20), nullable=False)
    reviewed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    review: Mapped["Review"] = relationship(back_populates="review_logs")  # type: ignore[name-defined] # noqa: F821
    child: Mapped["Child"] = relationship(back_populates="review_logs")  # type: ignore[name-defined] # noqa: F821
