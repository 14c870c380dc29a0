"""Review card model: SM-2 scheduling state for one child and one subject."""

from datetime import date, datetime, timedelta

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.config import utcnow
from backend.models.base import Base, TimestampMixin


def _tomorrow() -> date:
    return utcnow().date() + timedelta(days=1)


class Review(Base, TimestampMixin):
    """A review card for either a flashcard or a completed learning session.

    Exactly one of ``flashcard_id`` / ``session_id`` is set. The scheduling
    fields are only written by the grading algorithm in ``backend.srs``.
    """

    __tablename__ = "reviews"
    __table_args__ = (
        CheckConstraint(
            "(flashcard_id IS NULL) <> (session_id IS NULL)",
            name="ck_reviews_single_subject",
        ),
        UniqueConstraint("session_id", name="uq_reviews_session"),
        UniqueConstraint("flashcard_id", "child_id", name="uq_reviews_flashcard_child"),
        Index("ix_reviews_child_due", "child_id", "due_date"),
        Index("ix_reviews_child_status", "child_id", "status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    flashcard_id: Mapped[int | None] = mapped_column(ForeignKey("flashcards.id"), nullable=True)
    session_id: Mapped[int | None] = mapped_column(
        ForeignKey("learning_sessions.id"), nullable=True
    )
    child_id: Mapped[int] = mapped_column(ForeignKey("children.id"), nullable=False)
    topic_id: Mapped[int] = mapped_column(ForeignKey("topics.id"), nullable=False)
    interval_days: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    ease_factor: Mapped[float] = mapped_column(Float, nullable=False, default=2.5)
    repetitions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="new"
    )  # new, learning, reviewing, mastered
    due_date: Mapped[date] = mapped_column(Date, nullable=False, default=_tomorrow)
    last_reviewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    child: Mapped["Child"] = relationship(back_populates="reviews")  # type: ignore[name-defined] # noqa: F821
    topic: Mapped["Topic"] = relationship(back_populates="reviews")  # type: ignore[name-defined] # noqa: F821
    review_logs: Mapped[list["ReviewLog"]] = relationship(back_populates="review")  # type: ignore[name-defined] # noqa: F821

    # Concurrent gradings of the same card fail with StaleDataError instead of interleaving.
    __mapper_args__ = {"version_id_col": version}

    @property
    def is_flashcard_review(self) -> bool:
        return self.flashcard_id is not None

    @property
    def is_topic_review(self) -> bool:
        return self.session_id is not None
