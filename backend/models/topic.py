"""Curriculum rows that review cards point at.

Subjects, units and lesson content live elsewhere; only the identity and
display fields the review engine reads are mapped here.
"""

from sqlalchemy import JSON, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.models.base import Base, TimestampMixin


class Topic(Base, TimestampMixin):
    __tablename__ = "topics"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)

    reviews: Mapped[list["Review"]] = relationship(back_populates="topic")  # type: ignore[name-defined] # noqa: F821


class LearningSession(Base, TimestampMixin):
    """A planned or completed lesson for one child on one topic."""

    __tablename__ = "learning_sessions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    child_id: Mapped[int] = mapped_column(ForeignKey("children.id"), nullable=False)
    topic_id: Mapped[int] = mapped_column(ForeignKey("topics.id"), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="planned"
    )  # planned, scheduled, done


class Flashcard(Base, TimestampMixin):
    __tablename__ = "flashcards"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    topic_id: Mapped[int] = mapped_column(ForeignKey("topics.id"), nullable=False)
    card_type: Mapped[str] = mapped_column(
        String(30), nullable=False, default="basic"
    )  # basic, multiple_choice, true_false, cloze, typed_answer, image_occlusion
    question: Mapped[str] = mapped_column(Text, nullable=False)
    answer: Mapped[str] = mapped_column(Text, nullable=False)
    choices: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    correct_choices: Mapped[list[int] | None] = mapped_column(JSON, nullable=True)  # indexes into choices
    cloze_answers: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)  # one per blank, in order
