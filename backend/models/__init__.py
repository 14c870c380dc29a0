"""SQLAlchemy ORM models for the homeschool SRS database."""

from backend.models.base import Base
from backend.models.child import Child
from backend.models.review import Review
from backend.models.review_log import ReviewLog
from backend.models.topic import Flashcard, LearningSession, Topic

__all__ = ["Base", "Child", "Flashcard", "LearningSession", "Review", "ReviewLog", "Topic"]
