"""Review service.

Coordinates card creation, grading, queue building and review logging
for the rest of the application. Every operation works on one database
session and takes "now" from an injected clock.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from backend.config import settings, utcnow
from backend.models import Child, Flashcard, LearningSession, Review, ReviewLog, Topic
from backend.srs.assessment import Assessment, FlashcardAnswer, assess_flashcard, effective_result
from backend.srs.classifiers import formatted_due_date
from backend.srs.errors import DuplicateReviewError, NotFoundError, PersistenceError
from backend.srs.queue import QueueConfig, ReviewQueue, build_queue, count_due, count_new
from backend.srs.scheduler import CardState, ReviewResult, ReviewStatus, Scheduler
from backend.srs.stats import ReviewStats, compute_stats

logger = logging.getLogger(__name__)


@dataclass
class GradingSummary:
    """What changed when a card was graded."""

    review_id: int
    old_interval: int
    new_interval: int
    old_ease_factor: float
    new_ease_factor: float
    next_due: str  # e.g. "Oct 22, 2026"
    due_date: date
    status: str
    repetitions: int


@dataclass
class FlashcardGrading:
    """A flashcard grading together with the answer check behind it."""

    summary: GradingSummary
    assessment: Assessment
    result: ReviewResult  # what the card was actually graded as


@dataclass
class ReviewSubject:
    """Display fields of whatever a review card points at."""

    topic_title: str | None = None
    flashcard_title: str | None = None  # the flashcard's question
    card_type: str | None = None


def card_state(review: Review) -> CardState:
    return CardState(
        interval_days=review.interval_days,
        ease_factor=review.ease_factor,
        repetitions=review.repetitions,
        status=ReviewStatus(review.status),
        due_date=review.due_date,
        last_reviewed_at=review.last_reviewed_at,
    )


class ReviewService:
    """Spaced-repetition operations for one database session."""

    def __init__(
        self,
        db: AsyncSession,
        scheduler: Scheduler | None = None,
        clock: Callable[[], datetime] = utcnow,
        queue_config: QueueConfig | None = None,
    ) -> None:
        self.db = db
        self.scheduler = scheduler or Scheduler()
        self.clock = clock
        self.queue_config = queue_config or QueueConfig()

    def today(self) -> date:
        return self.clock().date()

    # --- Lookups ---

    async def get_review(self, review_id: int) -> Review:
        # populate_existing so a retried grading starts from the stored row
        review = await self.db.get(Review, review_id, populate_existing=True)
        if review is None:
            raise NotFoundError("Review", review_id)
        return review

    async def _require(self, model: type, ident: int) -> None:
        if await self.db.get(model, ident) is None:
            raise NotFoundError(model.__name__, ident)

    # --- Creation ---

    async def create_from_session(self, session_id: int, child_id: int, topic_id: int) -> Review:
        """Create the topic review for a completed learning session.

        A session has at most one review card; an existing one is returned as is.
        """
        review, _ = await self.get_or_create_session_review(session_id, child_id, topic_id)
        return review

    # A losing concurrent create hits a unique constraint; the second attempt finds the winner.
    @retry(retry=retry_if_exception_type(DuplicateReviewError), stop=stop_after_attempt(2), reraise=True)
    async def get_or_create_session_review(
        self, session_id: int, child_id: int, topic_id: int
    ) -> tuple[Review, bool]:
        """Return the session's review card and whether this call created it."""
        await self._require(LearningSession, session_id)
        await self._require(Child, child_id)
        await self._require(Topic, topic_id)

        existing = await self._find_session_review(session_id)
        if existing is not None:
            return existing, False

        review = self._new_review(child_id=child_id, topic_id=topic_id, session_id=session_id)
        await self._commit_new()
        logger.info("Created topic review %d for session %d (child %d)", review.id, session_id, child_id)
        return review, True

    async def create_from_flashcard(self, flashcard_id: int, child_id: int, topic_id: int) -> Review:
        """Create the review card for a flashcard attached to a child."""
        review, _ = await self.get_or_create_flashcard_review(flashcard_id, child_id, topic_id)
        return review

    async def get_or_create_flashcard_review(
        self, flashcard_id: int, child_id: int, topic_id: int
    ) -> tuple[Review, bool]:
        """Return the child's review card for a flashcard and whether this call created it."""
        pairs = await self._attach(flashcard_id, topic_id, [child_id])
        return pairs[0]

    async def attach_flashcard_to_children(
        self,
        flashcard_id: int,
        topic_id: int,
        child_ids: Iterable[int],
    ) -> list[Review]:
        """Create one review card per child for a flashcard, skipping pairs that exist."""
        pairs = await self._attach(flashcard_id, topic_id, list(child_ids))
        return [review for review, _ in pairs]

    @retry(retry=retry_if_exception_type(DuplicateReviewError), stop=stop_after_attempt(2), reraise=True)
    async def _attach(
        self, flashcard_id: int, topic_id: int, child_ids: list[int]
    ) -> list[tuple[Review, bool]]:
        await self._require(Flashcard, flashcard_id)
        await self._require(Topic, topic_id)

        pairs: list[tuple[Review, bool]] = []
        for child_id in child_ids:
            await self._require(Child, child_id)
            existing = await self._find_flashcard_review(flashcard_id, child_id)
            if existing is not None:
                pairs.append((existing, False))
                continue
            review = self._new_review(child_id=child_id, topic_id=topic_id, flashcard_id=flashcard_id)
            pairs.append((review, True))

        created = sum(1 for _, is_new in pairs if is_new)
        if created:
            await self._commit_new()
        logger.info(
            "Attached flashcard %d: %d new review cards, %d already present",
            flashcard_id,
            created,
            len(pairs) - created,
        )
        return pairs

    async def _find_session_review(self, session_id: int) -> Review | None:
        stmt = select(Review).where(Review.session_id == session_id)
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def _find_flashcard_review(self, flashcard_id: int, child_id: int) -> Review | None:
        stmt = select(Review).where(Review.flashcard_id == flashcard_id, Review.child_id == child_id)
        return (await self.db.execute(stmt)).scalar_one_or_none()

    def _new_review(self, **refs: int) -> Review:
        state = self.scheduler.initial_state(self.today())
        review = Review(
            interval_days=state.interval_days,
            ease_factor=state.ease_factor,
            repetitions=state.repetitions,
            status=state.status.value,
            due_date=state.due_date,
            **refs,
        )
        self.db.add(review)
        return review

    # --- Grading ---

    async def grade(self, review_id: int, result: ReviewResult | str) -> GradingSummary:
        """Grade a card and persist its next state with a single commit.

        Raises:
            InvalidResultError: Unknown result token; nothing is read or written.
            NotFoundError: No card with this id.
            PersistenceError: The write failed or lost a concurrent update.
        """
        result = ReviewResult.parse(result)
        review = await self.get_review(review_id)

        outcome = self.scheduler.review(card_state(review), result, now=self.clock())
        new = outcome.new_state

        review.interval_days = new.interval_days
        review.ease_factor = new.ease_factor
        review.repetitions = new.repetitions
        review.status = new.status.value
        review.due_date = new.due_date
        review.last_reviewed_at = new.last_reviewed_at

        self.db.add(
            ReviewLog(
                review_id=review.id,
                child_id=review.child_id,
                result=result.value,
                interval_before=outcome.old_interval,
                interval_after=new.interval_days,
                ease_before=outcome.old_ease_factor,
                ease_after=new.ease_factor,
                status_after=new.status.value,
                reviewed_at=new.last_reviewed_at,
            )
        )
        await self._commit()

        logger.info(
            "Graded review %d as %s: interval %d -> %d, ease %.2f -> %.2f, %s",
            review_id,
            result.value,
            outcome.old_interval,
            new.interval_days,
            outcome.old_ease_factor,
            new.ease_factor,
            new.status.value,
        )
        return GradingSummary(
            review_id=review_id,
            old_interval=outcome.old_interval,
            new_interval=new.interval_days,
            old_ease_factor=round(outcome.old_ease_factor, 2),
            new_ease_factor=round(new.ease_factor, 2),
            next_due=formatted_due_date(new.due_date),
            due_date=new.due_date,
            status=new.status.value,
            repetitions=new.repetitions,
        )

    @retry(
        retry=retry_if_exception_type(PersistenceError),
        stop=stop_after_attempt(settings.grade_max_attempts),
        wait=wait_exponential(multiplier=0.05, max=1),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def grade_with_retry(self, review_id: int, result: ReviewResult | str) -> GradingSummary:
        """Grade a card, re-reading and retrying it when the write fails."""
        return await self.grade(review_id, result)

    async def grade_flashcard(
        self,
        review_id: int,
        result: ReviewResult | str,
        answer: FlashcardAnswer,
    ) -> FlashcardGrading:
        """Check the child's answer, then grade the flashcard review.

        A wrong answer rated good or easy is graded as again, unless the
        answer carries the child's own verdict.

        Raises:
            InvalidResultError: Unknown result token.
            NotFoundError: No card with this id, or it is a topic review.
            PersistenceError: The write kept failing.
        """
        result = ReviewResult.parse(result)
        review = await self.get_review(review_id)
        if not review.is_flashcard_review:
            raise NotFoundError("Flashcard review", review_id)
        flashcard = await self.db.get(Flashcard, review.flashcard_id)
        if flashcard is None:
            raise NotFoundError("Flashcard", review.flashcard_id)

        assessment = assess_flashcard(flashcard, answer)
        graded_as = effective_result(result, answer, assessment)
        if graded_as is not result:
            logger.info(
                "Review %d: wrong %s answer rated %s, grading as %s",
                review_id,
                flashcard.card_type,
                result.value,
                graded_as.value,
            )

        summary = await self.grade_with_retry(review_id, graded_as)
        return FlashcardGrading(summary=summary, assessment=assessment, result=graded_as)

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.warning("Review write failed, rolled back: %s", exc)
            raise PersistenceError(str(exc)) from exc

    async def _commit_new(self) -> None:
        """Commit newly created cards; a unique-constraint clash becomes DuplicateReviewError."""
        try:
            await self._commit()
        except PersistenceError as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise DuplicateReviewError(str(exc)) from exc.__cause__
            raise

    # --- Display ---

    async def load_subjects(self, reviews: Sequence[Review]) -> dict[int, ReviewSubject]:
        """Topic titles, flashcard questions and card types for a batch of cards, by review id."""
        topic_ids = {r.topic_id for r in reviews}
        flashcard_ids = {r.flashcard_id for r in reviews if r.flashcard_id is not None}

        topics: dict[int, Topic] = {}
        if topic_ids:
            rows = await self.db.execute(select(Topic).where(Topic.id.in_(topic_ids)))
            topics = {t.id: t for t in rows.scalars()}
        flashcards: dict[int, Flashcard] = {}
        if flashcard_ids:
            rows = await self.db.execute(select(Flashcard).where(Flashcard.id.in_(flashcard_ids)))
            flashcards = {f.id: f for f in rows.scalars()}

        subjects = {}
        for review in reviews:
            topic = topics.get(review.topic_id)
            subject = ReviewSubject(topic_title=topic.title if topic else None)
            flashcard = flashcards.get(review.flashcard_id) if review.flashcard_id else None
            if flashcard is not None:
                subject.flashcard_title = flashcard.question
                subject.card_type = flashcard.card_type
            subjects[review.id] = subject
        return subjects

    # --- Queue and counts ---

    async def build_review_queue(self, child_id: int) -> ReviewQueue:
        await self._require(Child, child_id)
        return await build_queue(self.db, child_id, self.queue_config, today=self.today())

    async def get_queue(self, child_id: int) -> list[Review]:
        """Return today's interleaved review queue for a child."""
        queue = await self.build_review_queue(child_id)
        return queue.interleaved()

    async def get_due_count(self, child_id: int) -> int:
        await self._require(Child, child_id)
        return await count_due(self.db, child_id, today=self.today())

    async def get_new_count(self, child_id: int) -> int:
        await self._require(Child, child_id)
        return await count_new(self.db, child_id)

    async def get_stats(self, child_id: int) -> ReviewStats:
        await self._require(Child, child_id)
        return await compute_stats(self.db, child_id, now=self.clock())
