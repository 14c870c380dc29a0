"""SM-2 style scheduler for homeschool review cards.

A review card moves through four statuses: new -> learning -> reviewing ->
mastered, falling back to learning whenever the child answers "again".

Key concepts:
- Interval: days until the card is due again, clamped to [1, 240].
- Ease factor: multiplier for interval growth, clamped to [1.3, 2.5].
- Repetitions: successful gradings since the last "again".
- Result: again, hard, good or easy, as chosen after each review.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum

from backend.config import utcnow
from backend.srs.errors import InvalidResultError

MIN_INTERVAL_DAYS = 1
MAX_INTERVAL_DAYS = 240  # ~8 months
MIN_EASE_FACTOR = 1.3
MAX_EASE_FACTOR = 2.5
DEFAULT_EASE_FACTOR = 2.5

AGAIN_EASE_PENALTY = 0.2
HARD_EASE_PENALTY = 0.15
EASY_EASE_BONUS = 0.15
HARD_INTERVAL_FACTOR = 1.2
EASY_INTERVAL_FACTOR = 1.3
FIRST_GOOD_INTERVAL = 3  # days after the first "good"
SECOND_GOOD_INTERVAL = 7  # days after the second "good"

# Repetition gates. The same counter also counts gradings since the last lapse.
REVIEWING_MIN_REPETITIONS = 2
MASTERED_MIN_REPETITIONS = 4
MASTERED_MIN_INTERVAL = 120


class ReviewResult(Enum):
    """How well the child recalled the card."""

    AGAIN = "again"  # Forgot, start over
    HARD = "hard"  # Recalled with difficulty
    GOOD = "good"  # Normal recall
    EASY = "easy"  # Effortless recall

    @classmethod
    def parse(cls, value: "ReviewResult | str") -> "ReviewResult":
        """Convert a result token, raising InvalidResultError for anything unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidResultError(value) from None


class ReviewStatus(Enum):
    NEW = "new"
    LEARNING = "learning"
    REVIEWING = "reviewing"
    MASTERED = "mastered"


@dataclass
class CardState:
    """The scheduling state of a review card."""

    interval_days: int
    ease_factor: float
    repetitions: int
    status: ReviewStatus
    due_date: date
    last_reviewed_at: datetime | None = None


@dataclass
class ScheduleResult:
    """The result of grading a card."""

    new_state: CardState
    result: ReviewResult
    old_interval: int
    old_ease_factor: float


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (``round`` rounds to even)."""
    return math.floor(value + 0.5)


def clamp_interval(days: int) -> int:
    return max(MIN_INTERVAL_DAYS, min(MAX_INTERVAL_DAYS, days))


def clamp_ease(ease: float) -> float:
    # Stored with two decimals.
    return round(max(MIN_EASE_FACTOR, min(MAX_EASE_FACTOR, ease)), 2)


class Scheduler:
    """Grades review cards and computes their next due date."""

    def initial_state(self, today: date | None = None) -> CardState:
        """Create the state of a freshly attached card, due tomorrow."""
        today = today or utcnow().date()
        return CardState(
            interval_days=MIN_INTERVAL_DAYS,
            ease_factor=DEFAULT_EASE_FACTOR,
            repetitions=0,
            status=ReviewStatus.NEW,
            due_date=today + timedelta(days=1),
        )

    def review(
        self,
        state: CardState,
        result: ReviewResult | str,
        now: datetime | None = None,
    ) -> ScheduleResult:
        """Apply a grading result to a card state.

        Mastered cards are graded like any other card. The input state is
        not modified.

        Args:
            state: Current card state.
            result: again, hard, good or easy.
            now: When the grading happened (defaults to now).

        Returns:
            ScheduleResult with the complete next state.

        Raises:
            InvalidResultError: If ``result`` is not a known token.
        """
        result = ReviewResult.parse(result)
        now = now or utcnow()

        interval = state.interval_days
        ease = state.ease_factor
        status = state.status
        # Incremented before branching, so the first grading sees repetitions == 1.
        repetitions = state.repetitions + 1

        if result is ReviewResult.AGAIN:
            repetitions = 0
            interval = MIN_INTERVAL_DAYS
            status = ReviewStatus.LEARNING
            ease = ease - AGAIN_EASE_PENALTY
        elif result is ReviewResult.HARD:
            interval = max(MIN_INTERVAL_DAYS, round_half_up(interval * HARD_INTERVAL_FACTOR))
            ease = ease - HARD_EASE_PENALTY
            status = self._progress_status(repetitions)
        elif result is ReviewResult.GOOD:
            if repetitions == 1:
                interval = FIRST_GOOD_INTERVAL
            elif repetitions == 2:
                interval = SECOND_GOOD_INTERVAL
            else:
                interval = min(MAX_INTERVAL_DAYS, round_half_up(interval * ease))
            status = self._progress_status(repetitions)
        else:
            interval = min(
                MAX_INTERVAL_DAYS, round_half_up(interval * ease * EASY_INTERVAL_FACTOR)
            )
            ease = ease + EASY_EASE_BONUS
            status = self._progress_status(repetitions)
            if interval >= MASTERED_MIN_INTERVAL and repetitions >= MASTERED_MIN_REPETITIONS:
                status = ReviewStatus.MASTERED

        interval = clamp_interval(interval)
        ease = clamp_ease(ease)

        new_state = CardState(
            interval_days=interval,
            ease_factor=ease,
            repetitions=repetitions,
            status=status,
            due_date=now.date() + timedelta(days=interval),
            last_reviewed_at=now,
        )

        return ScheduleResult(
            new_state=new_state,
            result=result,
            old_interval=state.interval_days,
            old_ease_factor=state.ease_factor,
        )

    def _progress_status(self, repetitions: int) -> ReviewStatus:
        if repetitions >= REVIEWING_MIN_REPETITIONS:
            return ReviewStatus.REVIEWING
        return ReviewStatus.LEARNING
