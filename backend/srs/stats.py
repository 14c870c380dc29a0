"""Review statistics for a child's dashboard."""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.models.review import Review
from backend.models.review_log import ReviewLog
from backend.srs.scheduler import ReviewResult


@dataclass
class WindowStats:
    """Cards graded within a trailing window of days."""

    reviews: int = 0
    success_rate: float = 0.0  # percent of those cards not back in learning
    avg_interval_days: float = 0.0
    new: int = 0  # graded in the window but sitting at zero repetitions


@dataclass
class ReviewStats:
    total_cards: int = 0
    due_today: int = 0
    new_cards: int = 0
    overdue: int = 0
    learning: int = 0
    reviewing: int = 0
    mastered: int = 0
    retention_rate: float = 0.0
    performance: dict[str, int] = field(default_factory=dict)
    weekly: WindowStats = field(default_factory=WindowStats)
    monthly: WindowStats = field(default_factory=WindowStats)


def retention_rate(cards: list[Review]) -> float:
    """Percent of cards with any history that are no longer in learning."""
    with_history = [c for c in cards if c.repetitions > 0]
    if not with_history:
        return 0.0
    successful = sum(1 for c in with_history if c.status != "learning")
    return round(successful / len(with_history) * 100, 1)


def window_stats(cards: list[Review], since: datetime) -> WindowStats:
    recent = [c for c in cards if c.last_reviewed_at is not None and c.last_reviewed_at >= since]
    if not recent:
        return WindowStats()

    successful = sum(1 for c in recent if c.status != "learning")
    return WindowStats(
        reviews=len(recent),
        success_rate=round(successful / len(recent) * 100, 1),
        avg_interval_days=round(sum(c.interval_days for c in recent) / len(recent), 1),
        new=sum(1 for c in recent if c.repetitions == 0),
    )


async def compute_stats(
    session: AsyncSession,
    child_id: int,
    now: datetime,
) -> ReviewStats:
    """Aggregate card states and recent grading results for a child."""
    today: date = now.date()
    cards = list(
        (await session.execute(select(Review).where(Review.child_id == child_id))).scalars().all()
    )

    status_counts: dict[str, int] = {}
    for card in cards:
        status_counts[card.status] = status_counts.get(card.status, 0) + 1

    due = [c for c in cards if c.status != "mastered" and c.due_date <= today]

    # Result breakdown over the last 30 days of gradings
    perf_stmt = (
        select(ReviewLog.result, func.count(ReviewLog.id))
        .where(
            and_(
                ReviewLog.child_id == child_id,
                ReviewLog.reviewed_at >= now - timedelta(days=30),
            )
        )
        .group_by(ReviewLog.result)
    )
    performance = {r.value: 0 for r in ReviewResult}
    for result, count in (await session.execute(perf_stmt)).all():
        performance[result] = count

    return ReviewStats(
        total_cards=len(cards),
        due_today=len(due),
        new_cards=status_counts.get("new", 0),
        overdue=sum(1 for c in due if c.due_date < today),
        learning=status_counts.get("learning", 0),
        reviewing=status_counts.get("reviewing", 0),
        mastered=status_counts.get("mastered", 0),
        retention_rate=retention_rate(cards),
        performance=performance,
        weekly=window_stats(cards, now - timedelta(days=7)),
        monthly=window_stats(cards, now - timedelta(days=30)),
    )
