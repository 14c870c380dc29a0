"""Queue management for review sessions.

Handles picking due cards, mixing new cards in at a fixed ratio,
and capping the session so a child is never handed an endless pile.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import TypeVar

from sqlalchemy import ColumnElement, and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.config import settings, utcnow
from backend.models.review import Review

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class QueueConfig:
    """Configuration for queue building."""

    max_due: int = settings.queue_due_limit
    max_new: int = settings.queue_new_limit
    due_run: int = settings.queue_due_run
    new_run: int = settings.queue_new_run
    max_size: int = settings.queue_max_size


def interleave(
    due: Sequence[T],
    new: Sequence[T],
    due_run: int = 3,
    new_run: int = 1,
    limit: int = 20,
) -> list[T]:
    """Interleave due and new items in rounds of ``due_run`` then ``new_run``.

    Rounds repeat until both sequences are exhausted; an exhausted side simply
    contributes nothing while the other continues. The result is cut at ``limit``.
    """
    if due_run < 1 or new_run < 1:
        raise ValueError("due_run and new_run must be positive")

    result: list[T] = []
    due_idx = 0
    new_idx = 0

    while due_idx < len(due) or new_idx < len(new):
        result.extend(due[due_idx : due_idx + due_run])
        due_idx += due_run
        result.extend(new[new_idx : new_idx + new_run])
        new_idx += new_run

    return result[:limit]


@dataclass
class ReviewQueue:
    """A prepared queue of cards for a review session."""

    due_cards: list[Review] = field(default_factory=list)
    new_cards: list[Review] = field(default_factory=list)
    config: QueueConfig = field(default_factory=QueueConfig)

    def interleaved(self) -> list[Review]:
        """Return cards interleaved: three due cards, then one new card, and so on."""
        return interleave(
            self.due_cards,
            self.new_cards,
            due_run=self.config.due_run,
            new_run=self.config.new_run,
            limit=self.config.max_size,
        )

    @property
    def total(self) -> int:
        return len(self.interleaved())


def due_filter(child_id: int, today: date) -> ColumnElement[bool]:
    """SQL condition for cards that are due: not mastered and due today or earlier."""
    return and_(
        Review.child_id == child_id,
        Review.status != "mastered",
        Review.due_date <= today,
    )


def new_filter(child_id: int) -> ColumnElement[bool]:
    return and_(Review.child_id == child_id, Review.status == "new")


async def build_queue(
    session: AsyncSession,
    child_id: int,
    config: QueueConfig | None = None,
    today: date | None = None,
) -> ReviewQueue:
    """Build today's review queue for a child.

    Fetches due cards (earliest due first, then oldest) and new cards
    (oldest first). A new card that is already due is only queued once,
    as a due card.

    Args:
        session: Database session.
        child_id: The child to build the queue for.
        config: Queue configuration (limits, interleave ratio).
        today: Current date (defaults to today in UTC).

    Returns:
        A ReviewQueue with due and new cards.
    """
    config = config or QueueConfig()
    today = today or utcnow().date()

    due_stmt = (
        select(Review)
        .where(due_filter(child_id, today))
        .order_by(Review.due_date.asc(), Review.created_at.asc(), Review.id.asc())
        .limit(config.max_due)
    )
    due_cards = list((await session.execute(due_stmt)).scalars().all())
    due_ids = [card.id for card in due_cards]

    new_stmt = select(Review).where(new_filter(child_id))
    if due_ids:
        new_stmt = new_stmt.where(Review.id.not_in(due_ids))
    new_stmt = new_stmt.order_by(Review.created_at.asc(), Review.id.asc()).limit(config.max_new)
    new_cards = list((await session.execute(new_stmt)).scalars().all())

    queue = ReviewQueue(due_cards=due_cards, new_cards=new_cards, config=config)

    logger.info(
        "Built queue for child %d: %d due + %d new = %d queued",
        child_id,
        len(due_cards),
        len(new_cards),
        queue.total,
    )
    return queue


async def count_due(session: AsyncSession, child_id: int, today: date | None = None) -> int:
    """Count all due cards for a child, without the queue cap."""
    today = today or utcnow().date()
    stmt = select(func.count(Review.id)).where(due_filter(child_id, today))
    return (await session.execute(stmt)).scalar() or 0


async def count_new(session: AsyncSession, child_id: int) -> int:
    """Count all never-graded cards for a child."""
    stmt = select(func.count(Review.id)).where(new_filter(child_id))
    return (await session.execute(stmt)).scalar() or 0
