"""Read-only helpers that describe a review card for dashboards and queues."""

from datetime import date
from typing import Protocol

from backend.config import utcnow


class Schedulable(Protocol):
    status: str
    due_date: date | None
    interval_days: int


def is_overdue(card: Schedulable, today: date | None = None) -> bool:
    """Return True if the card's due date is strictly before today."""
    if card.due_date is None:
        return False
    today = today or utcnow().date()
    return card.due_date < today


def days_until_due(card: Schedulable, today: date | None = None) -> int:
    """Return days until the card is due, negative when overdue."""
    if card.due_date is None:
        return 0
    today = today or utcnow().date()
    return (card.due_date - today).days


def priority(card: Schedulable, today: date | None = None) -> int:
    """Return the scheduling priority: 1=critical, 2=high, 3=medium."""
    if card.status == "new":
        return 3

    days = days_until_due(card, today)
    if days < -7:
        return 1  # very overdue
    if days < 0:
        return 2  # overdue
    if days <= 1:
        return 2  # due soon
    return 3


def formatted_interval(interval_days: int) -> str:
    """Render an interval as days, weeks or months, e.g. ``5d``, ``2.1w``, ``1.5mo``."""
    if interval_days < 7:
        return f"{interval_days}d"
    if interval_days < 30:
        return f"{round(interval_days / 7, 1):g}w"
    return f"{round(interval_days / 30, 1):g}mo"


def formatted_due_date(due: date | None) -> str | None:
    """Render a due date as ``Oct 22, 2026``."""
    if due is None:
        return None
    return f"{due:%b} {due.day}, {due.year}"
