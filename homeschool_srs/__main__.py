"""CLI interface for Homeschool SRS.

Usage:
    python -m homeschool_srs review CHILD_ID          Run a review session
    python -m homeschool_srs queue CHILD_ID           Show today's queue
    python -m homeschool_srs grade REVIEW_ID RESULT   Grade one card (again/hard/good/easy)
    python -m homeschool_srs due CHILD_ID             Show how many cards are due
    python -m homeschool_srs stats CHILD_ID           Show review statistics
"""

import argparse
import asyncio
import logging

from backend.config import utcnow
from backend.database import async_session, init_db
from backend.models.review import Review
from backend.srs.assessment import FlashcardAnswer
from backend.srs.classifiers import formatted_due_date, formatted_interval, priority
from backend.srs.errors import ReviewError
from backend.srs.scheduler import ReviewResult
from backend.srs.service import GradingSummary, ReviewService

PRIORITY_LABELS = {1: "critical", 2: "high", 3: "medium"}


async def ensure_db() -> None:
    """Create tables if they don't exist."""
    await init_db()


def format_card(review: Review, position: int | str | None = None) -> str:
    kind = "flashcard" if review.is_flashcard_review else "topic"
    label = f"  [{position}]" if position is not None else " "
    return (
        f"{label} #{review.id} {kind:<9} {review.status:<9} "
        f"every {formatted_interval(review.interval_days):<6} "
        f"due {formatted_due_date(review.due_date)} "
        f"({PRIORITY_LABELS[priority(review, utcnow().date())]})"
    )


def format_summary(summary: GradingSummary) -> str:
    return (
        f"  Interval {summary.old_interval}d -> {summary.new_interval}d, "
        f"ease {summary.old_ease_factor:.2f} -> {summary.new_ease_factor:.2f}, "
        f"{summary.status}, next due {summary.next_due}"
    )


async def cmd_queue(args: argparse.Namespace) -> None:
    """Print today's review queue."""
    await ensure_db()
    async with async_session() as db:
        cards = await ReviewService(db).get_queue(args.child_id)

    if not cards:
        print("\n  No reviews available right now!")
        return

    print(f"\n  {len(cards)} cards queued for child {args.child_id}\n")
    for i, card in enumerate(cards, 1):
        print(format_card(card, i))
    print()


async def cmd_grade(args: argparse.Namespace) -> None:
    """Grade a single card."""
    await ensure_db()
    async with async_session() as db:
        summary = await ReviewService(db).grade_with_retry(args.review_id, args.result)
    print(format_summary(summary))


async def cmd_review(args: argparse.Namespace) -> None:
    """Run an interactive review session."""
    await ensure_db()
    choices = [r.value for r in ReviewResult]

    async with async_session() as db:
        service = ReviewService(db)
        cards = await service.get_queue(args.child_id)
        if not cards:
            print("\n  No reviews available right now!")
            return

        subjects = await service.load_subjects(cards)

        print("\n  Review Session")
        print(f"  {len(cards)} cards\n")
        print(f"  Results: {' / '.join(choices)}")
        print("  Type 'q' to quit\n")

        reviewed = 0
        for i, card in enumerate(cards, 1):
            subject = subjects[card.id]
            print(format_card(card, f"{i}/{len(cards)}"))
            print(f"  {subject.flashcard_title or subject.topic_title}")

            # Typed answers are checked; other cards are graded on the child's word.
            typed = None
            if subject.card_type == "typed_answer":
                typed = input("\n  Your answer: ").strip()
                if typed.lower() == "q":
                    break

            result = ""
            while result not in choices and result != "q":
                result = input("  Result: ").strip().lower()
            if result == "q":
                break

            if typed is None:
                summary = await service.grade_with_retry(card.id, result)
            else:
                grading = await service.grade_flashcard(card.id, result, FlashcardAnswer(user_answer=typed))
                print(f"  {grading.assessment.feedback}")
                if grading.result.value != result:
                    print(f"  Graded as {grading.result.value}")
                summary = grading.summary
            print(format_summary(summary) + "\n")
            reviewed += 1
        else:
            print("\n  Session Complete!")
            print(f"  Reviewed: {reviewed}\n")
            return

    print("\n  Session ended early.")
    print(f"  Reviewed: {reviewed}\n")


async def cmd_due(args: argparse.Namespace) -> None:
    """Show how many cards are due."""
    await ensure_db()
    async with async_session() as db:
        service = ReviewService(db)
        due = await service.get_due_count(args.child_id)
        new = await service.get_new_count(args.child_id)

    print(f"  {due} cards due, {new} new cards available")


async def cmd_stats(args: argparse.Namespace) -> None:
    """Show review statistics."""
    await ensure_db()
    async with async_session() as db:
        stats = await ReviewService(db).get_stats(args.child_id)

    print("\n  Review Statistics")
    print(f"  {'Total cards:':<20} {stats.total_cards}")
    print(f"  {'Due today:':<20} {stats.due_today}")
    print(f"  {'Overdue:':<20} {stats.overdue}")
    print(f"  {'New (unseen):':<20} {stats.new_cards}")
    print(f"  {'Learning:':<20} {stats.learning}")
    print(f"  {'Reviewing:':<20} {stats.reviewing}")
    print(f"  {'Mastered:':<20} {stats.mastered}")
    print(f"  {'Retention:':<20} {stats.retention_rate}%")
    print(f"  {'Last 7 days:':<20} {stats.weekly.reviews} cards, {stats.weekly.success_rate}% ok")
    print(f"  {'Last 30 days:':<20} {stats.monthly.reviews} cards, {stats.monthly.success_rate}% ok")
    print()


def main() -> None:
    """Entry point for the Homeschool SRS CLI application."""
    parser = argparse.ArgumentParser(
        prog="homeschool_srs",
        description="Homeschool spaced repetition reviews",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    review_parser = subparsers.add_parser("review", help="Run a review session")
    review_parser.add_argument("child_id", type=int)

    queue_parser = subparsers.add_parser("queue", help="Show today's review queue")
    queue_parser.add_argument("child_id", type=int)

    grade_parser = subparsers.add_parser("grade", help="Grade one review card")
    grade_parser.add_argument("review_id", type=int)
    grade_parser.add_argument("result", choices=[r.value for r in ReviewResult])

    due_parser = subparsers.add_parser("due", help="Show cards due for review")
    due_parser.add_argument("child_id", type=int)

    stats_parser = subparsers.add_parser("stats", help="Show review statistics")
    stats_parser.add_argument("child_id", type=int)

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    if not args.command:
        parser.print_help()
        return

    cmd_map = {
        "review": cmd_review,
        "queue": cmd_queue,
        "grade": cmd_grade,
        "due": cmd_due,
        "stats": cmd_stats,
    }

    try:
        asyncio.run(cmd_map[args.command](args))
    except ReviewError as exc:
        parser.exit(1, f"  {exc}\n")


if __name__ == "__main__":
    main()
