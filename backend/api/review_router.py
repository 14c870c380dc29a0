"""API routes for review cards, grading and today's queue."""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import asdict
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.schemas import (
    AnswerValidationResponse,
    CountsResponse,
    FlashcardGradeRequest,
    FlashcardGradeResponse,
    FlashcardReviewRequest,
    GradeRequest,
    GradeResponse,
    GradingSummaryResponse,
    QueueResponse,
    ReviewResponse,
    SessionReviewRequest,
)
from backend.config import utcnow
from backend.database import get_session
from backend.models.review import Review
from backend.srs.assessment import FlashcardAnswer
from backend.srs.classifiers import (
    days_until_due,
    formatted_due_date,
    formatted_interval,
    is_overdue,
    priority,
)
from backend.srs.errors import InvalidResultError, NotFoundError, PersistenceError
from backend.srs.service import GradingSummary, ReviewService, ReviewSubject

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["reviews"])


def get_clock() -> Callable[[], datetime]:
    """Clock used by the review service; overridden in tests."""
    return utcnow


def get_review_service(
    db: AsyncSession = Depends(get_session),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> ReviewService:
    return ReviewService(db, clock=clock)


@contextmanager
def review_errors() -> Iterator[None]:
    """Translate review engine errors into HTTP errors."""
    try:
        yield
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidResultError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except PersistenceError as exc:
        logger.warning("Giving up on review write: %s", exc)
        raise HTTPException(status_code=503, detail="Could not save the review, try again") from exc


def review_to_response(review: Review, today: date, subject: ReviewSubject | None = None) -> ReviewResponse:
    subject = subject or ReviewSubject()
    return ReviewResponse(
        id=review.id,
        child_id=review.child_id,
        topic_id=review.topic_id,
        session_id=review.session_id,
        flashcard_id=review.flashcard_id,
        review_type="flashcard" if review.is_flashcard_review else "topic",
        interval_days=review.interval_days,
        formatted_interval=formatted_interval(review.interval_days),
        ease_factor=round(review.ease_factor, 2),
        repetitions=review.repetitions,
        status=review.status,
        priority=priority(review, today),
        due_date=review.due_date,
        formatted_due_date=formatted_due_date(review.due_date),
        days_until_due=days_until_due(review, today),
        is_overdue=is_overdue(review, today),
        last_reviewed_at=review.last_reviewed_at,
        topic_title=subject.topic_title,
        flashcard_title=subject.flashcard_title,
        card_type=subject.card_type,
    )


async def describe(service: ReviewService, reviews: list[Review]) -> list[ReviewResponse]:
    """Card payloads with topic and flashcard display fields filled in."""
    subjects = await service.load_subjects(reviews)
    today = service.today()
    return [review_to_response(r, today, subjects.get(r.id)) for r in reviews]


async def _after_grading(service: ReviewService, summary: GradingSummary) -> dict:
    """Fields shared by both grade responses: the summary and the next card in the refreshed queue."""
    review = await service.get_review(summary.review_id)
    queue = await service.get_queue(review.child_id)
    next_review = next((r for r in queue if r.id != summary.review_id), None)

    fields = asdict(summary)
    del fields["review_id"]
    return {
        "review_id": summary.review_id,
        "result": GradingSummaryResponse(**fields),
        "next_review": (await describe(service, [next_review]))[0] if next_review else None,
        "session_complete": next_review is None,
    }


@router.post("/reviews/from-session", response_model=ReviewResponse, status_code=201)
async def create_session_review(
    request: SessionReviewRequest,
    response: Response,
    service: ReviewService = Depends(get_review_service),
) -> ReviewResponse:
    """Create the review card for a completed learning session.

    Answers 200 with the existing card when the session already has one.
    """
    with review_errors():
        review, created = await service.get_or_create_session_review(
            request.session_id, request.child_id, request.topic_id
        )
        if not created:
            response.status_code = 200
        return (await describe(service, [review]))[0]


@router.post("/reviews/from-flashcard", response_model=ReviewResponse, status_code=201)
async def create_flashcard_review(
    request: FlashcardReviewRequest,
    response: Response,
    service: ReviewService = Depends(get_review_service),
) -> ReviewResponse:
    """Attach a flashcard to a child as a review card (200 if it already was)."""
    with review_errors():
        review, created = await service.get_or_create_flashcard_review(
            request.flashcard_id, request.child_id, request.topic_id
        )
        if not created:
            response.status_code = 200
        return (await describe(service, [review]))[0]


@router.get("/reviews/{review_id}", response_model=ReviewResponse)
async def get_review(
    review_id: int,
    service: ReviewService = Depends(get_review_service),
) -> ReviewResponse:
    with review_errors():
        review = await service.get_review(review_id)
        return (await describe(service, [review]))[0]


@router.post("/reviews/{review_id}/grade", response_model=GradeResponse)
async def grade_review(
    review_id: int,
    request: GradeRequest,
    service: ReviewService = Depends(get_review_service),
) -> GradeResponse:
    """Grade a card and return the next card in the child's refreshed queue."""
    with review_errors():
        summary = await service.grade_with_retry(review_id, request.result)
        return GradeResponse(**await _after_grading(service, summary))


@router.post("/reviews/{review_id}/grade-flashcard", response_model=FlashcardGradeResponse)
async def grade_flashcard_review(
    review_id: int,
    request: FlashcardGradeRequest,
    service: ReviewService = Depends(get_review_service),
) -> FlashcardGradeResponse:
    """Check the child's answer to a flashcard, then grade it.

    A wrong answer rated good or easy is graded as again; ``graded_as``
    reports the result that was applied.
    """
    answer = FlashcardAnswer(
        user_answer=request.user_answer,
        selected_choices=request.selected_choices,
        cloze_answers=request.cloze_answers,
        is_correct=request.is_correct,
    )
    with review_errors():
        grading = await service.grade_flashcard(review_id, request.result, answer)
        return FlashcardGradeResponse(
            **await _after_grading(service, grading.summary),
            graded_as=grading.result,
            answer_validation=AnswerValidationResponse(**asdict(grading.assessment)),
        )


@router.get("/children/{child_id}/queue", response_model=QueueResponse)
async def get_queue(
    child_id: int,
    service: ReviewService = Depends(get_review_service),
) -> QueueResponse:
    """Return today's review queue for a child."""
    with review_errors():
        queue = await service.build_review_queue(child_id)

    cards = queue.interleaved()
    due_ids = {card.id for card in queue.due_cards}
    due_count = sum(1 for card in cards if card.id in due_ids)

    return QueueResponse(
        child_id=child_id,
        total=len(cards),
        due_cards=due_count,
        new_cards=len(cards) - due_count,
        reviews=await describe(service, cards),
    )


@router.get("/children/{child_id}/counts", response_model=CountsResponse)
async def get_counts(
    child_id: int,
    service: ReviewService = Depends(get_review_service),
) -> CountsResponse:
    """Return due and new card counts for dashboard badges."""
    with review_errors():
        due = await service.get_due_count(child_id)
        new = await service.get_new_count(child_id)
    return CountsResponse(child_id=child_id, due=due, new=new)
