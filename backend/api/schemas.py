"""Pydantic schemas for API request/response models."""

from datetime import date, datetime

from pydantic import BaseModel

from backend.srs.scheduler import ReviewResult

# --- Review cards ---


class SessionReviewRequest(BaseModel):
    """Request to create the topic review for a completed learning session."""

    session_id: int
    child_id: int
    topic_id: int


class FlashcardReviewRequest(BaseModel):
    """Request to attach a flashcard to a child as a review card."""

    flashcard_id: int
    child_id: int
    topic_id: int


class ReviewResponse(BaseModel):
    """A review card with its scheduling state and display helpers."""

    id: int
    child_id: int
    topic_id: int
    session_id: int | None = None
    flashcard_id: int | None = None
    review_type: str  # flashcard, topic
    interval_days: int
    formatted_interval: str
    ease_factor: float
    repetitions: int
    status: str  # new, learning, reviewing, mastered
    priority: int  # 1=critical, 2=high, 3=medium
    due_date: date
    formatted_due_date: str
    days_until_due: int
    is_overdue: bool
    last_reviewed_at: datetime | None = None
    topic_title: str | None = None
    flashcard_title: str | None = None  # the flashcard question
    card_type: str | None = None


# --- Grading ---


class GradeRequest(BaseModel):
    """Request to grade a review card."""

    result: ReviewResult


class GradingSummaryResponse(BaseModel):
    old_interval: int
    new_interval: int
    old_ease_factor: float
    new_ease_factor: float
    next_due: str
    due_date: date
    status: str
    repetitions: int


class GradeResponse(BaseModel):
    """Response after grading, with the next card of the refreshed queue."""

    review_id: int
    result: GradingSummaryResponse
    next_review: ReviewResponse | None = None
    session_complete: bool


class FlashcardGradeRequest(BaseModel):
    """Request to grade a flashcard review together with the child's answer."""

    result: ReviewResult
    user_answer: str | None = None  # typed_answer cards
    selected_choices: list[int] | None = None  # multiple_choice / true_false, indexes into choices
    cloze_answers: list[str] | None = None  # cloze cards, one per blank
    is_correct: bool | None = None  # the child's own verdict for basic / image_occlusion cards


class AnswerValidationResponse(BaseModel):
    is_correct: bool | None
    correct_answer: str
    user_answer: str | list[int] | list[str] | None = None
    feedback: str
    checked: list[bool] = []


class FlashcardGradeResponse(GradeResponse):
    """Grade response for a flashcard, with the answer check and the result actually applied."""

    graded_as: ReviewResult
    answer_validation: AnswerValidationResponse


# --- Queue ---


class QueueResponse(BaseModel):
    child_id: int
    total: int
    due_cards: int
    new_cards: int
    reviews: list[ReviewResponse]


class CountsResponse(BaseModel):
    child_id: int
    due: int
    new: int


# --- Stats ---


class WindowStatsResponse(BaseModel):
    reviews: int
    success_rate: float
    avg_interval_days: float
    new: int


class ReviewStatsResponse(BaseModel):
    """Overall review statistics for a child."""

    total_cards: int
    due_today: int
    new_cards: int
    overdue: int
    learning: int
    reviewing: int
    mastered: int
    retention_rate: float
    performance: dict[str, int]  # gradings per result over the last 30 days
    weekly: WindowStatsResponse
    monthly: WindowStatsResponse
