"""Answer checking for flashcard reviews.

Typed, multiple-choice, true/false and cloze cards are checked against the
stored answer. Basic and image-occlusion cards have nothing to compare, so
the child's own assessment is taken as given.
"""

import logging
import unicodedata
from dataclasses import dataclass, field
from typing import Protocol

from backend.srs.scheduler import ReviewResult

logger = logging.getLogger(__name__)

SELF_ASSESSED = "self-assessed"

# Results that a wrong answer is not allowed to keep
OPTIMISTIC_RESULTS = (ReviewResult.GOOD, ReviewResult.EASY)


class CheckableCard(Protocol):
    card_type: str
    answer: str
    correct_choices: list[int] | None
    cloze_answers: list[str] | None


@dataclass
class FlashcardAnswer:
    """What the child submitted for a flashcard."""

    user_answer: str | None = None
    selected_choices: list[int] | None = None
    cloze_answers: list[str] | None = None
    is_correct: bool | None = None  # the child's own verdict, if given


@dataclass
class Assessment:
    """The result of checking a child's answer."""

    is_correct: bool | None  # None when nobody judged the answer
    correct_answer: str
    user_answer: str | list[int] | list[str] | None = None
    feedback: str = ""
    checked: list[bool] = field(default_factory=list)  # per cloze blank


def normalize_for_comparison(text: str) -> str:
    """Normalize text for comparison: NFC, trimmed, case-folded."""
    text = unicodedata.normalize("NFC", text.strip())
    # Remove zero-width characters
    for char in ["\u200b", "\u200c", "\u200d", "\ufeff"]:
        text = text.replace(char, "")
    return text.casefold()


def _verdict(is_correct: bool, expected: str) -> str:
    return "Correct!" if is_correct else f"Expected: {expected}"


def assess_exact(response: str | None, expected: str) -> Assessment:
    """Check a typed answer. A missing answer counts as wrong."""
    if response is None:
        return Assessment(is_correct=False, correct_answer=expected, feedback=_verdict(False, expected))

    response = response.strip()
    is_correct = normalize_for_comparison(response) == normalize_for_comparison(expected)
    return Assessment(
        is_correct=is_correct,
        correct_answer=expected,
        user_answer=response,
        feedback=_verdict(is_correct, expected),
    )


def assess_choices(selected: list[int] | None, correct: list[int], expected: str) -> Assessment:
    """Check multiple-choice or true/false selections: all correct choices and nothing else."""
    if selected is None:
        return Assessment(is_correct=False, correct_answer=expected, feedback=_verdict(False, expected))

    is_correct = len(selected) == len(correct) and set(selected) == set(correct)
    return Assessment(
        is_correct=is_correct,
        correct_answer=expected,
        user_answer=selected,
        feedback="Correct!" if is_correct else f"The correct answer was: {expected}",
    )


def assess_cloze(responses: list[str] | None, blanks: list[str], expected: str) -> Assessment:
    """Check each blank of a cloze card in order. A missing blank counts as wrong."""
    if responses is None:
        return Assessment(is_correct=False, correct_answer=expected, feedback=_verdict(False, expected))

    checked = [
        i < len(responses) and normalize_for_comparison(responses[i]) == normalize_for_comparison(blank)
        for i, blank in enumerate(blanks)
    ]
    is_correct = all(checked)
    if is_correct:
        feedback = "Correct!"
    else:
        wrong = ", ".join(str(i + 1) for i, ok in enumerate(checked) if not ok)
        feedback = f"Check blank {wrong}. Expected: {', '.join(blanks)}"
    return Assessment(
        is_correct=is_correct,
        correct_answer=expected,
        user_answer=responses,
        feedback=feedback,
        checked=checked,
    )


def assess_flashcard(card: CheckableCard, answer: FlashcardAnswer) -> Assessment:
    """Check an answer according to the card type."""
    if card.card_type == "typed_answer":
        return assess_exact(answer.user_answer, card.answer)
    if card.card_type in ("multiple_choice", "true_false"):
        return assess_choices(answer.selected_choices, card.correct_choices or [], card.answer)
    if card.card_type == "cloze":
        return assess_cloze(answer.cloze_answers, card.cloze_answers or [], card.answer)

    # basic, image_occlusion and anything unknown
    return Assessment(
        is_correct=answer.is_correct,
        correct_answer=card.answer,
        user_answer=answer.user_answer or SELF_ASSESSED,
    )


def effective_result(result: ReviewResult, answer: FlashcardAnswer, assessment: Assessment) -> ReviewResult:
    """The result to grade with once the answer has been checked.

    A wrong answer rated good or easy is graded as again, unless the child
    gave an explicit verdict of their own.
    """
    if answer.is_correct is not None or assessment.is_correct is not False:
        return result
    if result in OPTIMISTIC_RESULTS:
        logger.debug("Wrong answer rated %s, grading as again", result.value)
        return ReviewResult.AGAIN
    return result
