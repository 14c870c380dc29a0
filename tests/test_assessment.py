"""Tests for flashcard answer checking."""

from dataclasses import dataclass

import pytest

from backend.srs.assessment import (
    SELF_ASSESSED,
    FlashcardAnswer,
    assess_choices,
    assess_cloze,
    assess_exact,
    assess_flashcard,
    effective_result,
)
from backend.srs.scheduler import ReviewResult


@dataclass
class Card:
    card_type: str
    answer: str = "Paris"
    correct_choices: list[int] | None = None
    cloze_answers: list[str] | None = None


class TestAssessExact:
    def test_trimmed_case_insensitive_match(self) -> None:
        assessment = assess_exact("  paris ", "Paris")
        assert assessment.is_correct is True
        assert assessment.user_answer == "paris"
        assert assessment.feedback == "Correct!"

    def test_wrong_answer(self) -> None:
        assessment = assess_exact("Lyon", "Paris")
        assert assessment.is_correct is False
        assert assessment.feedback == "Expected: Paris"
        assert assessment.correct_answer == "Paris"

    def test_punctuation_matters(self) -> None:
        assert assess_exact("3/4", "3/4").is_correct is True
        assert assess_exact("34", "3/4").is_correct is False

    def test_missing_answer_is_wrong(self) -> None:
        assessment = assess_exact(None, "Paris")
        assert assessment.is_correct is False
        assert assessment.user_answer is None


class TestAssessChoices:
    def test_all_correct_choices(self) -> None:
        assessment = assess_choices([2, 0], [0, 2], "A and C")
        assert assessment.is_correct is True
        assert assessment.user_answer == [2, 0]

    def test_missing_choice(self) -> None:
        assert assess_choices([0], [0, 2], "A and C").is_correct is False

    def test_extra_choice(self) -> None:
        assert assess_choices([0, 1, 2], [0, 2], "A and C").is_correct is False

    def test_repeated_choice_does_not_stand_in_for_another(self) -> None:
        assert assess_choices([0, 0], [0, 2], "A and C").is_correct is False

    def test_nothing_selected(self) -> None:
        assessment = assess_choices(None, [1], "False")
        assert assessment.is_correct is False
        assert assessment.feedback == "Expected: False"


class TestAssessCloze:
    def test_every_blank_right(self) -> None:
        assessment = assess_cloze([" Capital", "paris"], ["capital", "Paris"], "The capital is Paris")
        assert assessment.is_correct is True
        assert assessment.checked == [True, True]

    def test_one_blank_wrong(self) -> None:
        assessment = assess_cloze(["capital", "Lyon"], ["capital", "Paris"], "The capital is Paris")
        assert assessment.is_correct is False
        assert assessment.checked == [True, False]
        assert assessment.feedback.startswith("Check blank 2.")

    def test_missing_blank_is_wrong(self) -> None:
        assessment = assess_cloze(["capital"], ["capital", "Paris"], "The capital is Paris")
        assert assessment.checked == [True, False]


class TestAssessFlashcard:
    def test_typed_answer(self) -> None:
        card = Card(card_type="typed_answer")
        assert assess_flashcard(card, FlashcardAnswer(user_answer="PARIS")).is_correct is True

    @pytest.mark.parametrize("card_type", ["multiple_choice", "true_false"])
    def test_choice_cards(self, card_type: str) -> None:
        card = Card(card_type=card_type, answer="True", correct_choices=[0])
        assert assess_flashcard(card, FlashcardAnswer(selected_choices=[0])).is_correct is True
        assert assess_flashcard(card, FlashcardAnswer(selected_choices=[1])).is_correct is False

    def test_cloze_card(self) -> None:
        card = Card(card_type="cloze", cloze_answers=["Paris"])
        assert assess_flashcard(card, FlashcardAnswer(cloze_answers=["paris"])).is_correct is True

    @pytest.mark.parametrize("card_type", ["basic", "image_occlusion"])
    def test_self_assessed_cards(self, card_type: str) -> None:
        card = Card(card_type=card_type)
        unjudged = assess_flashcard(card, FlashcardAnswer())
        assert unjudged.is_correct is None
        assert unjudged.user_answer == SELF_ASSESSED

        judged = assess_flashcard(card, FlashcardAnswer(is_correct=False, user_answer="Rome"))
        assert judged.is_correct is False
        assert judged.user_answer == "Rome"


class TestEffectiveResult:
    @pytest.mark.parametrize("result", [ReviewResult.GOOD, ReviewResult.EASY])
    def test_wrong_answer_rated_well_becomes_again(self, result: ReviewResult) -> None:
        answer = FlashcardAnswer(user_answer="Lyon")
        assessment = assess_exact("Lyon", "Paris")
        assert effective_result(result, answer, assessment) is ReviewResult.AGAIN

    @pytest.mark.parametrize("result", [ReviewResult.AGAIN, ReviewResult.HARD])
    def test_wrong_answer_keeps_low_ratings(self, result: ReviewResult) -> None:
        answer = FlashcardAnswer(user_answer="Lyon")
        assessment = assess_exact("Lyon", "Paris")
        assert effective_result(result, answer, assessment) is result

    def test_right_answer_keeps_rating(self) -> None:
        answer = FlashcardAnswer(user_answer="Paris")
        assessment = assess_exact("Paris", "Paris")
        assert effective_result(ReviewResult.EASY, answer, assessment) is ReviewResult.EASY

    def test_own_verdict_is_not_overridden(self) -> None:
        answer = FlashcardAnswer(user_answer="Lyon", is_correct=True)
        assessment = assess_exact("Lyon", "Paris")
        assert effective_result(ReviewResult.GOOD, answer, assessment) is ReviewResult.GOOD

    def test_unjudged_self_assessed_card_keeps_rating(self) -> None:
        card = Card(card_type="basic")
        answer = FlashcardAnswer()
        assessment = assess_flashcard(card, answer)
        assert effective_result(ReviewResult.GOOD, answer, assessment) is ReviewResult.GOOD
