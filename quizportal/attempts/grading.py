"""
Answer grading.

Grading is all or nothing per question: the selected option either is the
question's correct option at grading time, earning the question's points, or
it earns nothing. The answer key is copied into every AnswerRecord so later
edits of the test cannot change how a stored attempt reads.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from quizportal.common.exceptions import ValidationError
from quizportal.common.utils import percentage_of
from quizportal.domain.models import AnswerRecord, AnswerSubmission, MockTest


@dataclass(frozen=True)
class GradedAttempt:
    """Outcome of grading one submission against a test."""
    answers: Tuple[AnswerRecord, ...]
    score: int
    total_points: int
    total_questions: int
    correct_answers: int

    @property
    def percentage(self) -> float:
        return percentage_of(self.score, self.total_points)


def check_answers(test: MockTest, answers: Iterable[AnswerSubmission]) -> Dict[str, AnswerSubmission]:
    """
    Index submitted answers by question id, rejecting malformed ones.

    Raises:
        ValidationError: If a question id repeats or is not part of the test,
            or a selected option does not belong to its question
    """
    errors: Dict[str, str] = {}
    by_question: Dict[str, AnswerSubmission] = {}

    for index, answer in enumerate(answers):
        path = f"answers[{index}]"
        question = test.get_question(answer.question_id)
        if question is None:
            errors[f"{path}.question_id"] = "Question is not part of this test"
            continue
        if answer.question_id in by_question:
            errors[f"{path}.question_id"] = "Question answered more than once"
            continue
        if answer.selected_option_id is not None and answer.selected_option_id not in question.option_ids:
            errors[f"{path}.selected_option_id"] = "Option does not belong to this question"
            continue
        by_question[answer.question_id] = answer

    if errors:
        raise ValidationError("Submitted answers are invalid", errors=errors)
    return by_question


def grade(test: MockTest, answers: Iterable[AnswerSubmission]) -> GradedAttempt:
    """
    Grade a submission against the test's current answer key.

    Every question of the test yields one AnswerRecord, in test order;
    unanswered questions are recorded with no selection and zero points.

    Raises:
        ValidationError: See check_answers
    """
    by_question = check_answers(test, answers)

    records: List[AnswerRecord] = []
    for question in test.questions:
        submitted = by_question.get(question.id)
        selected = submitted.selected_option_id if submitted else None
        correct = question.correct_option
        correct_id = correct.id if correct else None
        is_correct = selected is not None and selected == correct_id
        records.append(AnswerRecord(
            question_id=question.id,
            selected_option_id=selected,
            correct_option_id=correct_id,
            is_correct=is_correct,
            points_earned=question.points if is_correct else 0,
        ))

    return GradedAttempt(
        answers=tuple(records),
        score=sum(record.points_earned for record in records),
        total_points=test.total_points,
        total_questions=test.total_questions,
        correct_answers=sum(1 for record in records if record.is_correct),
    )
