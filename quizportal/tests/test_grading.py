"""
Tests for answer grading and percentage rounding.
"""

import pytest

from quizportal.attempts.grading import grade
from quizportal.common.exceptions import ValidationError
from quizportal.common.utils import percentage_of
from quizportal.domain.models import AnswerSubmission, MockTest, Option, Question


@pytest.fixture
def two_question_test():
    """2-point and 1-point questions, correct options a1 and b2."""
    return MockTest(
        id="t1",
        title="Scenario",
        description="",
        instructions="",
        time_limit_minutes=30,
        questions=(
            Question(id="qa", text="A?", points=2, options=(
                Option(id="a1", text="yes", is_correct=True),
                Option(id="a2", text="no"),
            )),
            Question(id="qb", text="B?", points=1, options=(
                Option(id="b1", text="yes"),
                Option(id="b2", text="no", is_correct=True),
            )),
        ),
    )


class TestGrade:

    def test_all_correct(self, two_question_test):
        graded = grade(two_question_test, [
            AnswerSubmission("qa", "a1"),
            AnswerSubmission("qb", "b2"),
        ])

        assert graded.score == 3
        assert graded.total_points == 3
        assert graded.correct_answers == 2
        assert graded.percentage == 100.0

    def test_one_wrong(self, two_question_test):
        graded = grade(two_question_test, [
            AnswerSubmission("qa", "a1"),
            AnswerSubmission("qb", "b1"),
        ])

        assert graded.score == 2
        assert graded.percentage == 66.7
        assert [r.points_earned for r in graded.answers] == [2, 0]

    def test_missing_answer_graded_as_wrong(self, two_question_test):
        graded = grade(two_question_test, [AnswerSubmission("qb", "b2")])

        assert [r.question_id for r in graded.answers] == ["qa", "qb"]
        assert graded.answers[0].selected_option_id is None
        assert graded.answers[0].correct_option_id == "a1"
        assert not graded.answers[0].is_correct
        assert graded.score == 1

    def test_answer_order_does_not_matter(self, two_question_test):
        graded = grade(two_question_test, [
            AnswerSubmission("qb", "b2"),
            AnswerSubmission("qa", "a1"),
        ])

        assert [r.question_id for r in graded.answers] == ["qa", "qb"]
        assert graded.score == 3

    @pytest.mark.parametrize("answers", [
        [AnswerSubmission("qx", "a1")],
        [AnswerSubmission("qa", "a1"), AnswerSubmission("qa", "a2")],
        [AnswerSubmission("qa", "b1")],
    ])
    def test_malformed_answers_rejected(self, two_question_test, answers):
        with pytest.raises(ValidationError):
            grade(two_question_test, answers)


class TestPercentageOf:

    @pytest.mark.parametrize("score,total,expected", [
        (2, 3, 66.7),
        (1, 3, 33.3),
        (1, 8, 12.5),
        (1, 16, 6.3),
        (5, 8, 62.5),
        (0, 7, 0.0),
        (3, 3, 100.0),
        (1, 0, 0.0),
    ])
    def test_rounds_half_up_to_one_decimal(self, score, total, expected):
        assert percentage_of(score, total) == expected
