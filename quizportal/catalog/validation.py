"""
Test content validation.

All rules are checked on every create, update and publish, and every
violation is reported at once, keyed by field path, so authoring tools can
highlight each offending field.
"""

from typing import Dict

from quizportal.common.exceptions import ValidationError
from quizportal.domain.models import MockTest

MIN_OPTIONS_PER_QUESTION = 2


def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


def collect_test_errors(test: MockTest, min_minutes: int, max_minutes: int) -> Dict[str, str]:
    """
    Check a test against the authoring rules.

    Args:
        test: The candidate test
        min_minutes: Lowest accepted time limit
        max_minutes: Highest accepted time limit

    Returns:
        Dictionary of field path to error message; empty when valid
    """
    errors: Dict[str, str] = {}

    if not test.title or not test.title.strip():
        errors["title"] = "Test title is required"

    limit = test.time_limit_minutes
    if not _is_positive_int(limit) or not (min_minutes <= limit <= max_minutes):
        errors["time_limit_minutes"] = (
            f"Time limit must be between {min_minutes} and {max_minutes} minutes"
        )

    if not test.questions:
        errors["questions"] = "Test must have at least one question"

    seen_questions = set()
    seen_options = set()
    for index, question in enumerate(test.questions):
        path = f"questions[{index}]"

        if question.id in seen_questions:
            errors[f"{path}.id"] = "Question ids must be unique"
        seen_questions.add(question.id)

        if not question.text or not question.text.strip():
            errors[f"{path}.text"] = "Question text is required"

        if not _is_positive_int(question.points):
            errors[f"{path}.points"] = "Question must have at least 1 point"

        if len(question.options) < MIN_OPTIONS_PER_QUESTION:
            errors[f"{path}.options"] = "Question must have at least 2 options"
        else:
            correct_count = len(question.correct_options)
            if correct_count != 1:
                errors[f"{path}.options"] = (
                    f"Question must have exactly one correct option, found {correct_count}"
                )

        for option_index, option in enumerate(question.options):
            option_path = f"{path}.options[{option_index}]"
            if not option.text or not option.text.strip():
                errors[f"{option_path}.text"] = "Option text is required"
            if option.id in seen_options:
                errors[f"{option_path}.id"] = "Option ids must be unique"
            seen_options.add(option.id)

    return errors


def validate_test(test: MockTest, min_minutes: int, max_minutes: int) -> None:
    """
    Raise ValidationError unless the test satisfies every authoring rule.
    """
    errors = collect_test_errors(test, min_minutes, max_minutes)
    if errors:
        raise ValidationError("Test definition is invalid", errors=errors)
