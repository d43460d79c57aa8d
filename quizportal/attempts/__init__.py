"""
Attempt/Scoring Engine

Submission checks, grading and storage of immutable attempt results.
"""

from quizportal.attempts.grading import GradedAttempt, check_answers, grade
from quizportal.attempts.service import AttemptService

__all__ = [
    'AttemptService',
    'GradedAttempt',
    'check_answers',
    'grade',
]
