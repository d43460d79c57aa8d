"""
Analytics read models.

Projections computed on demand from stored assignments and results. None of
these are persisted.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Tuple

from quizportal.common.serialization import SerializableMixin

TREND_IMPROVING = "improving"
TREND_DECLINING = "declining"
TREND_STABLE = "stable"


@dataclass(frozen=True)
class TestSummary(SerializableMixin):
    """
    Completion and score summary of one test.

    Attributes:
        assigned_count: Distinct students across every assignment of the test
        completed_count: Distinct students with at least one result
        completion_rate: completed / assigned * 100, capped at 100; 0 when nobody is assigned
        average_score: Mean of each student's latest percentage; 0 when nobody completed
    """
    __test__ = False
    __serializable_fields__ = [
        "test_id", "assigned_count", "completed_count", "completion_rate", "average_score",
    ]

    test_id: str
    assigned_count: int
    completed_count: int
    completion_rate: float
    average_score: float


@dataclass(frozen=True)
class PerformerSummary(SerializableMixin):
    __serializable_fields__ = ["user_id", "average_score", "tests_completed"]

    user_id: str
    average_score: float
    tests_completed: int


@dataclass(frozen=True)
class PendingStudent(SerializableMixin):
    """A student assigned to a test without any result for it."""
    __serializable_fields__ = ["user_id", "due_date", "is_overdue"]

    user_id: str
    due_date: Optional[datetime]
    is_overdue: bool


@dataclass(frozen=True)
class PortfolioSummary(SerializableMixin):
    """Portal-wide totals for the administrator dashboard."""
    __serializable_fields__ = [
        "total_tests", "published_tests", "total_assignments", "active_assignments",
        "assigned_pairs", "completed_pairs", "completion_rate", "average_score",
        "total_attempts", "total_modules", "module_assignments", "module_completion_rate",
    ]

    total_tests: int
    published_tests: int
    total_assignments: int
    active_assignments: int
    assigned_pairs: int
    completed_pairs: int
    completion_rate: float
    average_score: float
    total_attempts: int
    total_modules: int = 0
    module_assignments: int = 0
    module_completion_rate: float = 0.0


@dataclass(frozen=True)
class QuestionAccuracy(SerializableMixin):
    __serializable_fields__ = ["question_id", "attempts", "correct", "accuracy"]

    question_id: str
    attempts: int
    correct: int
    accuracy: float


@dataclass(frozen=True)
class TestAnalytics(SerializableMixin):
    """
    Detailed statistics of one test.

    Pass rate, score distribution and averages use each student's latest
    attempt; question accuracy counts every stored attempt.
    """
    __test__ = False
    __serializable_fields__ = [
        "test_id", "title", "total_attempts", "unique_students", "average_score",
        "highest_score", "lowest_score", "pass_rate", "score_distribution",
        "question_accuracy",
    ]

    test_id: str
    title: str
    total_attempts: int
    unique_students: int
    average_score: float
    highest_score: float
    lowest_score: float
    pass_rate: float
    score_distribution: Dict[str, int]
    question_accuracy: Tuple[QuestionAccuracy, ...]


@dataclass(frozen=True)
class StudentPerformance(SerializableMixin):
    __serializable_fields__ = [
        "user_id", "assigned_tests", "completed_tests", "total_attempts",
        "average_score", "highest_score", "lowest_score", "recent_scores",
        "trend", "last_activity", "assigned_modules", "completed_modules",
        "module_completion",
    ]

    user_id: str
    assigned_tests: int
    completed_tests: int
    total_attempts: int
    average_score: float
    highest_score: float
    lowest_score: float
    recent_scores: Tuple[float, ...]
    trend: str
    last_activity: Optional[datetime]
    assigned_modules: int = 0
    completed_modules: int = 0
    module_completion: float = 0.0


@dataclass(frozen=True)
class ModuleAnalytics(SerializableMixin):
    """
    Completion statistics of one learning module.

    Attributes:
        assigned_count: Distinct students across every assignment of the module
        completed_count: Distinct students who marked any of its assignments complete
        average_completion_days: Mean days from assignment to completion
        overdue_count: Students on an active assignment past its due date without completing
    """
    __serializable_fields__ = [
        "module_id", "title", "assignment_count", "assigned_count", "completed_count",
        "completion_rate", "average_completion_days", "overdue_count",
    ]

    module_id: str
    title: str
    assignment_count: int
    assigned_count: int
    completed_count: int
    completion_rate: float
    average_completion_days: float
    overdue_count: int
