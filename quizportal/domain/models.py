"""
Portal Domain Model Module

This module defines the core domain entities: tests (MockTest) with their
questions and options, assignments binding a test to students, and the
immutable graded attempts (AttemptResult) produced by the scoring engine,
plus the learning modules assigned and completed alongside tests.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from quizportal.common.serialization import SerializableMixin
from quizportal.common.utils import percentage_of, utc_now


@dataclass(frozen=True)
class Option(SerializableMixin):
    """
    One selectable answer of a question.

    Attributes:
        id: Unique identifier of the option within its test
        text: The option text shown to students
        is_correct: Whether this option is the question's correct answer
    """
    __serializable_fields__ = ["id", "text", "is_correct"]

    id: str
    text: str
    is_correct: bool = False


@dataclass(frozen=True)
class Question(SerializableMixin):
    """
    A single-select multiple-choice question.

    Attributes:
        id: Unique identifier of the question within its test
        text: The question text
        options: Ordered answer options, exactly one of them correct
        points: Points awarded for a correct answer
        explanation: Optional explanation shown after grading
    """
    __serializable_fields__ = ["id", "text", "options", "points", "explanation"]

    id: str
    text: str
    options: Tuple[Option, ...]
    points: int = 1
    explanation: Optional[str] = None

    @property
    def correct_options(self) -> List[Option]:
        return [option for option in self.options if option.is_correct]

    @property
    def correct_option(self) -> Optional[Option]:
        """The correct option, or None when the question is malformed."""
        correct = self.correct_options
        return correct[0] if len(correct) == 1 else None

    @property
    def option_ids(self) -> FrozenSet[str]:
        return frozenset(option.id for option in self.options)

    def to_student_dict(self) -> Dict[str, Any]:
        """Question as shown while taking a test: no answer key, no explanation."""
        return {
            "id": self.id,
            "text": self.text,
            "points": self.points,
            "options": [{"id": option.id, "text": option.text} for option in self.options],
        }


@dataclass(frozen=True)
class MockTest(SerializableMixin):
    """
    A named collection of multiple-choice questions.

    total_points and total_questions are derived from the questions and can
    therefore never drift from them.
    """
    __serializable_fields__ = [
        "id", "title", "description", "instructions", "time_limit_minutes",
        "questions", "total_points", "total_questions", "is_published",
        "created_by", "created_at", "updated_at",
    ]

    id: str
    title: str
    description: str
    instructions: str
    time_limit_minutes: int
    questions: Tuple[Question, ...]
    is_published: bool = False
    created_by: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def total_points(self) -> int:
        return sum(question.points for question in self.questions)

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    def get_question(self, question_id: str) -> Optional[Question]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    def to_student_dict(self) -> Dict[str, Any]:
        """Test content safe to send to a student before grading."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "instructions": self.instructions,
            "time_limit_minutes": self.time_limit_minutes,
            "total_points": self.total_points,
            "total_questions": self.total_questions,
            "questions": [question.to_student_dict() for question in self.questions],
        }


@dataclass
class OptionDraft:
    """Caller-supplied option content; id is kept when editing an existing option."""
    text: str
    is_correct: bool = False
    id: Optional[str] = None


@dataclass
class QuestionDraft:
    """Caller-supplied question content."""
    text: str
    options: List[OptionDraft]
    points: int = 1
    explanation: Optional[str] = None
    id: Optional[str] = None


@dataclass
class TestDraft:
    """Input of create_test. There is no total_points: it is always computed."""
    __test__ = False

    title: str
    description: str
    instructions: str
    time_limit_minutes: int
    questions: List[QuestionDraft]
    is_published: bool = False
    created_by: Optional[str] = None


@dataclass
class TestPatch:
    """Input of update_test; None means "leave unchanged"."""
    __test__ = False

    title: Optional[str] = None
    description: Optional[str] = None
    instructions: Optional[str] = None
    time_limit_minutes: Optional[int] = None
    questions: Optional[List[QuestionDraft]] = None

    @property
    def changes_content(self) -> bool:
        return self.questions is not None or self.time_limit_minutes is not None


@dataclass(frozen=True)
class Assignment(SerializableMixin):
    """
    Binding of a test to a set of students.

    Attributes:
        id: Unique identifier
        test_id: The assigned (published) test
        assigned_student_ids: Students allowed to attempt the test
        max_attempts: Number of graded attempts each student may make
        due_date: Optional deadline; None means no deadline
        is_active: False once the assignment has been soft-invalidated
    """
    __serializable_fields__ = [
        "id", "test_id", "assigned_student_ids", "max_attempts", "due_date",
        "created_by", "created_at", "updated_at", "is_active",
    ]

    id: str
    test_id: str
    assigned_student_ids: FrozenSet[str]
    max_attempts: int = 1
    due_date: Optional[datetime] = None
    created_by: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    is_active: bool = True

    def is_assigned(self, user_id: str) -> bool:
        return user_id in self.assigned_student_ids

    def is_overdue(self, now: datetime) -> bool:
        return self.due_date is not None and now > self.due_date


@dataclass
class AssignmentPatch:
    """Input of update_assignment; None means "leave unchanged"."""
    add_student_ids: Optional[List[str]] = None
    remove_student_ids: Optional[List[str]] = None
    due_date: Optional[datetime] = None
    clear_due_date: bool = False
    max_attempts: Optional[int] = None


@dataclass(frozen=True)
class AnswerSubmission:
    """One submitted answer; selected_option_id None means skipped."""
    question_id: str
    selected_option_id: Optional[str] = None


@dataclass(frozen=True)
class AnswerRecord(SerializableMixin):
    """Graded answer with the answer key frozen at grading time."""
    __serializable_fields__ = [
        "question_id", "selected_option_id", "correct_option_id",
        "is_correct", "points_earned",
    ]

    question_id: str
    selected_option_id: Optional[str]
    correct_option_id: Optional[str]
    is_correct: bool
    points_earned: int


@dataclass(frozen=True)
class AttemptResult(SerializableMixin):
    """
    An immutable graded attempt.

    percentage is not stored: it is always derived from score and the
    total_points snapshot, so a recomputation can never disagree with it.
    attempt_number is 0 until the result repository assigns it on insert.
    """
    __serializable_fields__ = [
        "id", "assignment_id", "test_id", "user_id", "attempt_number",
        "answers", "score", "total_points", "percentage", "total_questions",
        "correct_answers", "time_spent_seconds", "started_at", "submitted_at",
        "is_late",
    ]

    id: str
    assignment_id: str
    test_id: str
    user_id: str
    answers: Tuple[AnswerRecord, ...]
    score: int
    total_points: int
    total_questions: int
    correct_answers: int
    time_spent_seconds: int
    started_at: datetime
    submitted_at: datetime
    attempt_number: int = 0
    is_late: bool = False

    @property
    def percentage(self) -> float:
        return percentage_of(self.score, self.total_points)


@dataclass(frozen=True)
class AttemptTicket(SerializableMixin):
    """What a student receives when opening an assignment to take the test."""
    __serializable_fields__ = [
        "assignment_id", "test", "attempt_number", "max_attempts",
        "attempts_remaining", "due_date", "is_overdue", "time_limit_minutes",
    ]

    assignment_id: str
    test: Dict[str, Any]
    attempt_number: int
    max_attempts: int
    attempts_remaining: int
    due_date: Optional[datetime]
    is_overdue: bool
    time_limit_minutes: int


@dataclass(frozen=True)
class LearningModule(SerializableMixin):
    """
    Study material assigned to students alongside tests.

    A module carries only its descriptive content; file attachments are
    not stored.
    """
    __serializable_fields__ = ["id", "title", "description", "created_by", "created_at", "updated_at"]

    id: str
    title: str
    description: str
    created_by: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class ModuleAssignment(SerializableMixin):
    """
    Binding of a learning module to students.

    Attributes:
        id: Unique identifier
        module_id: The assigned module
        assigned_student_ids: Students expected to complete the module
        completions: Completion time per student; only assigned students appear
        due_date: Optional deadline
        is_active: False once the assignment has been soft-invalidated
    """
    __serializable_fields__ = [
        "id", "module_id", "assigned_student_ids", "completions", "due_date",
        "created_by", "created_at", "updated_at", "is_active",
    ]

    id: str
    module_id: str
    assigned_student_ids: FrozenSet[str]
    completions: Dict[str, datetime] = field(default_factory=dict)
    due_date: Optional[datetime] = None
    created_by: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    is_active: bool = True

    def is_assigned(self, user_id: str) -> bool:
        return user_id in self.assigned_student_ids

    def is_completed(self, user_id: str) -> bool:
        return user_id in self.completions


@dataclass(frozen=True)
class StudentModule(SerializableMixin):
    """A module as listed for one student, with that student's progress."""
    __serializable_fields__ = [
        "assignment_id", "module", "due_date", "is_overdue", "status", "completed_at",
    ]

    assignment_id: str
    module: LearningModule
    due_date: Optional[datetime]
    is_overdue: bool
    completed_at: Optional[datetime] = None

    @property
    def status(self) -> str:
        return "completed" if self.completed_at is not None else "assigned"
