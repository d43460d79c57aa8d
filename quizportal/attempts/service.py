"""
Attempt/Scoring Engine

Validates a student's submission against its assignment, grades it and
stores the immutable result. The attempt cap is checked up front for a fast
answer and enforced again by the result repository, which re-reads the
assignment, numbers the attempt and inserts it as a single atomic step.
"""

from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional, Tuple

from quizportal.attempts.grading import grade
from quizportal.common.events import (
    TEST_COMPLETED,
    EventPublisher,
    LoggingEventPublisher,
    publish_safely,
)
from quizportal.common.exceptions import ForbiddenError, NotFoundError, ValidationError
from quizportal.common.logger import LoggerAdapter, app_logger, log_execution_time
from quizportal.common.utils import ensure_utc, generate_id, utc_now
from quizportal.config import Settings, get_settings
from quizportal.domain.models import (
    AnswerSubmission,
    Assignment,
    AttemptResult,
    AttemptTicket,
    MockTest,
)
from quizportal.domain.repository import (
    AssignmentRepository,
    ResultRepository,
    TestRepository,
    check_attempt_available,
)

logger = app_logger.getChild("attempts.service")

DEADLINE_PASSED_MESSAGE = "Test submission deadline has passed"


class AttemptService:
    """
    Accepts, grades and stores test attempts.
    """

    def __init__(
        self,
        test_repository: TestRepository,
        assignment_repository: AssignmentRepository,
        result_repository: ResultRepository,
        event_publisher: Optional[EventPublisher] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._tests = test_repository
        self._assignments = assignment_repository
        self._results = result_repository
        self._events = event_publisher or LoggingEventPublisher()
        self._settings = settings or get_settings()
        self._clock = clock

    async def _load(self, assignment_id: str) -> Tuple[Assignment, MockTest]:
        assignment = await self._assignments.get(assignment_id)
        if assignment is None or not assignment.is_active:
            raise NotFoundError("Assignment", assignment_id)
        test = await self._tests.get(assignment.test_id)
        if test is None or not test.is_published:
            raise NotFoundError("Test", assignment.test_id)
        return assignment, test

    async def _check_eligibility(self, assignment: Assignment, user_id: str) -> int:
        """Return the attempts already used after the assignment and cap checks."""
        used = await self._results.count_attempts(user_id, assignment.id)
        check_attempt_available(assignment, assignment.id, user_id, used)
        return used

    def _is_late(self, assignment: Assignment, now: datetime) -> bool:
        late = assignment.is_overdue(now)
        if late and self._settings.REJECT_LATE_SUBMISSIONS:
            raise ForbiddenError(DEADLINE_PASSED_MESSAGE)
        return late

    @log_execution_time(logger)
    async def submit(
        self,
        assignment_id: str,
        user_id: str,
        answers: Iterable[AnswerSubmission],
        time_spent_seconds: int,
        started_at: Optional[datetime] = None,
    ) -> AttemptResult:
        """
        Grade and store one attempt.

        Args:
            assignment_id: The assignment being attempted
            user_id: The submitting student
            answers: Selected options; questions left out count as unanswered
            time_spent_seconds: Time the student spent on the attempt
            started_at: When the attempt started; derived from the time spent
                when omitted

        Returns:
            The stored result with its attempt number

        Raises:
            NotFoundError: If the assignment is missing or inactive, or its
                test is missing or unpublished
            ForbiddenError: If the student is not assigned, or the deadline
                passed while late submissions are rejected
            ConflictError: If every allowed attempt has been used
            ValidationError: If the answers or time spent are malformed
        """
        log = LoggerAdapter(logger).with_context(assignment_id=assignment_id, user_id=user_id)

        assignment, test = await self._load(assignment_id)
        await self._check_eligibility(assignment, user_id)

        graded = grade(test, list(answers))
        if isinstance(time_spent_seconds, bool) or not isinstance(time_spent_seconds, int) or time_spent_seconds < 0:
            raise ValidationError(
                "Time spent must be a non-negative number of seconds",
                errors={"time_spent_seconds": "Must be an integer of at least 0"},
            )

        now = self._clock()
        is_late = self._is_late(assignment, now)

        result = AttemptResult(
            id=generate_id(),
            assignment_id=assignment.id,
            test_id=test.id,
            user_id=user_id,
            answers=graded.answers,
            score=graded.score,
            total_points=graded.total_points,
            total_questions=graded.total_questions,
            correct_answers=graded.correct_answers,
            time_spent_seconds=time_spent_seconds,
            started_at=ensure_utc(started_at) or now - timedelta(seconds=time_spent_seconds),
            submitted_at=now,
            is_late=is_late,
        )
        stored = await self._results.insert_if_attempt_available(result)
        log.info(
            f"Attempt {stored.attempt_number} scored "
            f"{stored.score}/{stored.total_points} ({stored.percentage}%)"
            + (" late" if stored.is_late else "")
        )

        await publish_safely(self._events, TEST_COMPLETED, {
            "result_id": stored.id,
            "assignment_id": stored.assignment_id,
            "test_id": stored.test_id,
            "test_title": test.title,
            "user_id": stored.user_id,
            "attempt_number": stored.attempt_number,
            "score": stored.score,
            "total_points": stored.total_points,
            "percentage": stored.percentage,
            "is_late": stored.is_late,
        })
        return stored

    async def prepare_attempt(self, assignment_id: str, user_id: str) -> AttemptTicket:
        """
        Open an assignment for taking: the test without its answer key and
        the student's attempt allowance.

        Raises:
            NotFoundError, ForbiddenError, ConflictError: As for submit
        """
        assignment, test = await self._load(assignment_id)
        used = await self._check_eligibility(assignment, user_id)
        is_overdue = self._is_late(assignment, self._clock())

        return AttemptTicket(
            assignment_id=assignment.id,
            test=test.to_student_dict(),
            attempt_number=used + 1,
            max_attempts=assignment.max_attempts,
            attempts_remaining=assignment.max_attempts - used,
            due_date=assignment.due_date,
            is_overdue=is_overdue,
            time_limit_minutes=test.time_limit_minutes,
        )

    async def list_results_for_user(self, user_id: str) -> List[AttemptResult]:
        return await self._results.list_for_user(user_id)

    async def list_results_for_assignment(
        self,
        assignment_id: str,
        user_id: Optional[str] = None,
    ) -> List[AttemptResult]:
        """
        Raises:
            NotFoundError: If the assignment does not exist
        """
        if await self._assignments.get(assignment_id) is None:
            raise NotFoundError("Assignment", assignment_id)
        return await self._results.list_for_assignment(assignment_id, user_id=user_id)

    async def get_result(self, result_id: str) -> AttemptResult:
        result = await self._results.get(result_id)
        if result is None:
            raise NotFoundError("Result", result_id)
        return result
