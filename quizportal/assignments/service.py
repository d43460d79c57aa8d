"""
Assignment Manager

Binds published tests to students with an optional deadline and an attempt
cap. Every change to an existing assignment goes through the repository's
per-assignment atomic update, so concurrent edits never overwrite each
other's student sets.
"""

import dataclasses
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Set

from quizportal.common.events import (
    TEST_ASSIGNED,
    EventPublisher,
    LoggingEventPublisher,
    publish_safely,
)
from quizportal.common.exceptions import ConflictError, NotFoundError, ValidationError
from quizportal.common.logger import app_logger, log_execution_time
from quizportal.common.utils import ensure_utc, generate_id, utc_now
from quizportal.domain.models import Assignment, AssignmentPatch, MockTest
from quizportal.domain.repository import (
    AssignmentRepository,
    ResultRepository,
    TestRepository,
)

logger = app_logger.getChild("assignments.service")


def normalize_student_ids(student_ids: Optional[Iterable[str]]) -> frozenset:
    """Strip whitespace and drop blank and duplicate ids."""
    if not student_ids:
        return frozenset()
    return frozenset(
        sid.strip() for sid in student_ids
        if isinstance(sid, str) and sid.strip()
    )


def _check_max_attempts(max_attempts) -> None:
    if isinstance(max_attempts, bool) or not isinstance(max_attempts, int) or max_attempts < 1:
        raise ValidationError(
            "max_attempts must be at least 1",
            errors={"max_attempts": "Must be an integer of at least 1"},
        )


class AssignmentManager:
    """
    Creates and maintains assignments of tests to students.
    """

    def __init__(
        self,
        test_repository: TestRepository,
        assignment_repository: AssignmentRepository,
        result_repository: ResultRepository,
        event_publisher: Optional[EventPublisher] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the manager.

        Args:
            test_repository: Storage for tests
            assignment_repository: Storage for assignments
            result_repository: Storage for results, consulted before removing
                students or lowering the attempt cap
            event_publisher: Receives test.assigned notifications
            clock: Source of the current time
        """
        self._tests = test_repository
        self._assignments = assignment_repository
        self._results = result_repository
        self._events = event_publisher or LoggingEventPublisher()
        self._clock = clock

    async def _notify_assigned(self, assignment: Assignment, test: Optional[MockTest], student_ids: Iterable[str]) -> None:
        for user_id in sorted(student_ids):
            await publish_safely(self._events, TEST_ASSIGNED, {
                "assignment_id": assignment.id,
                "test_id": assignment.test_id,
                "test_title": test.title if test else None,
                "user_id": user_id,
                "due_date": assignment.due_date,
            })

    @log_execution_time(logger)
    async def assign(
        self,
        test_id: str,
        student_ids: Iterable[str],
        due_date: Optional[datetime] = None,
        max_attempts: int = 1,
        created_by: Optional[str] = None,
    ) -> Assignment:
        """
        Assign a published test to a set of students.

        Args:
            test_id: The test to assign
            student_ids: Students allowed to take it
            due_date: Optional deadline
            max_attempts: Attempts allowed per student
            created_by: The assigning administrator

        Returns:
            The new assignment

        Raises:
            NotFoundError: If the test does not exist
            ValidationError: If the test is unpublished, no students are given,
                or max_attempts is below 1
        """
        test = await self._tests.get(test_id)
        if test is None:
            raise NotFoundError("Test", test_id)
        if not test.is_published:
            raise ValidationError(
                "Only published tests can be assigned",
                errors={"test_id": "Test is not published"},
            )

        students = normalize_student_ids(student_ids)
        if not students:
            raise ValidationError(
                "At least one student is required",
                errors={"student_ids": "At least one student is required"},
            )
        _check_max_attempts(max_attempts)

        now = self._clock()
        assignment = await self._assignments.create(Assignment(
            id=generate_id(),
            test_id=test_id,
            assigned_student_ids=students,
            max_attempts=max_attempts,
            due_date=ensure_utc(due_date),
            created_by=created_by,
            created_at=now,
            updated_at=now,
        ))
        logger.info(f"Assigned test {test_id} to {len(students)} students as {assignment.id}")

        await self._notify_assigned(assignment, test, students)
        return assignment

    @log_execution_time(logger)
    async def update_assignment(self, assignment_id: str, patch: AssignmentPatch) -> Assignment:
        """
        Change the students, deadline or attempt cap of an assignment.

        Raises:
            NotFoundError: If the assignment does not exist
            ValidationError: If the change would leave no students or the cap is below 1
            ConflictError: If a removed student already has results, or the cap
                would drop below an attempt already made
        """
        if patch.max_attempts is not None:
            _check_max_attempts(patch.max_attempts)
        to_add = normalize_student_ids(patch.add_student_ids)
        to_remove = normalize_student_ids(patch.remove_student_ids)
        added: Set[str] = set()

        async def mutate(current: Assignment) -> Assignment:
            needs_history = bool(to_remove) or (
                patch.max_attempts is not None and patch.max_attempts < current.max_attempts
            )
            used = await self._results.max_attempt_numbers(current.id) if needs_history else {}

            blocked = to_remove & used.keys()
            if blocked:
                raise ConflictError(
                    "Students with submitted attempts cannot be removed",
                    details={"students_with_results": len(blocked)},
                )

            students = (current.assigned_student_ids | to_add) - to_remove
            if not students:
                raise ValidationError(
                    "An assignment must keep at least one student",
                    errors={"remove_student_ids": "Would remove every assigned student"},
                )

            max_attempts = current.max_attempts
            if patch.max_attempts is not None:
                highest = max(used.values(), default=0)
                if patch.max_attempts < highest:
                    raise ConflictError(
                        "max_attempts cannot be lower than attempts already made",
                        details={"highest_attempt_number": highest},
                    )
                max_attempts = patch.max_attempts

            due_date = current.due_date
            if patch.clear_due_date:
                due_date = None
            elif patch.due_date is not None:
                due_date = ensure_utc(patch.due_date)

            added.update(students - current.assigned_student_ids)
            return dataclasses.replace(
                current,
                assigned_student_ids=frozenset(students),
                max_attempts=max_attempts,
                due_date=due_date,
                updated_at=self._clock(),
            )

        updated = await self._assignments.update_atomic(assignment_id, mutate)
        logger.info(f"Updated assignment {assignment_id}")

        if added:
            await self._notify_assigned(updated, await self._tests.get(updated.test_id), added)
        return updated

    @log_execution_time(logger)
    async def reassign(self, assignment_id: str, student_ids: Iterable[str]) -> Assignment:
        """
        Add students to an existing assignment; already assigned students are kept.

        Raises:
            NotFoundError: If the assignment does not exist
            ValidationError: If no student ids are given
        """
        students = normalize_student_ids(student_ids)
        if not students:
            raise ValidationError(
                "At least one student is required",
                errors={"student_ids": "At least one student is required"},
            )

        updated, added = await self._assignments.add_students(assignment_id, students)
        logger.info(f"Reassigned {assignment_id}: {len(added)} new students")

        if added:
            await self._notify_assigned(updated, await self._tests.get(updated.test_id), added)
        return updated

    @log_execution_time(logger)
    async def deactivate(self, assignment_id: str) -> Assignment:
        """
        Soft-invalidate an assignment. Its results are kept.

        Raises:
            NotFoundError: If the assignment does not exist
        """
        async def mutate(current: Assignment) -> Assignment:
            if not current.is_active:
                return current
            return dataclasses.replace(current, is_active=False, updated_at=self._clock())

        updated = await self._assignments.update_atomic(assignment_id, mutate)
        logger.info(f"Deactivated assignment {assignment_id}")
        return updated

    async def get_assignment(self, assignment_id: str) -> Assignment:
        assignment = await self._assignments.get(assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment", assignment_id)
        return assignment

    async def list_for_student(self, user_id: str) -> List[Assignment]:
        """Active assignments that include the student."""
        return [a for a in await self._assignments.list_for_student(user_id) if a.is_active]

    async def list_for_test(self, test_id: str, include_inactive: bool = True) -> List[Assignment]:
        assignments = await self._assignments.list_for_test(test_id)
        if include_inactive:
            return assignments
        return [a for a in assignments if a.is_active]
