"""
Portal Repository Module

This module defines the storage contracts the portal core depends on, for
tests, assignments and results as well as learning modules. The
services never reach around these interfaces; concrete implementations live
in `memory_repository` (development and tests) and `quizportal.database`
(SQLAlchemy).
"""

import abc
from typing import Awaitable, Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple

from quizportal.common.exceptions import ConflictError, ForbiddenError, NotFoundError

from .models import (
    Assignment,
    AttemptResult,
    LearningModule,
    MockTest,
    ModuleAssignment,
)

AssignmentMutation = Callable[[Assignment], Awaitable[Assignment]]
ModuleAssignmentMutation = Callable[[ModuleAssignment], Awaitable[ModuleAssignment]]

MAX_ATTEMPTS_MESSAGE = "Maximum attempts reached for this test"
CONCURRENT_SUBMISSION_MESSAGE = "Concurrent submission detected, please retry"
NOT_ASSIGNED_MESSAGE = "You are not assigned to this test"


def check_attempt_available(assignment: Optional[Assignment], assignment_id: str, user_id: str, used: int) -> None:
    """
    Raise unless `user_id` may make one more attempt on the assignment.

    Raises:
        NotFoundError: If the assignment is missing or inactive
        ForbiddenError: If the user is not assigned
        ConflictError: If `used` already reaches the attempt cap
    """
    if assignment is None or not assignment.is_active:
        raise NotFoundError("Assignment", assignment_id)
    if not assignment.is_assigned(user_id):
        raise ForbiddenError(NOT_ASSIGNED_MESSAGE)
    if used >= assignment.max_attempts:
        raise ConflictError(MAX_ATTEMPTS_MESSAGE, details={"max_attempts": assignment.max_attempts})


class TestRepository(abc.ABC):
    """
    Storage contract for MockTest entities.
    """
    __test__ = False

    @abc.abstractmethod
    async def get(self, test_id: str) -> Optional[MockTest]:
        """
        Get a test by its ID.

        Args:
            test_id: The ID of the test to retrieve

        Returns:
            The MockTest if found, None otherwise
        """
        pass

    @abc.abstractmethod
    async def save(self, test: MockTest) -> MockTest:
        """
        Create or replace a test.

        Args:
            test: The MockTest to save

        Returns:
            The saved MockTest
        """
        pass

    @abc.abstractmethod
    async def list(self, published_only: bool = False) -> List[MockTest]:
        """
        List tests, oldest first.

        Args:
            published_only: Whether to return published tests only
        """
        pass


class AssignmentRepository(abc.ABC):
    """
    Storage contract for Assignment entities.

    Every mutation of an existing assignment is serialized per assignment id
    so concurrent updates cannot lose each other's changes.
    """

    @abc.abstractmethod
    async def get(self, assignment_id: str) -> Optional[Assignment]:
        pass

    @abc.abstractmethod
    async def create(self, assignment: Assignment) -> Assignment:
        pass

    @abc.abstractmethod
    async def add_students(self, assignment_id: str, student_ids: Iterable[str]) -> Tuple[Assignment, FrozenSet[str]]:
        """
        Atomically union student ids into an assignment.

        Returns:
            The updated assignment and the ids that were not assigned before

        Raises:
            NotFoundError: If the assignment does not exist
        """
        pass

    @abc.abstractmethod
    async def update_atomic(self, assignment_id: str, mutate: AssignmentMutation) -> Assignment:
        """
        Apply a read-modify-write to one assignment under its lock.

        `mutate` receives the current assignment and returns the replacement.
        If it raises, nothing is written and the exception propagates.

        Raises:
            NotFoundError: If the assignment does not exist
        """
        pass

    @abc.abstractmethod
    async def list_for_test(self, test_id: str) -> List[Assignment]:
        pass

    @abc.abstractmethod
    async def list_for_student(self, user_id: str) -> List[Assignment]:
        pass

    @abc.abstractmethod
    async def list_all(self) -> List[Assignment]:
        pass


class ResultRepository(abc.ABC):
    """
    Storage contract for AttemptResult entities. Results are insert-only.
    """

    @abc.abstractmethod
    async def insert_if_attempt_available(self, result: AttemptResult) -> AttemptResult:
        """
        Assign the next attempt number and insert the result as one atomic unit.

        The assignment is read inside the same unit, so a concurrent change
        of its attempt cap, student set or active flag is always seen. The
        attempt number is 1 + the number of stored results for
        (result.user_id, result.assignment_id).

        Args:
            result: The graded result; its attempt_number is ignored

        Returns:
            The stored result carrying its attempt number

        Raises:
            NotFoundError: If the assignment is missing or inactive
            ForbiddenError: If the user is no longer assigned
            ConflictError: If the attempt cap is reached, or a concurrent
                insert claimed the same attempt number
        """
        pass

    @abc.abstractmethod
    async def get(self, result_id: str) -> Optional[AttemptResult]:
        pass

    @abc.abstractmethod
    async def count_attempts(self, user_id: str, assignment_id: str) -> int:
        pass

    @abc.abstractmethod
    async def max_attempt_numbers(self, assignment_id: str) -> Dict[str, int]:
        """Map of user id to that user's highest attempt number on the assignment."""
        pass

    @abc.abstractmethod
    async def list_for_assignment(self, assignment_id: str, user_id: Optional[str] = None) -> List[AttemptResult]:
        pass

    @abc.abstractmethod
    async def list_for_test(self, test_id: str) -> List[AttemptResult]:
        pass

    @abc.abstractmethod
    async def list_for_user(self, user_id: str) -> List[AttemptResult]:
        pass

    @abc.abstractmethod
    async def list_all(self) -> List[AttemptResult]:
        pass


class ModuleRepository(abc.ABC):
    """
    Storage contract for LearningModule entities.
    """

    @abc.abstractmethod
    async def get(self, module_id: str) -> Optional[LearningModule]:
        pass

    @abc.abstractmethod
    async def save(self, module: LearningModule) -> LearningModule:
        """Create or replace a module."""
        pass

    @abc.abstractmethod
    async def list(self) -> List[LearningModule]:
        """List modules, oldest first."""
        pass


class ModuleAssignmentRepository(abc.ABC):
    """
    Storage contract for ModuleAssignment entities.

    Mutations are serialized per assignment id, like test assignments.
    """

    @abc.abstractmethod
    async def get(self, assignment_id: str) -> Optional[ModuleAssignment]:
        pass

    @abc.abstractmethod
    async def create(self, assignment: ModuleAssignment) -> ModuleAssignment:
        pass

    @abc.abstractmethod
    async def update_atomic(self, assignment_id: str, mutate: ModuleAssignmentMutation) -> ModuleAssignment:
        """
        Apply a read-modify-write to one module assignment under its lock.

        Raises:
            NotFoundError: If the assignment does not exist
        """
        pass

    @abc.abstractmethod
    async def list_for_module(self, module_id: str) -> List[ModuleAssignment]:
        pass

    @abc.abstractmethod
    async def list_for_student(self, user_id: str) -> List[ModuleAssignment]:
        pass

    @abc.abstractmethod
    async def list_all(self) -> List[ModuleAssignment]:
        pass


def sort_results(results: Iterable[AttemptResult]) -> List[AttemptResult]:
    """Order results oldest first; attempt number breaks submission-time ties."""
    return sorted(results, key=result_order_key)


def result_order_key(result: AttemptResult) -> Tuple:
    return (result.submitted_at, result.attempt_number, result.id)
