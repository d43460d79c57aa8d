"""
Memory Repository Module

In-memory implementations of the portal repositories, intended for
development and testing. Atomicity is provided by asyncio locks, one per
assignment id. Attempt insertion takes the lock of its assignment, so it
is serialized with every mutation of that assignment.

Locks are created on first use and never discarded; the maps grow by one
entry per assignment ever touched, which is fine for the process lifetimes
this storage is meant for.
"""

import asyncio
import dataclasses
from collections import defaultdict
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from quizportal.common.exceptions import ConflictError, NotFoundError
from quizportal.common.logger import app_logger
from quizportal.common.utils import utc_now

from .models import Assignment, AttemptResult, LearningModule, MockTest, ModuleAssignment
from .repository import (
    AssignmentMutation,
    AssignmentRepository,
    ModuleAssignmentMutation,
    ModuleAssignmentRepository,
    ModuleRepository,
    ResultRepository,
    TestRepository,
    check_attempt_available,
    sort_results,
)

logger = app_logger.getChild("domain.memory_repository")


class MemoryTestRepository(TestRepository):
    """
    In-memory implementation of the TestRepository.
    """

    def __init__(self, initial_data: Optional[List[MockTest]] = None):
        self._tests: Dict[str, MockTest] = {}
        for test in initial_data or []:
            self._tests[test.id] = test

    async def get(self, test_id: str) -> Optional[MockTest]:
        return self._tests.get(test_id)

    async def save(self, test: MockTest) -> MockTest:
        self._tests[test.id] = test
        return test

    async def list(self, published_only: bool = False) -> List[MockTest]:
        tests = sorted(self._tests.values(), key=lambda t: (t.created_at, t.id))
        if published_only:
            tests = [test for test in tests if test.is_published]
        return tests

    def clear(self) -> None:
        """Clear all tests. Specific to the memory implementation."""
        self._tests.clear()


class MemoryAssignmentRepository(AssignmentRepository):
    """
    In-memory implementation of the AssignmentRepository.
    """

    def __init__(self, initial_data: Optional[List[Assignment]] = None):
        self._assignments: Dict[str, Assignment] = {}
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        for assignment in initial_data or []:
            self._assignments[assignment.id] = assignment

    def lock_for(self, assignment_id: str) -> asyncio.Lock:
        """The lock serializing every change that depends on one assignment."""
        return self._locks[assignment_id]

    async def get(self, assignment_id: str) -> Optional[Assignment]:
        return self._assignments.get(assignment_id)

    async def create(self, assignment: Assignment) -> Assignment:
        if assignment.id in self._assignments:
            raise ConflictError("Assignment already exists")
        self._assignments[assignment.id] = assignment
        return assignment

    async def add_students(self, assignment_id: str, student_ids: Iterable[str]) -> Tuple[Assignment, FrozenSet[str]]:
        new_ids = frozenset(student_ids)
        added: List[FrozenSet[str]] = []

        async def union(current: Assignment) -> Assignment:
            added.append(new_ids - current.assigned_student_ids)
            return dataclasses.replace(
                current,
                assigned_student_ids=current.assigned_student_ids | new_ids,
                updated_at=utc_now(),
            )

        updated = await self.update_atomic(assignment_id, union)
        return updated, added[-1]

    async def update_atomic(self, assignment_id: str, mutate: AssignmentMutation) -> Assignment:
        async with self.lock_for(assignment_id):
            current = self._assignments.get(assignment_id)
            if current is None:
                raise NotFoundError("Assignment", assignment_id)
            updated = await mutate(current)
            self._assignments[assignment_id] = updated
            return updated

    async def list_for_test(self, test_id: str) -> List[Assignment]:
        return [a for a in self._ordered() if a.test_id == test_id]

    async def list_for_student(self, user_id: str) -> List[Assignment]:
        return [a for a in self._ordered() if user_id in a.assigned_student_ids]

    async def list_all(self) -> List[Assignment]:
        return self._ordered()

    def _ordered(self) -> List[Assignment]:
        return sorted(self._assignments.values(), key=lambda a: (a.created_at, a.id))


class MemoryResultRepository(ResultRepository):
    """
    In-memory implementation of the ResultRepository.

    Inserts re-read the assignment from `assignment_repository` while
    holding that assignment's lock.
    """

    def __init__(self, assignment_repository: MemoryAssignmentRepository):
        self._assignments = assignment_repository
        self._results: Dict[str, AttemptResult] = {}

    async def insert_if_attempt_available(self, result: AttemptResult) -> AttemptResult:
        async with self._assignments.lock_for(result.assignment_id):
            assignment = await self._assignments.get(result.assignment_id)
            used = await self.count_attempts(result.user_id, result.assignment_id)
            check_attempt_available(assignment, result.assignment_id, result.user_id, used)

            stored = dataclasses.replace(result, attempt_number=used + 1)
            self._results[stored.id] = stored
            logger.debug(f"Stored attempt {stored.attempt_number} for assignment {stored.assignment_id}")
            return stored

    async def get(self, result_id: str) -> Optional[AttemptResult]:
        return self._results.get(result_id)

    async def count_attempts(self, user_id: str, assignment_id: str) -> int:
        return sum(
            1 for r in self._results.values()
            if r.user_id == user_id and r.assignment_id == assignment_id
        )

    async def max_attempt_numbers(self, assignment_id: str) -> Dict[str, int]:
        highest: Dict[str, int] = {}
        for r in self._results.values():
            if r.assignment_id == assignment_id:
                highest[r.user_id] = max(highest.get(r.user_id, 0), r.attempt_number)
        return highest

    async def list_for_assignment(self, assignment_id: str, user_id: Optional[str] = None) -> List[AttemptResult]:
        return sort_results(
            r for r in self._results.values()
            if r.assignment_id == assignment_id and (user_id is None or r.user_id == user_id)
        )

    async def list_for_test(self, test_id: str) -> List[AttemptResult]:
        return sort_results(r for r in self._results.values() if r.test_id == test_id)

    async def list_for_user(self, user_id: str) -> List[AttemptResult]:
        return sort_results(r for r in self._results.values() if r.user_id == user_id)

    async def list_all(self) -> List[AttemptResult]:
        return sort_results(self._results.values())


class MemoryModuleRepository(ModuleRepository):

    def __init__(self):
        self._modules: Dict[str, LearningModule] = {}

    async def get(self, module_id: str) -> Optional[LearningModule]:
        return self._modules.get(module_id)

    async def save(self, module: LearningModule) -> LearningModule:
        self._modules[module.id] = module
        return module

    async def list(self) -> List[LearningModule]:
        return sorted(self._modules.values(), key=lambda m: (m.created_at, m.id))


class MemoryModuleAssignmentRepository(ModuleAssignmentRepository):
    """
    In-memory implementation of the ModuleAssignmentRepository.
    """

    def __init__(self):
        self._assignments: Dict[str, ModuleAssignment] = {}
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def get(self, assignment_id: str) -> Optional[ModuleAssignment]:
        return self._assignments.get(assignment_id)

    async def create(self, assignment: ModuleAssignment) -> ModuleAssignment:
        if assignment.id in self._assignments:
            raise ConflictError("Module assignment already exists")
        self._assignments[assignment.id] = assignment
        return assignment

    async def update_atomic(self, assignment_id: str, mutate: ModuleAssignmentMutation) -> ModuleAssignment:
        async with self._locks[assignment_id]:
            current = self._assignments.get(assignment_id)
            if current is None:
                raise NotFoundError("Module assignment", assignment_id)
            updated = await mutate(current)
            self._assignments[assignment_id] = updated
            return updated

    async def list_for_module(self, module_id: str) -> List[ModuleAssignment]:
        return [a for a in self._ordered() if a.module_id == module_id]

    async def list_for_student(self, user_id: str) -> List[ModuleAssignment]:
        return [a for a in self._ordered() if a.is_assigned(user_id)]

    async def list_all(self) -> List[ModuleAssignment]:
        return self._ordered()

    def _ordered(self) -> List[ModuleAssignment]:
        return sorted(self._assignments.values(), key=lambda a: (a.created_at, a.id))
