"""
SQL Repositories

SQLAlchemy implementations of the portal repositories. Every call runs in
its own session and transaction. Storage failures surface as
RepositoryError; unique-constraint violations surface as ConflictError.
"""

import dataclasses
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, FrozenSet, Iterable, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

from quizportal.common.exceptions import ConflictError, NotFoundError, RepositoryError
from quizportal.common.logger import app_logger
from quizportal.common.utils import percentage_of, utc_now
from quizportal.database.models import (
    AssignmentRecord,
    AssignmentStudentRecord,
    ModuleAssignmentRecord,
    ModuleAssignmentStudentRecord,
    ModuleRecord,
    ResultRecord,
    TestRecord,
)
from quizportal.domain.models import (
    AnswerRecord,
    Assignment,
    AttemptResult,
    LearningModule,
    MockTest,
    ModuleAssignment,
    Option,
    Question,
)
from quizportal.domain.repository import (
    CONCURRENT_SUBMISSION_MESSAGE,
    MAX_ATTEMPTS_MESSAGE,
    AssignmentMutation,
    AssignmentRepository,
    ModuleAssignmentMutation,
    ModuleAssignmentRepository,
    ModuleRepository,
    ResultRepository,
    TestRepository,
    check_attempt_available,
)

logger = app_logger.getChild("database.repositories")


def question_from_dict(data: Dict[str, Any]) -> Question:
    return Question(
        id=data["id"],
        text=data["text"],
        points=data.get("points", 1),
        explanation=data.get("explanation"),
        options=tuple(
            Option(id=o["id"], text=o["text"], is_correct=bool(o.get("is_correct", False)))
            for o in data.get("options", [])
        ),
    )


def test_from_record(record: TestRecord) -> MockTest:
    return MockTest(
        id=record.id,
        title=record.title,
        description=record.description,
        instructions=record.instructions,
        time_limit_minutes=record.time_limit_minutes,
        questions=tuple(question_from_dict(q) for q in record.questions),
        is_published=record.is_published,
        created_by=record.created_by,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def assignment_from_record(record: AssignmentRecord) -> Assignment:
    return Assignment(
        id=record.id,
        test_id=record.test_id,
        assigned_student_ids=frozenset(s.user_id for s in record.students),
        max_attempts=record.max_attempts,
        due_date=record.due_date,
        created_by=record.created_by,
        created_at=record.created_at,
        updated_at=record.updated_at,
        is_active=record.is_active,
    )


def result_from_record(record: ResultRecord) -> AttemptResult:
    """
    Build the domain result. The stored percentage column is only checked,
    never trusted: the domain value is always derived from score and total.
    """
    result = AttemptResult(
        id=record.id,
        assignment_id=record.assignment_id,
        test_id=record.test_id,
        user_id=record.user_id,
        attempt_number=record.attempt_number,
        answers=tuple(AnswerRecord(**a) for a in record.answers),
        score=record.score,
        total_points=record.total_points,
        total_questions=record.total_questions,
        correct_answers=record.correct_answers,
        time_spent_seconds=record.time_spent_seconds,
        started_at=record.started_at,
        submitted_at=record.submitted_at,
        is_late=record.is_late,
    )
    if record.percentage != result.percentage:
        logger.warning(
            f"Stored percentage {record.percentage} of result {record.id} differs from "
            f"derived {result.percentage}"
        )
    return result


def module_from_record(record: ModuleRecord) -> LearningModule:
    return LearningModule(
        id=record.id,
        title=record.title,
        description=record.description,
        created_by=record.created_by,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def module_assignment_from_record(record: ModuleAssignmentRecord) -> ModuleAssignment:
    return ModuleAssignment(
        id=record.id,
        module_id=record.module_id,
        assigned_student_ids=frozenset(s.user_id for s in record.students),
        completions={s.user_id: s.completed_at for s in record.students if s.completed_at is not None},
        due_date=record.due_date,
        created_by=record.created_by,
        created_at=record.created_at,
        updated_at=record.updated_at,
        is_active=record.is_active,
    )


def result_to_record(result: AttemptResult) -> ResultRecord:
    return ResultRecord(
        id=result.id,
        assignment_id=result.assignment_id,
        test_id=result.test_id,
        user_id=result.user_id,
        attempt_number=result.attempt_number,
        answers=[a.to_dict() for a in result.answers],
        score=result.score,
        total_points=result.total_points,
        percentage=percentage_of(result.score, result.total_points),
        total_questions=result.total_questions,
        correct_answers=result.correct_answers,
        time_spent_seconds=result.time_spent_seconds,
        started_at=result.started_at,
        submitted_at=result.submitted_at,
        is_late=result.is_late,
    )


class SQLRepository:
    """
    Shared session handling for the SQL repositories.
    """

    def __init__(self, session_factory: sessionmaker):
        """
        Initialize the repository with a session factory.

        Args:
            session_factory: SQLAlchemy session factory for creating database sessions
        """
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self, operation: str, conflict_message: str = "Record already exists") -> AsyncIterator[AsyncSession]:
        """
        Run a block in one transaction, committing on success.

        Args:
            operation: Description used in logs
            conflict_message: ConflictError message for constraint violations
        """
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except IntegrityError as e:
            logger.warning(f"Constraint violation during {operation}: {e.orig}")
            raise ConflictError(conflict_message) from e
        except SQLAlchemyError as e:
            logger.error(f"Database error during {operation}: {e}", exc_info=True)
            raise RepositoryError(f"Storage unavailable during {operation}", original_exception=e) from e


class SQLTestRepository(SQLRepository, TestRepository):
    """
    SQLAlchemy implementation of the TestRepository.
    """

    async def get(self, test_id: str) -> Optional[MockTest]:
        async with self._transaction("get test") as session:
            record = await session.get(TestRecord, test_id)
            return test_from_record(record) if record else None

    async def save(self, test: MockTest) -> MockTest:
        async with self._transaction("save test") as session:
            record = await session.get(TestRecord, test.id)
            if record is None:
                record = TestRecord(id=test.id, created_at=test.created_at)
                session.add(record)
            record.title = test.title
            record.description = test.description
            record.instructions = test.instructions
            record.time_limit_minutes = test.time_limit_minutes
            record.questions = [q.to_dict() for q in test.questions]
            record.total_points = test.total_points
            record.is_published = test.is_published
            record.created_by = test.created_by
            record.updated_at = test.updated_at
        return test

    async def list(self, published_only: bool = False) -> List[MockTest]:
        async with self._transaction("list tests") as session:
            stmt = select(TestRecord).order_by(TestRecord.created_at, TestRecord.id)
            if published_only:
                stmt = stmt.where(TestRecord.is_published.is_(True))
            records = (await session.execute(stmt)).scalars().all()
            return [test_from_record(r) for r in records]


class SQLAssignmentRepository(SQLRepository, AssignmentRepository):
    """
    SQLAlchemy implementation of the AssignmentRepository.

    update_atomic locks the assignment row (SELECT ... FOR UPDATE) for the
    duration of the read-modify-write.
    """

    async def get(self, assignment_id: str) -> Optional[Assignment]:
        async with self._transaction("get assignment") as session:
            record = await session.get(AssignmentRecord, assignment_id)
            return assignment_from_record(record) if record else None

    async def create(self, assignment: Assignment) -> Assignment:
        async with self._transaction("create assignment", conflict_message="Assignment already exists") as session:
            record = AssignmentRecord(
                id=assignment.id,
                test_id=assignment.test_id,
                max_attempts=assignment.max_attempts,
                due_date=assignment.due_date,
                is_active=assignment.is_active,
                created_by=assignment.created_by,
                created_at=assignment.created_at,
                updated_at=assignment.updated_at,
                students=[
                    AssignmentStudentRecord(user_id=user_id)
                    for user_id in sorted(assignment.assigned_student_ids)
                ],
            )
            session.add(record)
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
        async with self._transaction("update assignment") as session:
            stmt = (
                select(AssignmentRecord)
                .where(AssignmentRecord.id == assignment_id)
                .with_for_update()
            )
            record = (await session.execute(stmt)).scalar_one_or_none()
            if record is None:
                raise NotFoundError("Assignment", assignment_id)

            updated = await mutate(assignment_from_record(record))

            record.max_attempts = updated.max_attempts
            record.due_date = updated.due_date
            record.is_active = updated.is_active
            record.updated_at = updated.updated_at

            current_ids = {s.user_id for s in record.students}
            record.students = [
                s for s in record.students if s.user_id in updated.assigned_student_ids
            ] + [
                AssignmentStudentRecord(user_id=user_id)
                for user_id in sorted(updated.assigned_student_ids - current_ids)
            ]
        return updated

    async def _list(self, operation: str, *criteria) -> List[Assignment]:
        async with self._transaction(operation) as session:
            stmt = (
                select(AssignmentRecord)
                .where(*criteria)
                .order_by(AssignmentRecord.created_at, AssignmentRecord.id)
            )
            records = (await session.execute(stmt)).scalars().all()
            return [assignment_from_record(r) for r in records]

    async def list_for_test(self, test_id: str) -> List[Assignment]:
        return await self._list("list assignments for test", AssignmentRecord.test_id == test_id)

    async def list_for_student(self, user_id: str) -> List[Assignment]:
        members = select(AssignmentStudentRecord.assignment_id).where(
            AssignmentStudentRecord.user_id == user_id
        )
        return await self._list("list assignments for student", AssignmentRecord.id.in_(members))

    async def list_all(self) -> List[Assignment]:
        return await self._list("list assignments")


class SQLResultRepository(SQLRepository, ResultRepository):
    """
    SQLAlchemy implementation of the ResultRepository.

    The assignment row is read FOR SHARE in the same transaction as the
    attempt count and the insert, which blocks assignment updates until the
    insert commits. The unique constraint on (user_id, assignment_id,
    attempt_number) rejects the loser of two concurrent inserts.
    """

    async def insert_if_attempt_available(self, result: AttemptResult) -> AttemptResult:
        async with self._transaction("insert result", conflict_message=MAX_ATTEMPTS_MESSAGE) as session:
            record = (await session.execute(
                select(AssignmentRecord)
                .where(AssignmentRecord.id == result.assignment_id)
                .with_for_update(read=True)
            )).scalar_one_or_none()
            assignment = assignment_from_record(record) if record else None

            used = await session.scalar(
                select(func.count())
                .select_from(ResultRecord)
                .where(
                    ResultRecord.user_id == result.user_id,
                    ResultRecord.assignment_id == result.assignment_id,
                )
            )
            check_attempt_available(assignment, result.assignment_id, result.user_id, used)

            stored = dataclasses.replace(result, attempt_number=used + 1)
            session.add(result_to_record(stored))
            try:
                await session.flush()
            except IntegrityError as e:
                logger.warning(f"Attempt {stored.attempt_number} of assignment {stored.assignment_id} already taken: {e.orig}")
                message = (
                    CONCURRENT_SUBMISSION_MESSAGE
                    if stored.attempt_number < assignment.max_attempts
                    else MAX_ATTEMPTS_MESSAGE
                )
                raise ConflictError(message, details={"max_attempts": assignment.max_attempts}) from e

        logger.debug(f"Stored attempt {stored.attempt_number} for assignment {stored.assignment_id}")
        return stored

    async def get(self, result_id: str) -> Optional[AttemptResult]:
        async with self._transaction("get result") as session:
            record = await session.get(ResultRecord, result_id)
            return result_from_record(record) if record else None

    async def count_attempts(self, user_id: str, assignment_id: str) -> int:
        async with self._transaction("count attempts") as session:
            return await session.scalar(
                select(func.count())
                .select_from(ResultRecord)
                .where(ResultRecord.user_id == user_id, ResultRecord.assignment_id == assignment_id)
            )

    async def max_attempt_numbers(self, assignment_id: str) -> Dict[str, int]:
        async with self._transaction("max attempt numbers") as session:
            rows = await session.execute(
                select(ResultRecord.user_id, func.max(ResultRecord.attempt_number))
                .where(ResultRecord.assignment_id == assignment_id)
                .group_by(ResultRecord.user_id)
            )
            return {user_id: highest for user_id, highest in rows.all()}

    async def _list(self, operation: str, *criteria) -> List[AttemptResult]:
        async with self._transaction(operation) as session:
            stmt = (
                select(ResultRecord)
                .where(*criteria)
                .order_by(ResultRecord.submitted_at, ResultRecord.attempt_number, ResultRecord.id)
            )
            records = (await session.execute(stmt)).scalars().all()
            return [result_from_record(r) for r in records]

    async def list_for_assignment(self, assignment_id: str, user_id: Optional[str] = None) -> List[AttemptResult]:
        criteria = [ResultRecord.assignment_id == assignment_id]
        if user_id is not None:
            criteria.append(ResultRecord.user_id == user_id)
        return await self._list("list results for assignment", *criteria)

    async def list_for_test(self, test_id: str) -> List[AttemptResult]:
        return await self._list("list results for test", ResultRecord.test_id == test_id)

    async def list_for_user(self, user_id: str) -> List[AttemptResult]:
        return await self._list("list results for user", ResultRecord.user_id == user_id)

    async def list_all(self) -> List[AttemptResult]:
        return await self._list("list results")


class SQLModuleRepository(SQLRepository, ModuleRepository):
    """
    SQLAlchemy implementation of the ModuleRepository.
    """

    async def get(self, module_id: str) -> Optional[LearningModule]:
        async with self._transaction("get module") as session:
            record = await session.get(ModuleRecord, module_id)
            return module_from_record(record) if record else None

    async def save(self, module: LearningModule) -> LearningModule:
        async with self._transaction("save module") as session:
            record = await session.get(ModuleRecord, module.id)
            if record is None:
                record = ModuleRecord(id=module.id, created_at=module.created_at)
                session.add(record)
            record.title = module.title
            record.description = module.description
            record.created_by = module.created_by
            record.updated_at = module.updated_at
        return module

    async def list(self) -> List[LearningModule]:
        async with self._transaction("list modules") as session:
            stmt = select(ModuleRecord).order_by(ModuleRecord.created_at, ModuleRecord.id)
            records = (await session.execute(stmt)).scalars().all()
            return [module_from_record(r) for r in records]


class SQLModuleAssignmentRepository(SQLRepository, ModuleAssignmentRepository):
    """
    SQLAlchemy implementation of the ModuleAssignmentRepository.

    Completion times live on the membership rows.
    """

    async def get(self, assignment_id: str) -> Optional[ModuleAssignment]:
        async with self._transaction("get module assignment") as session:
            record = await session.get(ModuleAssignmentRecord, assignment_id)
            return module_assignment_from_record(record) if record else None

    async def create(self, assignment: ModuleAssignment) -> ModuleAssignment:
        async with self._transaction("create module assignment", conflict_message="Module assignment already exists") as session:
            session.add(ModuleAssignmentRecord(
                id=assignment.id,
                module_id=assignment.module_id,
                due_date=assignment.due_date,
                is_active=assignment.is_active,
                created_by=assignment.created_by,
                created_at=assignment.created_at,
                updated_at=assignment.updated_at,
                students=[
                    ModuleAssignmentStudentRecord(
                        user_id=user_id,
                        completed_at=assignment.completions.get(user_id),
                    )
                    for user_id in sorted(assignment.assigned_student_ids)
                ],
            ))
        return assignment

    async def update_atomic(self, assignment_id: str, mutate: ModuleAssignmentMutation) -> ModuleAssignment:
        async with self._transaction("update module assignment") as session:
            stmt = (
                select(ModuleAssignmentRecord)
                .where(ModuleAssignmentRecord.id == assignment_id)
                .with_for_update()
            )
            record = (await session.execute(stmt)).scalar_one_or_none()
            if record is None:
                raise NotFoundError("Module assignment", assignment_id)

            updated = await mutate(module_assignment_from_record(record))

            record.due_date = updated.due_date
            record.is_active = updated.is_active
            record.updated_at = updated.updated_at

            kept = [s for s in record.students if s.user_id in updated.assigned_student_ids]
            for member in kept:
                member.completed_at = updated.completions.get(member.user_id)
            current_ids = {s.user_id for s in kept}
            record.students = kept + [
                ModuleAssignmentStudentRecord(user_id=user_id, completed_at=updated.completions.get(user_id))
                for user_id in sorted(updated.assigned_student_ids - current_ids)
            ]
        return updated

    async def _list(self, operation: str, *criteria) -> List[ModuleAssignment]:
        async with self._transaction(operation) as session:
            stmt = (
                select(ModuleAssignmentRecord)
                .where(*criteria)
                .order_by(ModuleAssignmentRecord.created_at, ModuleAssignmentRecord.id)
            )
            records = (await session.execute(stmt)).scalars().all()
            return [module_assignment_from_record(r) for r in records]

    async def list_for_module(self, module_id: str) -> List[ModuleAssignment]:
        return await self._list("list module assignments", ModuleAssignmentRecord.module_id == module_id)

    async def list_for_student(self, user_id: str) -> List[ModuleAssignment]:
        members = select(ModuleAssignmentStudentRecord.assignment_id).where(
            ModuleAssignmentStudentRecord.user_id == user_id
        )
        return await self._list("list module assignments for student", ModuleAssignmentRecord.id.in_(members))

    async def list_all(self) -> List[ModuleAssignment]:
        return await self._list("list module assignments")
