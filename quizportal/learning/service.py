"""
Service layer for learning modules.

Modules are assigned per module rather than per assignment: assigning a
module again adds the students to its active assignment. Students mark
their own assignment complete once; completion times feed the module
analytics.
"""

import dataclasses
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from quizportal.assignments.service import normalize_student_ids
from quizportal.common.events import (
    MODULE_ASSIGNED,
    EventPublisher,
    LoggingEventPublisher,
    publish_safely,
)
from quizportal.common.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from quizportal.common.logger import LoggerAdapter, app_logger, log_execution_time
from quizportal.common.utils import ensure_utc, generate_id, utc_now
from quizportal.domain.models import LearningModule, ModuleAssignment, StudentModule
from quizportal.domain.repository import ModuleAssignmentRepository, ModuleRepository

logger = app_logger.getChild("learning.service")

TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500


def validate_module(module: LearningModule) -> None:
    """
    Raises:
        ValidationError: With every violated rule keyed by field name
    """
    errors: Dict[str, str] = {}
    if not module.title or not module.title.strip():
        errors["title"] = "Module title is required"
    elif len(module.title) > TITLE_MAX_LENGTH:
        errors["title"] = f"Title cannot exceed {TITLE_MAX_LENGTH} characters"

    if not module.description or not module.description.strip():
        errors["description"] = "Module description is required"
    elif len(module.description) > DESCRIPTION_MAX_LENGTH:
        errors["description"] = f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters"

    if errors:
        raise ValidationError("Module is invalid", errors=errors)


class ModuleService:
    """
    Creates modules, assigns them and records completions.
    """

    def __init__(
        self,
        module_repository: ModuleRepository,
        assignment_repository: ModuleAssignmentRepository,
        event_publisher: Optional[EventPublisher] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._modules = module_repository
        self._assignments = assignment_repository
        self._events = event_publisher or LoggingEventPublisher()
        self._clock = clock

    async def _require(self, module_id: str) -> LearningModule:
        module = await self._modules.get(module_id)
        if module is None:
            raise NotFoundError("Module", module_id)
        return module

    @log_execution_time(logger)
    async def create_module(self, title: str, description: str, created_by: Optional[str] = None) -> LearningModule:
        """
        Raises:
            ValidationError: If the title or description is blank or too long
        """
        now = self._clock()
        module = LearningModule(
            id=generate_id(),
            title=title.strip() if title else title,
            description=description.strip() if description else description,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        validate_module(module)
        saved = await self._modules.save(module)
        logger.info(f"Created module {saved.id}")
        return saved

    @log_execution_time(logger)
    async def update_module(
        self,
        module_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> LearningModule:
        """
        Raises:
            NotFoundError: If the module does not exist
            ValidationError: If the edited module breaks a rule
        """
        current = await self._require(module_id)
        changes = {
            name: value.strip()
            for name, value in (("title", title), ("description", description))
            if value is not None
        }
        candidate = dataclasses.replace(current, updated_at=self._clock(), **changes)
        validate_module(candidate)
        saved = await self._modules.save(candidate)
        logger.info(f"Updated module {module_id}: {sorted(changes)}")
        return saved

    async def get_module(self, module_id: str) -> LearningModule:
        return await self._require(module_id)

    async def list_modules(self) -> List[LearningModule]:
        return await self._modules.list()

    @log_execution_time(logger)
    async def assign_module(
        self,
        module_id: str,
        student_ids: Iterable[str],
        due_date: Optional[datetime] = None,
        created_by: Optional[str] = None,
    ) -> ModuleAssignment:
        """
        Assign a module to students.

        The module's active assignment, if any, receives the students by
        union and takes the new due date when one is given; otherwise a new
        assignment is created. Students already assigned keep their
        completion.

        Raises:
            NotFoundError: If the module does not exist
            ValidationError: If no student ids are given
        """
        module = await self._require(module_id)
        students = normalize_student_ids(student_ids)
        if not students:
            raise ValidationError(
                "At least one student is required",
                errors={"student_ids": "At least one student is required"},
            )
        due_date = ensure_utc(due_date)

        active = [a for a in await self._assignments.list_for_module(module_id) if a.is_active]
        if active:
            added = set()

            async def union(current: ModuleAssignment) -> ModuleAssignment:
                added.update(students - current.assigned_student_ids)
                return dataclasses.replace(
                    current,
                    assigned_student_ids=current.assigned_student_ids | students,
                    due_date=due_date or current.due_date,
                    updated_at=self._clock(),
                )

            assignment = await self._assignments.update_atomic(active[0].id, union)
        else:
            now = self._clock()
            added = set(students)
            assignment = await self._assignments.create(ModuleAssignment(
                id=generate_id(),
                module_id=module_id,
                assigned_student_ids=students,
                due_date=due_date,
                created_by=created_by,
                created_at=now,
                updated_at=now,
            ))
        logger.info(f"Assigned module {module_id} to {len(added)} new students in {assignment.id}")

        for user_id in sorted(added):
            await publish_safely(self._events, MODULE_ASSIGNED, {
                "assignment_id": assignment.id,
                "module_id": module_id,
                "module_title": module.title,
                "user_id": user_id,
                "due_date": assignment.due_date,
            })
        return assignment

    @log_execution_time(logger)
    async def mark_complete(self, assignment_id: str, user_id: str) -> ModuleAssignment:
        """
        Record that a student finished the module.

        Raises:
            NotFoundError: If the assignment is missing or inactive
            ForbiddenError: If the student is not assigned
            ConflictError: If the student already completed it
        """
        log = LoggerAdapter(logger).with_context(module_assignment_id=assignment_id, user_id=user_id)

        async def complete(current: ModuleAssignment) -> ModuleAssignment:
            if not current.is_active:
                raise NotFoundError("Module assignment", assignment_id)
            if not current.is_assigned(user_id):
                raise ForbiddenError("You are not assigned to this module")
            if current.is_completed(user_id):
                raise ConflictError("Module already marked as complete")
            return dataclasses.replace(
                current,
                completions={**current.completions, user_id: self._clock()},
            )

        updated = await self._assignments.update_atomic(assignment_id, complete)
        log.info("Module marked as complete")
        return updated

    @log_execution_time(logger)
    async def deactivate_assignment(self, assignment_id: str) -> ModuleAssignment:
        """
        Raises:
            NotFoundError: If the assignment does not exist
        """
        async def deactivate(current: ModuleAssignment) -> ModuleAssignment:
            if not current.is_active:
                return current
            return dataclasses.replace(current, is_active=False, updated_at=self._clock())

        updated = await self._assignments.update_atomic(assignment_id, deactivate)
        logger.info(f"Deactivated module assignment {assignment_id}")
        return updated

    async def list_assignments_for_module(self, module_id: str) -> List[ModuleAssignment]:
        await self._require(module_id)
        return await self._assignments.list_for_module(module_id)

    async def list_for_student(self, user_id: str, now: Optional[datetime] = None) -> List[StudentModule]:
        """Active module assignments of a student, newest first, with completion status."""
        now = ensure_utc(now) or self._clock()
        modules: List[StudentModule] = []
        for assignment in reversed(await self._assignments.list_for_student(user_id)):
            if not assignment.is_active:
                continue
            module = await self._modules.get(assignment.module_id)
            if module is None:
                continue
            completed_at = assignment.completions.get(user_id)
            modules.append(StudentModule(
                assignment_id=assignment.id,
                module=module,
                due_date=assignment.due_date,
                is_overdue=completed_at is None and assignment.due_date is not None and now > assignment.due_date,
                completed_at=completed_at,
            ))
        return modules
