"""
Service wiring.

Builds the portal services on top of one storage backend and exposes them to
FastAPI routes as dependencies. The services only ever see the repository
interfaces; which implementation sits behind them is decided here.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from fastapi import Header, HTTPException, Request, status
from sqlalchemy.orm import sessionmaker

from quizportal.analytics.service import AnalyticsAggregator
from quizportal.assignments.service import AssignmentManager
from quizportal.attempts.service import AttemptService
from quizportal.catalog.service import TestDefinitionService
from quizportal.common.events import EventPublisher, LoggingEventPublisher
from quizportal.common.logger import app_logger
from quizportal.common.utils import utc_now
from quizportal.config import Settings
from quizportal.database.repositories import (
    SQLAssignmentRepository,
    SQLModuleAssignmentRepository,
    SQLModuleRepository,
    SQLResultRepository,
    SQLTestRepository,
)
from quizportal.domain.memory_repository import (
    MemoryAssignmentRepository,
    MemoryModuleAssignmentRepository,
    MemoryModuleRepository,
    MemoryResultRepository,
    MemoryTestRepository,
)
from quizportal.domain.repository import (
    AssignmentRepository,
    ModuleAssignmentRepository,
    ModuleRepository,
    ResultRepository,
    TestRepository,
)
from quizportal.learning.service import ModuleService

logger = app_logger.getChild("dependencies")

USER_ID_HEADER = "X-User-Id"


@dataclass
class Services:
    """The portal's components, sharing one set of repositories."""
    catalog: TestDefinitionService
    assignments: AssignmentManager
    attempts: AttemptService
    analytics: AnalyticsAggregator
    modules: ModuleService
    events: EventPublisher


def build_services(
    settings: Settings,
    tests: TestRepository,
    assignments: AssignmentRepository,
    results: ResultRepository,
    modules: ModuleRepository,
    module_assignments: ModuleAssignmentRepository,
    event_publisher: Optional[EventPublisher] = None,
    clock: Callable[[], datetime] = utc_now,
) -> Services:
    """
    Assemble the services over the given repositories.

    Args:
        settings: Application settings
        tests: Test storage
        assignments: Assignment storage
        results: Result storage
        modules: Learning module storage
        module_assignments: Module assignment storage
        event_publisher: Outbound notifications; logged when omitted
        clock: Source of the current time
    """
    events = event_publisher or LoggingEventPublisher()
    return Services(
        catalog=TestDefinitionService(tests, settings=settings),
        assignments=AssignmentManager(tests, assignments, results, event_publisher=events, clock=clock),
        attempts=AttemptService(tests, assignments, results, event_publisher=events, settings=settings, clock=clock),
        analytics=AnalyticsAggregator(
            tests, assignments, results, modules, module_assignments, settings=settings, clock=clock
        ),
        modules=ModuleService(modules, module_assignments, event_publisher=events, clock=clock),
        events=events,
    )


def build_memory_services(settings: Settings, event_publisher: Optional[EventPublisher] = None) -> Services:
    logger.info("Using in-memory storage")
    assignments = MemoryAssignmentRepository()
    return build_services(
        settings,
        MemoryTestRepository(),
        assignments,
        MemoryResultRepository(assignments),
        MemoryModuleRepository(),
        MemoryModuleAssignmentRepository(),
        event_publisher=event_publisher,
    )


def build_sql_services(
    settings: Settings,
    session_factory: sessionmaker,
    event_publisher: Optional[EventPublisher] = None,
) -> Services:
    logger.info("Using SQL storage")
    return build_services(
        settings,
        SQLTestRepository(session_factory),
        SQLAssignmentRepository(session_factory),
        SQLResultRepository(session_factory),
        SQLModuleRepository(session_factory),
        SQLModuleAssignmentRepository(session_factory),
        event_publisher=event_publisher,
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the services attached to the application."""
    return request.app.state.services


def get_current_user_id(x_user_id: Optional[str] = Header(None, alias=USER_ID_HEADER)) -> str:
    """
    FastAPI dependency returning the acting user's id.

    Identity is established upstream; this service only reads the header.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {USER_ID_HEADER} header",
        )
    return x_user_id.strip()
