"""
Database Package

SQLAlchemy storage for the portal: ORM models, engine management and the
SQL implementations of the repository interfaces.
"""

from quizportal.database.base import Base, ModelBase, metadata
from quizportal.database.repositories import (
    SQLAssignmentRepository,
    SQLModuleAssignmentRepository,
    SQLModuleRepository,
    SQLResultRepository,
    SQLTestRepository,
)
from quizportal.database.session import (
    close_database,
    create_schema,
    get_session_factory,
    initialize_database,
    make_session_factory,
)

__all__ = [
    'Base',
    'ModelBase',
    'metadata',
    'SQLTestRepository',
    'SQLAssignmentRepository',
    'SQLResultRepository',
    'SQLModuleRepository',
    'SQLModuleAssignmentRepository',
    'initialize_database',
    'close_database',
    'create_schema',
    'get_session_factory',
    'make_session_factory',
]
