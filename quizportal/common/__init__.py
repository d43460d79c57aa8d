"""
Common Utilities

Shared infrastructure for the portal: logging, the error taxonomy,
event publishing, serialization and numeric helpers.
"""

from quizportal.common.exceptions import (
    PortalError,
    ValidationError,
    NotFoundError,
    ForbiddenError,
    ConflictError,
    RepositoryError,
)
from quizportal.common.logger import app_logger, get_logger

__all__ = [
    'PortalError',
    'ValidationError',
    'NotFoundError',
    'ForbiddenError',
    'ConflictError',
    'RepositoryError',
    'app_logger',
    'get_logger',
]
