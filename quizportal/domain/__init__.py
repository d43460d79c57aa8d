"""
Portal domain module.

This module contains the domain model and the repository contracts shared by
the catalog, assignment, attempt, learning module and analytics components.
"""

from .models import (
    Option,
    Question,
    MockTest,
    Assignment,
    AnswerRecord,
    AttemptResult,
    LearningModule,
    ModuleAssignment,
)
from .repository import (
    TestRepository,
    AssignmentRepository,
    ResultRepository,
    ModuleRepository,
    ModuleAssignmentRepository,
)

__all__ = [
    'Option',
    'Question',
    'MockTest',
    'Assignment',
    'AnswerRecord',
    'AttemptResult',
    'TestRepository',
    'AssignmentRepository',
    'ResultRepository',
    'LearningModule',
    'ModuleAssignment',
    'ModuleRepository',
    'ModuleAssignmentRepository',
]
