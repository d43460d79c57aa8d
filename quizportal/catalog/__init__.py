"""
Test Definition Store

Authoring, validation and publishing of multiple-choice tests.
"""

from quizportal.catalog.service import TestDefinitionService
from quizportal.catalog.validation import collect_test_errors, validate_test

__all__ = [
    'TestDefinitionService',
    'collect_test_errors',
    'validate_test',
]
