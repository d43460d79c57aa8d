"""
Learning Modules

Authoring of study modules, their assignment to students and completion
tracking.
"""

from quizportal.learning.service import ModuleService, validate_module

__all__ = [
    'ModuleService',
    'validate_module',
]
