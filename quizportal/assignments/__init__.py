"""
Assignment Manager

Assignment of published tests to students with deadlines and attempt caps.
"""

from quizportal.assignments.service import AssignmentManager, normalize_student_ids

__all__ = [
    'AssignmentManager',
    'normalize_student_ids',
]
