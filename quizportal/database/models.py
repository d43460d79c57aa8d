"""
SQLAlchemy ORM models for tests, assignments, attempt results and learning
modules.

Question content and graded answers are stored as JSON documents on their
owning row; assignment membership lives in its own table so that adding
students is a plain insert rather than a document rewrite.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from quizportal.database.base import ModelBase, UTCDateTime


class TestRecord(ModelBase):
    """Stored test definition."""
    __test__ = False
    __tablename__ = "mock_tests"

    id = Column(String(36), primary_key=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    instructions = Column(Text, nullable=False, default="")
    time_limit_minutes = Column(Integer, nullable=False)
    questions = Column(JSON, nullable=False)
    # Denormalized from questions for reporting queries; always rewritten on save
    total_points = Column(Integer, nullable=False)
    is_published = Column(Boolean, nullable=False, default=False)
    created_by = Column(String(255), nullable=True)
    created_at = Column(UTCDateTime, nullable=False)
    updated_at = Column(UTCDateTime, nullable=False)

    __table_args__ = (
        Index("idx_mock_tests_published", is_published),
    )

    def __repr__(self):
        return f"<TestRecord(id='{self.id}', title='{self.title}', published={self.is_published})>"


class AssignmentRecord(ModelBase):
    """Stored assignment of a test."""
    __tablename__ = "test_assignments"

    id = Column(String(36), primary_key=True)
    test_id = Column(String(36), ForeignKey("mock_tests.id"), nullable=False)
    max_attempts = Column(Integer, nullable=False, default=1)
    due_date = Column(UTCDateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(String(255), nullable=True)
    created_at = Column(UTCDateTime, nullable=False)
    updated_at = Column(UTCDateTime, nullable=False)

    students = relationship(
        "AssignmentStudentRecord",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_test_assignments_test", test_id),
    )


class AssignmentStudentRecord(ModelBase):
    """Membership of one student in one assignment."""
    __tablename__ = "assignment_students"

    assignment_id = Column(String(36), ForeignKey("test_assignments.id"), primary_key=True)
    user_id = Column(String(255), primary_key=True)

    __table_args__ = (
        Index("idx_assignment_students_user", user_id),
    )


class ResultRecord(ModelBase):
    """
    Stored graded attempt.

    percentage is kept for reporting tools that read the table directly. It is
    written from score and total_points on insert and checked against them on
    every read.
    """
    __tablename__ = "test_results"

    id = Column(String(36), primary_key=True)
    assignment_id = Column(String(36), ForeignKey("test_assignments.id"), nullable=False)
    test_id = Column(String(36), ForeignKey("mock_tests.id"), nullable=False)
    user_id = Column(String(255), nullable=False)
    attempt_number = Column(Integer, nullable=False)
    answers = Column(JSON, nullable=False)
    score = Column(Integer, nullable=False)
    total_points = Column(Integer, nullable=False)
    percentage = Column(Float, nullable=False)
    total_questions = Column(Integer, nullable=False)
    correct_answers = Column(Integer, nullable=False)
    time_spent_seconds = Column(Integer, nullable=False)
    started_at = Column(UTCDateTime, nullable=False)
    submitted_at = Column(UTCDateTime, nullable=False)
    is_late = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint(
            "user_id", "assignment_id", "attempt_number",
            name="uq_test_results_user_assignment_attempt",
        ),
        Index("idx_test_results_test", test_id),
        Index("idx_test_results_user", user_id),
    )

    def __repr__(self):
        return (f"<ResultRecord(id='{self.id}', user_id='{self.user_id}', "
                f"attempt={self.attempt_number}, score={self.score}/{self.total_points})>")


class ModuleRecord(ModelBase):
    """Stored learning module."""
    __tablename__ = "learning_modules"

    id = Column(String(36), primary_key=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    created_by = Column(String(255), nullable=True)
    created_at = Column(UTCDateTime, nullable=False)
    updated_at = Column(UTCDateTime, nullable=False)


class ModuleAssignmentRecord(ModelBase):
    """Stored assignment of a learning module."""
    __tablename__ = "module_assignments"

    id = Column(String(36), primary_key=True)
    module_id = Column(String(36), ForeignKey("learning_modules.id"), nullable=False)
    due_date = Column(UTCDateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(String(255), nullable=True)
    created_at = Column(UTCDateTime, nullable=False)
    updated_at = Column(UTCDateTime, nullable=False)

    students = relationship(
        "ModuleAssignmentStudentRecord",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_module_assignments_module", module_id),
    )


class ModuleAssignmentStudentRecord(ModelBase):
    """Membership of one student in one module assignment; completed_at is set once done."""
    __tablename__ = "module_assignment_students"

    assignment_id = Column(String(36), ForeignKey("module_assignments.id"), primary_key=True)
    user_id = Column(String(255), primary_key=True)
    completed_at = Column(UTCDateTime, nullable=True)

    __table_args__ = (
        Index("idx_module_assignment_students_user", user_id),
    )
