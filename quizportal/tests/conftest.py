"""
Shared fixtures for the portal test suite.

Services run on the in-memory repositories with a controllable clock and an
in-memory event publisher, so every test starts from empty storage.
"""

import asyncio
import datetime
from typing import List, Optional, Sequence

import pytest

from quizportal.common.events import InMemoryEventPublisher
from quizportal.config import Settings
from quizportal.dependencies import build_services
from quizportal.domain.memory_repository import (
    MemoryAssignmentRepository,
    MemoryModuleAssignmentRepository,
    MemoryModuleRepository,
    MemoryResultRepository,
    MemoryTestRepository,
)
from quizportal.domain.models import (
    AnswerSubmission,
    MockTest,
    OptionDraft,
    QuestionDraft,
    TestDraft,
)

START = datetime.datetime(2024, 3, 1, 9, 0, tzinfo=datetime.timezone.utc)


class YieldingAssignmentRepository(MemoryAssignmentRepository):
    """Memory repository whose reads suspend once after reading, like a network round trip."""

    async def get(self, assignment_id):
        assignment = await super().get(assignment_id)
        await asyncio.sleep(0)
        return assignment


class FakeClock:
    """Clock returning a fixed time until advanced."""

    def __init__(self, now: datetime.datetime = START):
        self.now = now

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **delta) -> datetime.datetime:
        self.now = self.now + datetime.timedelta(**delta)
        return self.now


@pytest.fixture
def settings():
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None, STORAGE_BACKEND="memory")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def events():
    return InMemoryEventPublisher()


@pytest.fixture
def test_repository():
    return MemoryTestRepository()


@pytest.fixture
def assignment_repository():
    return MemoryAssignmentRepository()


@pytest.fixture
def yielding_assignment_repository():
    return YieldingAssignmentRepository()


@pytest.fixture
def result_repository(assignment_repository):
    return MemoryResultRepository(assignment_repository)


@pytest.fixture
def module_repository():
    return MemoryModuleRepository()


@pytest.fixture
def module_assignment_repository():
    return MemoryModuleAssignmentRepository()


@pytest.fixture
def services(
    settings,
    test_repository,
    assignment_repository,
    result_repository,
    module_repository,
    module_assignment_repository,
    events,
    clock,
):
    return build_services(
        settings,
        test_repository,
        assignment_repository,
        result_repository,
        module_repository,
        module_assignment_repository,
        event_publisher=events,
        clock=clock,
    )


@pytest.fixture
def make_draft():
    """
    Factory for test drafts. Each entry of `points` becomes one question with
    three options, the first of which is correct.
    """
    def _make(
        points: Sequence[int] = (2, 1),
        is_published: bool = True,
        title: str = "Algebra basics",
        time_limit_minutes: int = 30,
    ) -> TestDraft:
        return TestDraft(
            title=title,
            description="Linear equations",
            instructions="Choose one answer per question",
            time_limit_minutes=time_limit_minutes,
            is_published=is_published,
            created_by="admin-1",
            questions=[
                QuestionDraft(
                    text=f"Question {index + 1}",
                    points=value,
                    explanation="Worked solution",
                    options=[
                        OptionDraft(text="Right", is_correct=True),
                        OptionDraft(text="Wrong"),
                        OptionDraft(text="Also wrong"),
                    ],
                )
                for index, value in enumerate(points)
            ],
        )
    return _make


@pytest.fixture
def answers_for():
    """
    Build submissions for a test. `correct` lists, per question, whether to
    pick the right option; None skips the question.
    """
    def _answers(test: MockTest, correct: Optional[List[Optional[bool]]] = None) -> List[AnswerSubmission]:
        correct = correct if correct is not None else [True] * len(test.questions)
        submissions = []
        for question, pick_right in zip(test.questions, correct):
            if pick_right is None:
                continue
            wrong = next(o for o in question.options if not o.is_correct)
            option = question.correct_option if pick_right else wrong
            submissions.append(AnswerSubmission(question_id=question.id, selected_option_id=option.id))
        return submissions
    return _answers


@pytest.fixture
def published_test(services, make_draft):
    """Factory creating a published test through the catalog service."""
    async def _create(points: Sequence[int] = (2, 1), **kwargs) -> MockTest:
        return await services.catalog.create_test(make_draft(points=points, **kwargs))
    return _create
