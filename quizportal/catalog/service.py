"""
Service layer for test definitions.

Owns the lifecycle of MockTest entities: drafts are freely editable,
published tests keep their questions and time limit frozen so assignments
always point at stable content.
"""

import dataclasses
from typing import List, Optional

from quizportal.catalog.validation import validate_test
from quizportal.common.exceptions import NotFoundError, ValidationError
from quizportal.common.logger import app_logger, log_execution_time
from quizportal.common.utils import generate_id, utc_now
from quizportal.config import Settings, get_settings
from quizportal.domain.models import (
    MockTest,
    Option,
    Question,
    QuestionDraft,
    TestDraft,
    TestPatch,
)
from quizportal.domain.repository import TestRepository

logger = app_logger.getChild("catalog.service")


def build_questions(drafts: List[QuestionDraft]) -> tuple:
    """Turn question drafts into domain questions, generating missing ids."""
    return tuple(
        Question(
            id=draft.id or generate_id(),
            text=draft.text,
            points=draft.points,
            explanation=draft.explanation,
            options=tuple(
                Option(id=option.id or generate_id(), text=option.text, is_correct=option.is_correct)
                for option in draft.options
            ),
        )
        for draft in drafts
    )


class TestDefinitionService:
    """
    Creates, edits and publishes tests.
    """
    __test__ = False

    def __init__(self, repository: TestRepository, settings: Optional[Settings] = None):
        """
        Initialize the service with the test repository.

        Args:
            repository: Storage for tests
            settings: Settings providing the accepted time-limit range
        """
        self._repository = repository
        self._settings = settings or get_settings()

    def _validate(self, test: MockTest) -> None:
        validate_test(
            test,
            min_minutes=self._settings.TIME_LIMIT_MIN_MINUTES,
            max_minutes=self._settings.TIME_LIMIT_MAX_MINUTES,
        )

    async def _require(self, test_id: str) -> MockTest:
        test = await self._repository.get(test_id)
        if test is None:
            raise NotFoundError("Test", test_id)
        return test

    @log_execution_time(logger)
    async def create_test(self, draft: TestDraft) -> MockTest:
        """
        Create a test from a draft, either unpublished or published directly.

        Raises:
            ValidationError: If the draft breaks any authoring rule
        """
        now = utc_now()
        test = MockTest(
            id=generate_id(),
            title=draft.title,
            description=draft.description,
            instructions=draft.instructions,
            time_limit_minutes=draft.time_limit_minutes,
            questions=build_questions(draft.questions),
            is_published=draft.is_published,
            created_by=draft.created_by,
            created_at=now,
            updated_at=now,
        )
        self._validate(test)
        saved = await self._repository.save(test)
        logger.info(
            f"Created test {saved.id} with {saved.total_questions} questions "
            f"({saved.total_points} points, published={saved.is_published})"
        )
        return saved

    @log_execution_time(logger)
    async def update_test(self, test_id: str, patch: TestPatch) -> MockTest:
        """
        Apply a patch to a test.

        Question content and time limit may only change while the test is
        unpublished; descriptive fields may change at any time.

        Raises:
            NotFoundError: If the test does not exist
            ValidationError: If the result breaks a rule or edits frozen content
        """
        current = await self._require(test_id)

        if current.is_published and patch.changes_content:
            raise ValidationError(
                "Published tests cannot change questions or time limit",
                errors={"is_published": "Test is already published"},
            )

        changes = {
            name: value
            for name, value in (
                ("title", patch.title),
                ("description", patch.description),
                ("instructions", patch.instructions),
                ("time_limit_minutes", patch.time_limit_minutes),
            )
            if value is not None
        }
        if patch.questions is not None:
            changes["questions"] = build_questions(patch.questions)

        candidate = dataclasses.replace(current, updated_at=utc_now(), **changes)
        self._validate(candidate)
        saved = await self._repository.save(candidate)
        logger.info(f"Updated test {test_id}: {sorted(changes)}")
        return saved

    @log_execution_time(logger)
    async def publish(self, test_id: str) -> MockTest:
        """
        Publish a test. Publishing an already published test is a no-op.

        Raises:
            NotFoundError: If the test does not exist
            ValidationError: If the test content is not publishable
        """
        current = await self._require(test_id)
        if current.is_published:
            logger.debug(f"Test {test_id} already published")
            return current

        self._validate(current)
        published = await self._repository.save(
            dataclasses.replace(current, is_published=True, updated_at=utc_now())
        )
        logger.info(f"Published test {test_id}")
        return published

    async def get_test(self, test_id: str) -> MockTest:
        """
        Raises:
            NotFoundError: If the test does not exist
        """
        return await self._require(test_id)

    async def list_tests(self, published_only: bool = False) -> List[MockTest]:
        return await self._repository.list(published_only=published_only)
