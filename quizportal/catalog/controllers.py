"""
Test Catalog Controllers

API endpoints for authoring tests:
- Creating tests (draft or published directly)
- Editing drafts and descriptive fields of published tests
- Publishing and listing tests
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from quizportal.api import APIResponse
from quizportal.common.logger import app_logger
from quizportal.dependencies import Services, get_current_user_id, get_services
from quizportal.domain.models import OptionDraft, QuestionDraft, TestDraft, TestPatch

logger = app_logger.getChild("catalog.controllers")

router = APIRouter(prefix="/tests", tags=["Tests"])


# Request models
class OptionRequest(BaseModel):
    text: str = Field(..., description="Option text")
    is_correct: bool = Field(False, description="Whether this option is the correct answer")
    id: Optional[str] = Field(None, description="Existing option ID to keep when editing")

    def to_draft(self) -> OptionDraft:
        return OptionDraft(text=self.text, is_correct=self.is_correct, id=self.id)


class QuestionRequest(BaseModel):
    text: str = Field(..., description="Question text")
    options: List[OptionRequest] = Field(..., description="Answer options")
    points: int = Field(1, description="Points for a correct answer")
    explanation: Optional[str] = Field(None, description="Explanation shown after grading")
    id: Optional[str] = Field(None, description="Existing question ID to keep when editing")

    def to_draft(self) -> QuestionDraft:
        return QuestionDraft(
            text=self.text,
            options=[option.to_draft() for option in self.options],
            points=self.points,
            explanation=self.explanation,
            id=self.id,
        )


class CreateTestRequest(BaseModel):
    title: str = Field(..., description="Test title")
    description: str = Field("", description="Test description")
    instructions: str = Field("", description="Instructions shown before starting")
    time_limit_minutes: int = Field(..., description="Time limit in minutes")
    questions: List[QuestionRequest] = Field(..., description="Questions in display order")
    is_published: bool = Field(False, description="Publish immediately")


class UpdateTestRequest(BaseModel):
    title: Optional[str] = Field(None, description="New title")
    description: Optional[str] = Field(None, description="New description")
    instructions: Optional[str] = Field(None, description="New instructions")
    time_limit_minutes: Optional[int] = Field(None, description="New time limit (drafts only)")
    questions: Optional[List[QuestionRequest]] = Field(
        None, description="Replacement question list (drafts only)"
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_test(
    request: CreateTestRequest,
    services: Services = Depends(get_services),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    """
    Create a new test.

    Returns:
        The created test including its computed point total
    """
    draft = TestDraft(
        title=request.title,
        description=request.description,
        instructions=request.instructions,
        time_limit_minutes=request.time_limit_minutes,
        questions=[question.to_draft() for question in request.questions],
        is_published=request.is_published,
        created_by=user_id,
    )
    test = await services.catalog.create_test(draft)
    return APIResponse.success(test.to_dict(), message="Test created")


@router.get("")
async def list_tests(
    published_only: bool = Query(False, description="Only return published tests"),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    tests = await services.catalog.list_tests(published_only=published_only)
    return APIResponse.success([test.to_dict() for test in tests])


@router.get("/{test_id}")
async def get_test(test_id: str, services: Services = Depends(get_services)) -> Dict[str, Any]:
    test = await services.catalog.get_test(test_id)
    return APIResponse.success(test.to_dict())


@router.patch("/{test_id}")
async def update_test(
    test_id: str,
    request: UpdateTestRequest,
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """
    Update a test. Questions and time limit are frozen once published.
    """
    patch = TestPatch(
        title=request.title,
        description=request.description,
        instructions=request.instructions,
        time_limit_minutes=request.time_limit_minutes,
        questions=(
            [question.to_draft() for question in request.questions]
            if request.questions is not None else None
        ),
    )
    test = await services.catalog.update_test(test_id, patch)
    return APIResponse.success(test.to_dict(), message="Test updated")


@router.post("/{test_id}/publish")
async def publish_test(test_id: str, services: Services = Depends(get_services)) -> Dict[str, Any]:
    test = await services.catalog.publish(test_id)
    return APIResponse.success(test.to_dict(), message="Test published")
