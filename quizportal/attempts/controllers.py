"""
Attempt Controllers

API endpoints used by students to open an assigned test, submit an attempt
and read back their results.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from quizportal.api import APIResponse
from quizportal.common.logger import app_logger
from quizportal.dependencies import Services, get_current_user_id, get_services
from quizportal.domain.models import AnswerSubmission

logger = app_logger.getChild("attempts.controllers")

router = APIRouter(prefix="/attempts", tags=["Attempts"])


class AnswerRequest(BaseModel):
    question_id: str = Field(..., description="Question being answered")
    selected_option_id: Optional[str] = Field(None, description="Chosen option; omit to skip")


class SubmitAttemptRequest(BaseModel):
    answers: List[AnswerRequest] = Field(default_factory=list, description="Answers to the test's questions")
    time_spent_seconds: int = Field(..., description="Time spent on the attempt in seconds")
    started_at: Optional[datetime] = Field(None, description="When the attempt started")


@router.get("/{assignment_id}/start")
async def start_attempt(
    assignment_id: str,
    services: Services = Depends(get_services),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    """
    Get the test for taking, without correct answers.
    """
    ticket = await services.attempts.prepare_attempt(assignment_id, user_id)
    return APIResponse.success(ticket.to_dict())


@router.post("/{assignment_id}/submit", status_code=status.HTTP_201_CREATED)
async def submit_attempt(
    assignment_id: str,
    request: SubmitAttemptRequest,
    services: Services = Depends(get_services),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    """
    Submit answers for grading.

    Returns:
        The graded result
    """
    result = await services.attempts.submit(
        assignment_id=assignment_id,
        user_id=user_id,
        answers=[
            AnswerSubmission(question_id=a.question_id, selected_option_id=a.selected_option_id)
            for a in request.answers
        ],
        time_spent_seconds=request.time_spent_seconds,
        started_at=request.started_at,
    )
    return APIResponse.success(result.to_dict(), message="Test submitted successfully")


@router.get("/results/mine")
async def list_my_results(
    services: Services = Depends(get_services),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    results = await services.attempts.list_results_for_user(user_id)
    return APIResponse.success([r.to_dict() for r in results])


@router.get("/results/{result_id}")
async def get_result(result_id: str, services: Services = Depends(get_services)) -> Dict[str, Any]:
    result = await services.attempts.get_result(result_id)
    return APIResponse.success(result.to_dict())


@router.get("/{assignment_id}/results")
async def list_assignment_results(
    assignment_id: str,
    user_id: Optional[str] = Query(None, description="Only results of this student"),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    results = await services.attempts.list_results_for_assignment(assignment_id, user_id=user_id)
    return APIResponse.success([r.to_dict() for r in results])
