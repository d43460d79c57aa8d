"""
Assignment Controllers

API endpoints for assigning tests to students and maintaining those
assignments.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from quizportal.api import APIResponse
from quizportal.common.logger import app_logger
from quizportal.dependencies import Services, get_current_user_id, get_services
from quizportal.domain.models import AssignmentPatch

logger = app_logger.getChild("assignments.controllers")

router = APIRouter(prefix="/assignments", tags=["Assignments"])


class CreateAssignmentRequest(BaseModel):
    test_id: str = Field(..., description="ID of the published test to assign")
    student_ids: List[str] = Field(..., description="Students to assign")
    due_date: Optional[datetime] = Field(None, description="Optional deadline")
    max_attempts: int = Field(1, description="Attempts allowed per student")


class UpdateAssignmentRequest(BaseModel):
    add_student_ids: Optional[List[str]] = Field(None, description="Students to add")
    remove_student_ids: Optional[List[str]] = Field(
        None, description="Students to remove; only those without results"
    )
    due_date: Optional[datetime] = Field(None, description="New deadline")
    clear_due_date: bool = Field(False, description="Remove the deadline")
    max_attempts: Optional[int] = Field(None, description="New attempt cap")


class ReassignRequest(BaseModel):
    student_ids: List[str] = Field(..., description="Students to add to the assignment")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_assignment(
    request: CreateAssignmentRequest,
    services: Services = Depends(get_services),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    assignment = await services.assignments.assign(
        test_id=request.test_id,
        student_ids=request.student_ids,
        due_date=request.due_date,
        max_attempts=request.max_attempts,
        created_by=user_id,
    )
    return APIResponse.success(assignment.to_dict(), message="Test assigned")


@router.get("/mine")
async def list_my_assignments(
    services: Services = Depends(get_services),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    """
    List the active assignments of the calling student.
    """
    assignments = await services.assignments.list_for_student(user_id)
    return APIResponse.success([a.to_dict() for a in assignments])


@router.get("")
async def list_assignments_for_test(
    test_id: str = Query(..., description="Test whose assignments to list"),
    include_inactive: bool = Query(True, description="Include deactivated assignments"),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    assignments = await services.assignments.list_for_test(test_id, include_inactive=include_inactive)
    return APIResponse.success([a.to_dict() for a in assignments])


@router.get("/{assignment_id}")
async def get_assignment(assignment_id: str, services: Services = Depends(get_services)) -> Dict[str, Any]:
    assignment = await services.assignments.get_assignment(assignment_id)
    return APIResponse.success(assignment.to_dict())


@router.patch("/{assignment_id}")
async def update_assignment(
    assignment_id: str,
    request: UpdateAssignmentRequest,
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    patch = AssignmentPatch(
        add_student_ids=request.add_student_ids,
        remove_student_ids=request.remove_student_ids,
        due_date=request.due_date,
        clear_due_date=request.clear_due_date,
        max_attempts=request.max_attempts,
    )
    assignment = await services.assignments.update_assignment(assignment_id, patch)
    return APIResponse.success(assignment.to_dict(), message="Assignment updated")


@router.post("/{assignment_id}/students")
async def reassign(
    assignment_id: str,
    request: ReassignRequest,
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    assignment = await services.assignments.reassign(assignment_id, request.student_ids)
    return APIResponse.success(assignment.to_dict(), message="Students added")


@router.post("/{assignment_id}/deactivate")
async def deactivate_assignment(
    assignment_id: str,
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    assignment = await services.assignments.deactivate(assignment_id)
    return APIResponse.success(assignment.to_dict(), message="Assignment deactivated")
