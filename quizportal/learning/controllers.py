"""
Learning Module Controllers

API endpoints for authoring modules, assigning them to students and
recording student completion.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from quizportal.api import APIResponse
from quizportal.common.logger import app_logger
from quizportal.dependencies import Services, get_current_user_id, get_services

logger = app_logger.getChild("learning.controllers")

router = APIRouter(prefix="/modules", tags=["Modules"])


class CreateModuleRequest(BaseModel):
    title: str = Field(..., description="Module title")
    description: str = Field(..., description="Module description")


class UpdateModuleRequest(BaseModel):
    title: Optional[str] = Field(None, description="New title")
    description: Optional[str] = Field(None, description="New description")


class AssignModuleRequest(BaseModel):
    student_ids: List[str] = Field(..., description="Students to assign")
    due_date: Optional[datetime] = Field(None, description="Optional deadline")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_module(
    request: CreateModuleRequest,
    services: Services = Depends(get_services),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    module = await services.modules.create_module(request.title, request.description, created_by=user_id)
    return APIResponse.success(module.to_dict(), message="Module created")


@router.get("")
async def list_modules(services: Services = Depends(get_services)) -> Dict[str, Any]:
    modules = await services.modules.list_modules()
    return APIResponse.success([m.to_dict() for m in modules])


@router.get("/assignments/mine")
async def list_my_modules(
    services: Services = Depends(get_services),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    """
    List the calling student's active module assignments with completion status.
    """
    modules = await services.modules.list_for_student(user_id)
    return APIResponse.success([m.to_dict() for m in modules])


@router.post("/assignments/{assignment_id}/complete")
async def mark_module_complete(
    assignment_id: str,
    services: Services = Depends(get_services),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    assignment = await services.modules.mark_complete(assignment_id, user_id)
    return APIResponse.success(assignment.to_dict(), message="Module marked as complete")


@router.post("/assignments/{assignment_id}/deactivate")
async def deactivate_module_assignment(
    assignment_id: str,
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    assignment = await services.modules.deactivate_assignment(assignment_id)
    return APIResponse.success(assignment.to_dict(), message="Module assignment deactivated")


@router.get("/{module_id}")
async def get_module(module_id: str, services: Services = Depends(get_services)) -> Dict[str, Any]:
    module = await services.modules.get_module(module_id)
    return APIResponse.success(module.to_dict())


@router.patch("/{module_id}")
async def update_module(
    module_id: str,
    request: UpdateModuleRequest,
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    module = await services.modules.update_module(module_id, title=request.title, description=request.description)
    return APIResponse.success(module.to_dict(), message="Module updated")


@router.post("/{module_id}/assign")
async def assign_module(
    module_id: str,
    request: AssignModuleRequest,
    services: Services = Depends(get_services),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    assignment = await services.modules.assign_module(
        module_id, request.student_ids, due_date=request.due_date, created_by=user_id
    )
    return APIResponse.success(assignment.to_dict(), message="Module assigned")


@router.get("/{module_id}/assignments")
async def list_module_assignments(module_id: str, services: Services = Depends(get_services)) -> Dict[str, Any]:
    assignments = await services.modules.list_assignments_for_module(module_id)
    return APIResponse.success([a.to_dict() for a in assignments])
