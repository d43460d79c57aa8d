"""
Analytics Controllers

Read-only API endpoints backing the administrator and student dashboards.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from quizportal.api import APIResponse
from quizportal.common.logger import app_logger
from quizportal.dependencies import Services, get_current_user_id, get_services

logger = app_logger.getChild("analytics.controllers")

router = APIRouter(prefix="/analytics", tags=["Analytics"])


@router.get("/overview")
async def get_overview(services: Services = Depends(get_services)) -> Dict[str, Any]:
    summary = await services.analytics.portfolio_summary()
    return APIResponse.success(summary.to_dict())


@router.get("/top-performers")
async def get_top_performers(
    limit: Optional[int] = Query(None, description="Maximum number of students"),
    min_tests_completed: int = Query(1, description="Minimum distinct tests completed"),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    performers = await services.analytics.top_performers(
        limit=limit, min_tests_completed=min_tests_completed
    )
    return APIResponse.success([p.to_dict() for p in performers])


@router.get("/tests/{test_id}/summary")
async def get_test_summary(test_id: str, services: Services = Depends(get_services)) -> Dict[str, Any]:
    summary = await services.analytics.test_summary(test_id)
    return APIResponse.success(summary.to_dict())


@router.get("/tests/{test_id}/pending")
async def get_pending_students(
    test_id: str,
    now: Optional[datetime] = Query(None, description="Reference time for overdue checks"),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    pending = await services.analytics.pending_for_test(test_id, now=now)
    return APIResponse.success([p.to_dict() for p in pending])


@router.get("/tests/{test_id}")
async def get_test_analytics(test_id: str, services: Services = Depends(get_services)) -> Dict[str, Any]:
    analytics = await services.analytics.test_analytics(test_id)
    return APIResponse.success(analytics.to_dict())


@router.get("/modules/{module_id}")
async def get_module_analytics(
    module_id: str,
    now: Optional[datetime] = Query(None, description="Reference time for overdue checks"),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    analytics = await services.analytics.module_analytics(module_id, now=now)
    return APIResponse.success(analytics.to_dict())


@router.get("/students/me")
async def get_my_performance(
    services: Services = Depends(get_services),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    performance = await services.analytics.student_performance(user_id)
    return APIResponse.success(performance.to_dict())


@router.get("/students/{user_id}")
async def get_student_performance(user_id: str, services: Services = Depends(get_services)) -> Dict[str, Any]:
    performance = await services.analytics.student_performance(user_id)
    return APIResponse.success(performance.to_dict())
