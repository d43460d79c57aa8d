"""
Central API router and utilities for the quiz portal.

This module provides:
- A central router that collects the component routers
- Common response structure and exception handlers
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from quizportal.common.exceptions import NotFoundError, PortalError, RepositoryError
from quizportal.common.logger import app_logger

logger = app_logger.getChild("api")


def register_module(main_router: APIRouter, name: str, router: APIRouter) -> None:
    """
    Register a component router with the main API router.

    Args:
        main_router: Router the component is mounted on
        name: Name of the component
        router: FastAPI router for the component
    """
    main_router.include_router(router)
    logger.info(f"Registered module: {name} with {len(router.routes)} routes")


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle request validation errors and return a standardized response.

    Args:
        request: The incoming request
        exc: The validation exception

    Returns:
        A JSON response with error details
    """
    error_details = []
    for error in exc.errors():
        error_details.append({
            "location": list(error.get("loc", [])),
            "message": error.get("msg", "Unknown validation error"),
            "type": error.get("type", "")
        })

    return JSONResponse(
        status_code=422,
        content=APIResponse.error("Validation error", details=error_details, code="request_validation_error"),
    )


async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    """
    Translate portal errors into their HTTP status and error body.
    """
    if isinstance(exc, RepositoryError):
        logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc.original_exception)
    elif isinstance(exc, NotFoundError):
        logger.info(f"{request.method} {request.url.path}: {exc.resource_type} {exc.resource_id} not found")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc}")

    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


class APIResponse:
    """Standard API response structure"""

    @staticmethod
    def success(data: Any = None, message: str = "Success") -> Dict[str, Any]:
        """
        Create a success response.

        Args:
            data: Response data
            message: Success message

        Returns:
            Response dictionary
        """
        return {
            "status": "success",
            "message": message,
            "data": data
        }

    @staticmethod
    def error(message: str, details: Optional[Any] = None,
              code: Optional[str] = None) -> Dict[str, Any]:
        """
        Create an error response.

        Args:
            message: Error message
            details: Optional error details
            code: Optional error code

        Returns:
            Response dictionary
        """
        response = {
            "status": "error",
            "message": message
        }

        if details:
            response["details"] = details

        if code:
            response["code"] = code

        return response
