"""Exception handlers for the sandbox API.

Every error body has the shape the HTTP collaborator parses:

    {
        "success": false,
        "message": "Human-readable error message",
        "code": "ERROR_CODE",
        "details": {...}  // Optional
    }
"""

import logging
from typing import Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from catalog_admin.exceptions import CatalogAdminException

logger = logging.getLogger(__name__)


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: Union[dict, list, None] = None,
) -> JSONResponse:
    content = {"success": False, "message": message, "code": error_code}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


async def catalog_exception_handler(
    request: Request,
    exc: CatalogAdminException,
) -> JSONResponse:
    logger.warning(
        f"Catalog exception: {exc.error_code} - {exc.message}",
        extra={
            "error_code": exc.error_code,
            "path": request.url.path,
            "method": request.method,
        },
    )
    return create_error_response(
        status_code=exc.status_code or status.HTTP_500_INTERNAL_SERVER_ERROR,
        message=exc.message,
        error_code=exc.error_code,
    )


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    return create_error_response(
        status_code=exc.status_code,
        message=str(exc.detail),
        error_code=f"HTTP_{exc.status_code}",
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    logger.warning(f"Validation error on {request.url.path}")

    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message="Validation error",
        error_code="VALIDATION_ERROR",
        details={"errors": errors},
    )


def register_exception_handlers(app):
    """Register the sandbox exception handlers with a FastAPI app."""
    app.add_exception_handler(CatalogAdminException, catalog_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
