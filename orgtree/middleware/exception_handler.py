"""Exception handler middleware for structured error responses."""

import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from ..exceptions import HierarchyException

logger = logging.getLogger(__name__)


async def hierarchy_exception_handler(request: Request, exc: HierarchyException) -> JSONResponse:
    """
    Render a HierarchyException as ``{"error", "message", "details"}``.

    Client errors (4xx) are logged at WARNING, server-side failures such as
    data-integrity or database errors at ERROR.
    """
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"HierarchyException: {exc.error_code.value}",
        extra={
            "error_code": exc.error_code.value,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
            "status_code": exc.status_code
        }
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )
