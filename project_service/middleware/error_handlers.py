# project_service/middleware/error_handlers.py
from __future__ import annotations
import logging
from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from project_service.errors import AggregateError, ProjectServiceError

logger = logging.getLogger("project_service.errors")


def add_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(_, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "status_code": exc.status_code},
        )

    @app.exception_handler(ProjectServiceError)
    async def project_exception_handler(_, exc: ProjectServiceError):
        status = exc.status_code
        if status >= 500:
            logger.error("%s: %s", type(exc).__name__, exc)
        content = {"detail": str(exc), "error": type(exc).__name__, "status_code": status}
        if isinstance(exc, AggregateError):
            content["errors"] = [str(e) for e in exc.errors]
        return JSONResponse(status_code=status, content=content)

    @app.exception_handler(PydanticValidationError)
    async def validation_exception_handler(_, exc: PydanticValidationError):
        logger.debug("Validation error: %s", exc)
        return JSONResponse(status_code=422, content={"detail": exc.errors()})

    @app.exception_handler(Exception)
    async def generic_exception_handler(_, exc: Exception):
        logger.exception("Unhandled exception: %s", exc)
        return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})
