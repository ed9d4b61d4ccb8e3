# project_service/middleware/logging.py
from __future__ import annotations
import time
import logging
import uuid
from fastapi import FastAPI, Request

logger = logging.getLogger("project_service.middleware")

HEADER_NAME = "X-Correlation-ID"
STATE_ATTR = "correlation_id"


def get_correlation_id(request: Request) -> str:
    return getattr(request.state, STATE_ATTR, "")


def install_request_logging(app: FastAPI) -> None:
    """
    Logs every request with its duration and makes sure request and response
    carry an X-Correlation-ID (generated when the caller sent none).
    """

    @app.middleware("http")
    async def _log_requests(request: Request, call_next):
        corr = request.headers.get(HEADER_NAME) or uuid.uuid4().hex
        setattr(request.state, STATE_ATTR, corr)
        extra = {"correlation_id": corr}

        start = time.time()
        path = request.url.path
        method = request.method
        try:
            response = await call_next(request)
            duration = (time.time() - start) * 1000.0
            logger.info("%s %s -> %s (%.2f ms)", method, path, response.status_code, duration, extra=extra)
            if HEADER_NAME not in response.headers:
                response.headers[HEADER_NAME] = corr
            return response
        except Exception as ex:
            duration = (time.time() - start) * 1000.0
            logger.exception("Unhandled error during %s %s (%.2f ms): %s", method, path, duration, ex, extra=extra)
            raise
