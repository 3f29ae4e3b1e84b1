"""FastAPI middleware for observability.

Provides request ID generation and logging for all HTTP requests.
"""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .logging_config import get_logger
from .request_id import generate_request_id, reset_request_id, set_request_id

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Bind a request ID for the duration of a request and echo it back."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()
        token = set_request_id(request_id)

        start_time = time.time()
        logger.info(
            f"{request.method} {request.url.path}",
            extra={"method": request.method, "path": request.url.path},
        )

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {type(e).__name__}",
                extra={"duration_ms": round(duration_ms, 2)},
                exc_info=True,
            )
            raise
        else:
            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                f"Request completed: {response.status_code}",
                extra={
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 2),
                },
            )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            reset_request_id(token)
