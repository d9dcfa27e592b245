"""Request logging middleware and logging setup."""

import logging
import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from bikeshare_planner.config import settings

logger = logging.getLogger("api.requests")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every request with a short request ID and its duration.

    The ID is stored on ``request.state`` so error responses can quote it,
    and returned to the client in ``X-Request-ID``. Responses are logged at
    error level for 5xx, warning for 4xx, info otherwise; probe endpoints
    only log at debug.
    """

    QUIET_PATHS = {"/health", "/api/v1/health", "/api/v1/health/ready"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not settings.log_requests:
            return await call_next(request)

        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        request.state.request_id = request_id

        method = request.method
        path = request.url.path
        is_quiet_path = path in self.QUIET_PATHS

        if not is_quiet_path:
            logger.info(f"[{request_id}] --> {method} {path} from {self._get_client_ip(request)}")

        started = time.perf_counter()
        response: Optional[Response] = None
        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - started) * 1000
            logger.error(f"[{request_id}] <-- 500 {method} {path} ({duration_ms:.2f}ms) ERROR: {e}")
            raise

        duration_ms = (time.perf_counter() - started) * 1000
        response.headers["X-Request-ID"] = request_id

        log_message = f"[{request_id}] <-- {response.status_code} {method} {path} ({duration_ms:.2f}ms)"
        if response.status_code >= 500:
            logger.error(log_message)
        elif response.status_code >= 400:
            logger.warning(log_message)
        elif not is_quiet_path:
            logger.info(log_message)
        else:
            logger.debug(log_message)

        return response

    def _get_client_ip(self, request: Request) -> str:
        """Client address, honouring a reverse proxy's forwarded header."""
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
        if request.client:
            return request.client.host
        return "unknown"


def setup_logging():
    """Configure logging for the application."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(level=log_level, format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    logging.getLogger("bikeshare_planner").setLevel(log_level)
    logging.getLogger("api.requests").setLevel(log_level)
    logging.getLogger("api.errors").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    # Every engine call would otherwise log at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
