"""
Request correlation and access logging.

An incoming ``X-Request-ID`` is reused when it looks sane, otherwise a
fresh UUID is generated. The id is echoed on the response, kept on
``request.state.request_id`` and put in ``request_id_var`` so every log
line written while handling the request carries it.
"""

import re
import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from placebook.logging_config import get_logger, request_id_var, user_id_var

logger = get_logger("placebook.access")

REQUEST_ID_HEADER = "X-Request-ID"
SLOW_REQUEST_MS = 1000
_ACCEPTABLE_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def resolve_request_id(incoming: Optional[str]) -> str:
    if incoming and _ACCEPTABLE_ID.match(incoming):
        return incoming
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        request_token = request_id_var.set(request_id)
        user_token = user_id_var.set(None)
        started = time.perf_counter()

        try:
            response = await call_next(request)
            elapsed_ms = round((time.perf_counter() - started) * 1000, 1)

            response.headers[REQUEST_ID_HEADER] = request_id
            fields = {
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": elapsed_ms,
            }
            if elapsed_ms > SLOW_REQUEST_MS:
                logger.warning("Slow request %s %s", request.method, request.url.path, extra=fields)
            else:
                logger.info("%s %s -> %s", request.method, request.url.path, response.status_code, extra=fields)
            return response
        finally:
            request_id_var.reset(request_token)
            user_id_var.reset(user_token)
