"""
Request context middleware.

Binds the request id and, for portfolio routes, the wallet address into the
structlog context so the fetch-cycle logs started by a request carry them,
then logs one line per request.
"""

import re
import time
import uuid
from typing import Optional

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ..services.address import is_valid_evm_address

logger = structlog.stdlib.get_logger("http")

# Routing has not happened yet, so path params are not available here
_PORTFOLIO_PATH_RE = re.compile(r"^/portfolio/(?P<address>[^/]+)(?P<refresh>/refresh)?/?$")

QUIET_PATHS = frozenset({"/healthz"})


def wallet_from_path(path: str) -> Optional[str]:
    """Lowercased wallet address of a portfolio route, if it is a valid one."""
    match = _PORTFOLIO_PATH_RE.match(path)
    if match is None or not is_valid_evm_address(match.group("address")):
        return None
    return match.group("address").lower()


def _wants_refresh(request: Request) -> bool:
    if request.url.path.rstrip("/").endswith("/refresh"):
        return True
    return request.query_params.get("refresh", "").lower() in ("1", "true", "yes", "on")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind request and wallet context, log each request with its outcome."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:8]
        wallet = wallet_from_path(request.url.path)

        structlog.contextvars.clear_contextvars()
        context = {"request_id": request_id}
        if wallet is not None:
            context["wallet"] = wallet
            context["refresh"] = _wants_refresh(request)
        structlog.contextvars.bind_contextvars(**context)

        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["x-request-id"] = request_id
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 1)
            if status_code >= 500:
                log = logger.error
            elif status_code >= 400:
                log = logger.warning
            elif request.url.path in QUIET_PATHS:
                log = logger.debug
            else:
                log = logger.info
            log(
                "portfolio_request" if wallet is not None else "http_request",
                method=request.method,
                path=request.url.path,
                status=status_code,
                duration_ms=duration_ms,
            )
            structlog.contextvars.clear_contextvars()
