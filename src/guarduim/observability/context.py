"""
guarduim.observability.context

Scoped logging context for reconcile cycles and API requests.

Responsibilities:
- Bind the identity key into structlog contextvars for the duration of one reconcile.
- Generate/propagate request IDs for the operator API.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


@contextmanager
def reconcile_scope(key: object, *, worker: int | None = None) -> Iterator[None]:
    # Each worker runs in its own task, so its contextvars do not leak into other workers.
    fields: dict[str, object] = {"identity": str(key)}
    if worker is not None:
        fields["worker"] = worker
    with structlog.contextvars.bound_contextvars(**fields):
        yield


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        with structlog.contextvars.bound_contextvars(
            request_id=request_id,
            path=request.url.path,
            method=request.method,
        ):
            response: Response = await call_next(request)
        response.headers["x-request-id"] = request_id
        return response
