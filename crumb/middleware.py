"""
Middleware system - Composable, async-first middleware.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional
import logging
import time
import traceback

from .request import Request
from .response import Response, InternalError
from .faults import Fault, FaultDomain


@dataclass
class RequestCtx:
    """
    Request context handed to handlers and middleware.

    Attributes:
        request: The HTTP request
        request_id: Identifier assigned by the adapter
        state: Additional state dictionary
    """

    request: Request
    request_id: Optional[str] = None
    state: Dict[str, Any] = field(default_factory=dict)

    @property
    def path(self) -> str:
        return self.request.path

    @property
    def method(self) -> str:
        return self.request.method

    @property
    def session(self) -> Optional[Any]:
        """Default session of the request (see ``Request.session``)."""
        return self.request.session


Handler = Callable[[Request, RequestCtx], Awaitable[Response]]
Middleware = Callable[[Request, RequestCtx, Handler], Awaitable[Response]]


@dataclass
class MiddlewareDescriptor:
    """Descriptor for middleware registration."""
    middleware: Middleware
    scope: str  # "global", "app:name", "route:pattern"
    priority: int
    name: str


class MiddlewareStack:
    """
    Manages middleware stack with deterministic ordering.
    Order: Global < App < Route, then by priority, then by registration.
    """

    def __init__(self):
        self.middlewares: List[MiddlewareDescriptor] = []
        self._sorted = True  # Track if sorting is needed

    def add(
        self,
        middleware: Middleware,
        scope: str = "global",
        priority: int = 50,
        name: Optional[str] = None,
    ):
        """Add middleware to stack."""
        if name is None:
            name = getattr(middleware, "__name__", type(middleware).__name__)

        self.middlewares.append(MiddlewareDescriptor(
            middleware=middleware,
            scope=scope,
            priority=priority,
            name=name,
        ))
        self._sorted = False  # Defer sorting until build_handler()

    def _sort_middlewares(self):
        """Sort middlewares by scope and priority (stable)."""
        scope_order = {"global": 0, "app": 1, "route": 2}

        def sort_key(desc: MiddlewareDescriptor):
            scope_type = desc.scope.split(":")[0]
            return (scope_order.get(scope_type, 99), desc.priority)

        self.middlewares.sort(key=sort_key)

    def build_handler(self, final_handler: Handler) -> Handler:
        """Build middleware chain wrapping the final handler."""
        if not self._sorted:
            self._sort_middlewares()
            self._sorted = True

        handler = final_handler

        # Wrap in reverse order so first middleware is outermost
        for desc in reversed(self.middlewares):
            handler = self._wrap_middleware(desc.middleware, handler)

        return handler

    def _wrap_middleware(self, middleware: Middleware, next_handler: Handler) -> Handler:
        """Wrap a handler with middleware."""
        async def wrapped(request: Request, ctx: RequestCtx) -> Response:
            return await middleware(request, ctx, next_handler)

        return wrapped


# Default middleware implementations

class ExceptionMiddleware:
    """Catches exceptions and converts them to JSON error responses."""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.logger = logging.getLogger("crumb.exceptions")

    async def __call__(self, request: Request, ctx: RequestCtx, next: Handler) -> Response:
        try:
            return await next(request, ctx)

        except Fault as e:
            status_map = {
                FaultDomain.SECURITY: 403,
                FaultDomain.IO: 502,
            }
            status = status_map.get(e.domain, 500)
            message = e.message if (e.public or self.debug) else "Internal server error"

            if status >= 500:
                self.logger.error("Fault %s: %s", e.code, e.message)
            else:
                self.logger.warning("Fault %s: %s", e.code, e.message)

            return Response.json(
                {
                    "error": {
                        "code": e.code,
                        "message": message,
                        "domain": e.domain.value,
                    }
                },
                status=status,
            )

        except Exception as e:
            self.logger.error("Unhandled exception: %s", e, exc_info=True)

            if not self.debug:
                return InternalError("Internal server error")

            return Response.json(
                {
                    "error": "Internal server error",
                    "detail": str(e),
                    "traceback": traceback.format_exc(),
                },
                status=500,
            )


class LoggingMiddleware:
    """Logs request/response with timing."""

    def __init__(self, slow_threshold_ms: float = 1000.0):
        self.logger = logging.getLogger("crumb.requests")
        self.slow_threshold_ms = slow_threshold_ms

    async def __call__(self, request: Request, ctx: RequestCtx, next: Handler) -> Response:
        if not self.logger.isEnabledFor(logging.INFO):
            return await next(request, ctx)

        start = time.monotonic()
        response = await next(request, ctx)
        elapsed_ms = (time.monotonic() - start) * 1000.0

        self.logger.info(
            "%s %s - %d (%.1fms)",
            request.method, request.path, response.status, elapsed_ms,
        )

        if elapsed_ms > self.slow_threshold_ms:
            self.logger.warning(
                "Slow request: %s %s took %.1fms",
                request.method, request.path, elapsed_ms,
            )

        return response
