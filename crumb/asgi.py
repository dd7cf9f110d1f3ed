"""
ASGI adapter - Bridges the ASGI protocol to Crumb's request/response system.

- Middleware chain is built once and cached.
- Every HTTP request gets a Request, a RequestCtx and an id.
- Lifespan events are acknowledged so servers like uvicorn start cleanly.
"""

from __future__ import annotations

import logging
import os
from typing import Callable, Iterable, List, Optional, Union

from .middleware import ExceptionMiddleware, Handler, Middleware, MiddlewareStack, RequestCtx
from .request import Request
from .response import InternalError, Response


class ASGIAdapter:
    """
    ASGI application adapter.

    Converts ASGI events to Crumb Request/Response and runs them through
    the middleware stack into a single final handler.
    """

    __slots__ = (
        "handler", "middleware_stack", "trust_proxy", "logger",
        "_cached_middleware_chain",
    )

    def __init__(
        self,
        handler: Handler,
        middleware_stack: Optional[MiddlewareStack] = None,
        *,
        trust_proxy: Union[bool, List[str]] = False,
    ):
        self.handler = handler
        self.middleware_stack = middleware_stack or MiddlewareStack()
        self.trust_proxy = trust_proxy
        self.logger = logging.getLogger("crumb.asgi")
        self._cached_middleware_chain: Optional[Handler] = None

    def _chain(self) -> Handler:
        if self._cached_middleware_chain is None:
            self._cached_middleware_chain = self.middleware_stack.build_handler(self.handler)
        return self._cached_middleware_chain

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        scope_type = scope["type"]
        if scope_type == "http":
            await self.handle_http(scope, receive, send)
        elif scope_type == "lifespan":
            await self.handle_lifespan(scope, receive, send)
        else:
            self.logger.warning("Unsupported ASGI scope type: %s", scope_type)

    async def handle_http(self, scope: dict, receive: Callable, send: Callable) -> None:
        request = Request(scope, receive, trust_proxy=self.trust_proxy)
        ctx = RequestCtx(request=request, request_id=os.urandom(16).hex())
        request.state["request_id"] = ctx.request_id

        try:
            response = await self._chain()(request, ctx)
        except Exception as e:
            # Reached only without an ExceptionMiddleware in the stack
            self.logger.error("Unhandled exception: %s", e, exc_info=True)
            response = InternalError()

        if not isinstance(response, Response):
            self.logger.error("Handler returned %r instead of a Response", type(response).__name__)
            response = InternalError()

        request.bind_response(response)
        await response.send_asgi(send)

    async def handle_lifespan(self, scope: dict, receive: Callable, send: Callable) -> None:
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                self.logger.debug("lifespan startup")
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                self.logger.debug("lifespan shutdown")
                await send({"type": "lifespan.shutdown.complete"})
                return


def create_app(
    handler: Handler,
    middleware: Iterable[Middleware] = (),
    *,
    debug: bool = False,
    trust_proxy: Union[bool, List[str]] = False,
) -> ASGIAdapter:
    """
    Build an ASGI app: ExceptionMiddleware outermost, then ``middleware``
    in the given order, then ``handler``.

    Example:
        >>> async def handler(request, ctx):
        ...     request.session["views"] = request.session.get("views", 0) + 1
        ...     return Response.text(str(request.session["views"]))
        >>> app = create_app(handler, [cookie_session(secret="s3cret")])
    """
    stack = MiddlewareStack()
    stack.add(ExceptionMiddleware(debug=debug), priority=0)
    for i, mw in enumerate(middleware):
        stack.add(mw, priority=10 + i)
    return ASGIAdapter(handler, stack, trust_proxy=trust_proxy)


__all__ = ["ASGIAdapter", "create_app"]
