"""
Session Middleware - Integrates cookie sessions with the request lifecycle.

This middleware orchestrates the session lifecycle:
1. Attach a lazy SessionSlot per configured session before the handler
2. Register finalization as an on-headers hook before the handler runs
3. Let the handler read/assign sessions through the request; the final
   state is persisted (or cleared) right before headers go out, even
   when the handler raised and an error response is sent instead
"""

from __future__ import annotations

import logging
from typing import Any

from crumb.cookies import Cookies, KeyRing
from crumb.middleware import Handler, MiddlewareStack, RequestCtx
from crumb.request import DEFAULT_SESSION_NAME, Request
from crumb.response import Response
from crumb.sessions import (
    ConfigurationError,
    SessionConfig,
    SessionSlot,
    create_codec,
    normalize_configs,
)
from crumb.sessions.policy import ConfigLike


class CookieSessionMiddleware:
    """
    Middleware for one named cookie session.

    Architecture:
        Request → CookieSessionMiddleware → [attach slot]
                → request.on_headers(slot.finalize) → Handler → send

    The slot is stored in ``request.state["sessions"][session_name]``. When
    the accessor key is the reserved ``"session"``, it also backs
    ``request.session`` / ``request.session_options``.

    Example:
        >>> middleware = CookieSessionMiddleware(SessionConfig(secret="s3cret"))
        >>> app.middleware_stack.add(middleware, priority=15)
    """

    def __init__(self, config: SessionConfig):
        """
        Initialize cookie session middleware.

        Args:
            config: Validated session configuration

        Raises:
            ConfigurationError: from codec setup (encrypted without keys)
        """
        self.config = config
        self.codec = create_codec(config)
        self.keys = KeyRing(config.resolved_keys()) if config.signed else None
        self.name = f"cookie_session:{config.session_name}"
        self.logger = logging.getLogger("crumb.middleware.session")
        self.logger.debug(
            "session %r: cookie=%r signed=%s encrypted=%s",
            config.session_name, config.name, config.signed, config.encrypted,
        )

    def attach(self, request: Request) -> SessionSlot:
        """Create this request's slot and expose it on the request."""
        slots = request.state.setdefault("sessions", {})
        session_name = self.config.session_name
        if session_name in slots:
            raise ConfigurationError(
                f"Session accessor key {session_name!r} is installed more than once"
            )

        slot = SessionSlot(self.config, Cookies(request, self.keys), self.codec)
        slots[session_name] = slot

        if session_name == DEFAULT_SESSION_NAME:
            request.state["session_slot"] = slot

        return slot

    async def __call__(
        self,
        request: Request,
        ctx: RequestCtx,
        next_handler: Handler,
    ) -> Response:
        slot = self.attach(request)

        # Final state is read when headers are about to be sent, on
        # whatever response that is (error responses included)
        request.on_headers(slot.finalize)

        return await next_handler(request, ctx)


class SessionMiddleware:
    """
    Composes one CookieSessionMiddleware per configuration.

    Stages run in the given order: stage ``i + 1`` runs inside stage
    ``i``'s continuation, so an error in any stage short-circuits the rest
    and reaches the pipeline's error handling.
    """

    def __init__(self, *configs: ConfigLike, **options: Any):
        if options:
            configs = configs + (options,)
        self.configs = normalize_configs(*configs)
        self.stages = [CookieSessionMiddleware(config) for config in self.configs]

        self._stack = MiddlewareStack()
        for stage in self.stages:
            self._stack.add(stage, name=stage.name)

    @property
    def session_names(self) -> list[str]:
        return [config.session_name for config in self.configs]

    async def __call__(
        self,
        request: Request,
        ctx: RequestCtx,
        next_handler: Handler,
    ) -> Response:
        handler = self._stack.build_handler(next_handler)
        return await handler(request, ctx)


def cookie_session(*configs: ConfigLike, **options: Any) -> SessionMiddleware:
    """
    Factory function to create cookie session middleware.

    Args:
        *configs: SessionConfig instances, option mappings, or lists of them
        **options: Options of one more session (``secret=..., name=...``)

    Returns:
        SessionMiddleware

    Raises:
        ConfigurationError: signing without keys, duplicate cookie name or
            accessor key, or an invalid option

    Example:
        >>> stack.add(cookie_session(secret="s3cret"), priority=15)
        >>> stack.add(cookie_session(
        ...     {"name": "sess", "secret": "a"},
        ...     {"name": "prefs", "session_name": "prefs", "signed": False},
        ... ))
    """
    return SessionMiddleware(*configs, **options)


__all__ = [
    "CookieSessionMiddleware",
    "SessionMiddleware",
    "cookie_session",
]
