"""Custom ASGI middleware used by the FastAPI app."""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.datastructures import Headers
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from marketplace.core.config import settings
from marketplace.core.logging import request_id_ctx_var, user_id_ctx_var


class RequestContextLogMiddleware(BaseHTTPMiddleware):
    """Tags each request with an ID and logs who called what.

    ``user_id`` and ``role`` are filled in by the identity dependency; routes
    that never authenticate (health checks, rejected cookies) log ``-`` for both.
    """

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        request_token = request_id_ctx_var.set(request_id)
        user_token = user_id_ctx_var.set("-")
        start = time.perf_counter()
        response: Response | None = None
        try:
            response = await call_next(request)
            response.headers.setdefault("X-Request-ID", request_id)
            return response
        finally:
            logger.bind(
                method=request.method,
                path=request.url.path,
                status=response.status_code if response is not None else 500,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
                user_id=getattr(request.state, "user_id", "-"),
                role=getattr(request.state, "role", "-"),
            ).info("request_completed")
            request_id_ctx_var.reset(request_token)
            user_id_ctx_var.reset(user_token)


def _too_large() -> JSONResponse:
    return JSONResponse(status_code=413, content={"error": "Request entity too large"})


class BodySizeLimitMiddleware:
    """Cap request bodies at ``MAX_BODY_BYTES``.

    A declared ``Content-Length`` over the cap is refused before reading.
    Otherwise the body is read up front, counting bytes as chunks arrive, so
    chunked uploads hit the same limit; the buffered body is then replayed
    to the app.
    """

    def __init__(self, app: ASGIApp, max_body_bytes: int | None = None) -> None:
        self.app = app
        self.max_body_bytes = max_body_bytes or settings.MAX_BODY_BYTES

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        declared = Headers(scope=scope).get("content-length")
        if declared is not None and declared.isdigit() and int(declared) > self.max_body_bytes:
            await _too_large()(scope, receive, send)
            return

        body = bytearray()
        while True:
            message = await receive()
            if message["type"] != "http.request":
                # Client went away mid-upload; let the app see the disconnect.
                pending: list[Message] = [message]
                break
            body.extend(message.get("body", b""))
            if len(body) > self.max_body_bytes:
                await _too_large()(scope, receive, send)
                return
            if not message.get("more_body", False):
                pending = [{"type": "http.request", "body": bytes(body), "more_body": False}]
                break

        async def replay() -> Message:
            if pending:
                return pending.pop(0)
            return await receive()

        await self.app(scope, replay, send)
