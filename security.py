"""
Request gates: origin policy, Basic-Auth challenge and body size limit.
"""

import logging
import secrets
from typing import Iterable, Optional

from fastapi import HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from starlette.datastructures import Headers
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, PlainTextResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger("catalog.cors")
auth_logger = logging.getLogger("catalog.auth")


def origin_allowed(origin: Optional[str], allowed_origins: Iterable[str], trusted_suffix: str) -> bool:
    """Decide whether a browser origin may call the API.

    Requests without an Origin header (curl, server to server, same origin)
    are always allowed. A single trailing slash is ignored.
    """
    if not origin:
        return True
    clean = origin[:-1] if origin.endswith("/") else origin
    return clean in allowed_origins or clean.endswith(trusted_suffix)


class OriginCorsMiddleware(CORSMiddleware):
    """CORSMiddleware with an allow-list plus a trusted domain suffix.

    Requests from any other origin are refused here with a 403, preflight or
    not, so they never reach the routes. The exempt paths (the health check)
    are served without CORS headers instead.
    """

    def __init__(self, app: ASGIApp, trusted_suffix: str,
                 exempt_paths: Iterable[str] = ("/",), **kwargs) -> None:
        super().__init__(app, **kwargs)
        self.trusted_suffix = trusted_suffix
        self.exempt_paths = frozenset(exempt_paths)

    def is_allowed_origin(self, origin: str) -> bool:
        return origin_allowed(origin, self.allow_origins, self.trusted_suffix)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        origin = Headers(scope=scope).get("origin")
        if origin is not None and not self.is_allowed_origin(origin):
            if scope["path"] in self.exempt_paths:
                await self.app(scope, receive, send)
                return
            logger.warning("CORS blocked for origin: %s", origin)
            response = PlainTextResponse("Disallowed CORS origin", status_code=403)
            await response(scope, receive, send)
            return

        await super().__call__(scope, receive, send)


class BasicAuthMiddleware(BaseHTTPMiddleware):
    """Challenge every request for one fixed username/password pair.

    OPTIONS requests and the exempt paths (the health check) pass through.
    """

    def __init__(self, app: ASGIApp, username: str, password: str,
                 exempt_paths: Iterable[str] = ("/",), realm: str = "catalog") -> None:
        super().__init__(app)
        self.username = username
        self.password = password
        self.exempt_paths = frozenset(exempt_paths)
        self.realm = realm
        self.security = HTTPBasic(realm=realm, auto_error=False)

    def check_credentials(self, credentials: Optional[HTTPBasicCredentials]) -> bool:
        if credentials is None:
            return False
        user_ok = secrets.compare_digest(credentials.username.encode(), self.username.encode())
        pass_ok = secrets.compare_digest(credentials.password.encode(), self.password.encode())
        return user_ok and pass_ok

    async def dispatch(self, request, call_next):
        if request.method == "OPTIONS" or request.url.path in self.exempt_paths:
            return await call_next(request)

        try:
            credentials = await self.security(request)
        except HTTPException:
            # malformed Basic header
            credentials = None

        if not self.check_credentials(credentials):
            auth_logger.info("Rejected credentials for %s %s", request.method, request.url.path)
            return JSONResponse(
                {"error": "Unauthorized"},
                status_code=401,
                headers={"WWW-Authenticate": f'Basic realm="{self.realm}"'},
            )
        return await call_next(request)


class BodySizeLimitMiddleware:
    """Reject request bodies larger than max_bytes with a 413.

    The declared Content-Length is checked up front; bodies without one
    (chunked uploads) are counted as they are received.
    """

    def __init__(self, app: ASGIApp, max_bytes: int) -> None:
        self.app = app
        self.max_bytes = max_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        length = Headers(scope=scope).get("content-length")
        if length is not None and length.isdigit() and int(length) > self.max_bytes:
            await self.reject(scope, receive, send)
            return

        received = 0
        response_started = False

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_bytes:
                    # rendered as {"error": ...} by the app's HTTPException handler
                    raise HTTPException(status_code=413, detail="Payload too large")
            return message

        async def tracked_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, limited_receive, tracked_send)
        except HTTPException as exc:
            if exc.status_code != 413 or response_started:
                raise
            await self.reject(scope, receive, send)

    async def reject(self, scope: Scope, receive: Receive, send: Send) -> None:
        response = JSONResponse({"error": "Payload too large"}, status_code=413)
        await response(scope, receive, send)
