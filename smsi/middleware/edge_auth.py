"""
Token check for configured path prefixes, ahead of routing.

Verification goes through ``smsi.core.edge_jwt`` rather than the JWT library.
Verified claims are left in ``scope["state"]["edge_claims"]`` and picked up
by the route gate without a second verification.
"""
import logging
from typing import Iterable, Optional

from starlette.requests import HTTPConnection
from starlette.responses import JSONResponse

from smsi.core import edge_jwt

logger = logging.getLogger(__name__)


def _matches(path: str, prefixes: Iterable[str]) -> bool:
    return any(path == p or path.startswith(p.rstrip("/") + "/") for p in prefixes)


def _error(status_code: int, message: str, error_type: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"message": message, "type": error_type, "status_code": status_code}},
    )


class EdgeAuthMiddleware:
    def __init__(self, app, secret: str, protected_paths: Iterable[str] = (), admin_paths: Iterable[str] = (),
                 cookie_name: str = "auth-token"):
        self.app = app
        self.secret = secret
        self.admin_paths = list(admin_paths)
        self.protected_paths = list(protected_paths) + self.admin_paths
        self.cookie_name = cookie_name

    def _token(self, conn: HTTPConnection) -> Optional[str]:
        cookie_token = conn.cookies.get(self.cookie_name)
        if cookie_token:
            return cookie_token
        header = conn.headers.get("authorization")
        if header and header.startswith("Bearer "):
            return header[7:] or None
        return None

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http" or not _matches(scope["path"], self.protected_paths):
            await self.app(scope, receive, send)
            return

        conn = HTTPConnection(scope)
        token = self._token(conn)
        claims = edge_jwt.verify(token, self.secret) if token else None
        if claims is None:
            response = _error(401, "Authentication required", "unauthenticated")
        elif _matches(scope["path"], self.admin_paths) and claims.get("role") != "admin":
            logger.info(f"Edge gate denied {scope['path']} for role {claims.get('role')!r}")
            response = _error(403, "Insufficient permissions", "forbidden")
        else:
            scope.setdefault("state", {})["edge_claims"] = claims
            await self.app(scope, receive, send)
            return
        await response(scope, receive, send)
