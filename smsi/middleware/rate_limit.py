import logging
import math

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)


def client_address(request: Request, trust_proxy_headers: bool = True) -> str:
    """Resolve the caller's address.

    Proxy headers are client-controlled unless a proxy in front rewrites them;
    with ``trust_proxy_headers=False`` only the socket peer is used.
    """
    if trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip() or "unknown"
        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rejects with 429 once an address exceeds its window's quota.

    Runs before authentication and does not depend on its outcome.
    """

    def __init__(self, app, limiter, trust_proxy_headers: bool = True):
        super().__init__(app)
        self.limiter = limiter
        self.trust_proxy_headers = trust_proxy_headers

    async def dispatch(self, request: Request, call_next):
        address = client_address(request, self.trust_proxy_headers)
        allowed, retry_after = self.limiter.hit(address)
        if not allowed:
            logger.warning(f"Rate limit exceeded for {address}")
            return JSONResponse(
                status_code=429,
                content={"error": {"message": "Too many requests", "type": "rate_limited", "status_code": 429}},
                headers={"Retry-After": str(max(1, math.ceil(retry_after)))},
            )
        return await call_next(request)
