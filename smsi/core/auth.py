"""
Request authentication and role gating.

Flow per request: extract token (cookie first, then ``Authorization: Bearer``),
verify it, resolve the principal, then check the route's required role.
The resolved principal is stored on ``request.state`` so it is verified at
most once per request.
"""
import logging
from typing import Any, Dict, Literal, Optional

from fastapi import Depends, Request
from pydantic import BaseModel, ValidationError

from smsi.core.config import settings
from smsi.core.errors import AuthenticationError, AuthorizationError, SelfDeletionError
from smsi.core.security import verify_token

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


class Principal(BaseModel):
    id: int
    email: str
    role: Literal["user", "admin"]


def extract_token_from_header(auth_header: Optional[str]) -> Optional[str]:
    if not auth_header or not auth_header.startswith(BEARER_PREFIX):
        return None
    return auth_header[len(BEARER_PREFIX):] or None


def extract_token(request: Request) -> Optional[str]:
    """A present cookie wins over the header, even when the header is valid."""
    cookie_token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if cookie_token:
        return cookie_token
    return extract_token_from_header(request.headers.get("authorization"))


def principal_from_claims(claims: Optional[Dict[str, Any]]) -> Optional[Principal]:
    if not claims:
        return None
    try:
        return Principal(id=claims["user_id"], email=claims["email"], role=claims["role"])
    except (KeyError, ValidationError):
        return None


def get_current_principal(request: Request) -> Principal:
    principal = getattr(request.state, "principal", None)
    if principal is not None:
        return principal

    # already verified by the edge middleware for this request
    claims = getattr(request.state, "edge_claims", None)
    if claims is None:
        token = extract_token(request)
        if token is None:
            raise AuthenticationError()
        claims = verify_token(token)

    principal = principal_from_claims(claims)
    if principal is None:
        raise AuthenticationError()
    request.state.principal = principal
    return principal


def require_role(role: Literal["user", "admin"]):
    """Gate a route on a role.

    ``require_role("user")`` admits any authenticated principal, admins
    included; ``require_role("admin")`` admits admins only.
    """
    def checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role != role and role != "user":
            logger.info(f"Principal {principal.id} with role {principal.role} denied {role} route")
            raise AuthorizationError()
        return principal
    return checker


require_auth = get_current_principal


def ensure_not_self(principal: Principal, target_user_id: int) -> None:
    if principal.id == target_user_id:
        raise SelfDeletionError()
