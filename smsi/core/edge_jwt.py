"""
HS256 token verification using only the standard library.

Runs in the ASGI layer ahead of the application, where the JWT library and
the settings module are not imported. Applies the same checks PyJWT applies
with default options and zero leeway, so both paths reach the same verdict
and the same claims for a given token and secret.
"""
import base64
import hashlib
import hmac
import json
import time
from typing import Any, Dict, Optional

ALGORITHM = "HS256"


def _b64url_decode(segment: bytes) -> bytes:
    rem = len(segment) % 4
    if rem > 0:
        segment += b"=" * (4 - rem)
    return base64.urlsafe_b64decode(segment)


def _json_object(raw: bytes) -> Optional[Dict[str, Any]]:
    value = json.loads(raw)
    return value if isinstance(value, dict) else None


def _claims_valid(payload: Dict[str, Any], now: float) -> bool:
    if "iat" in payload and int(payload["iat"]) > now:
        return False
    if "nbf" in payload and int(payload["nbf"]) > now:
        return False
    if "exp" in payload and int(payload["exp"]) <= now:
        return False
    # no audience is configured, so any non-empty aud claim is foreign
    if payload.get("aud"):
        return False
    for name in ("sub", "jti"):
        if name in payload and not isinstance(payload[name], str):
            return False
    return True


def verify(token: str, secret: str, now: Optional[float] = None) -> Optional[Dict[str, Any]]:
    """Return the token's claims, or None if any check fails."""
    try:
        if not isinstance(token, str) or token.count(".") != 2:
            return None
        header_seg, payload_seg, signature_seg = token.encode("utf-8").split(b".")

        header = _json_object(_b64url_decode(header_seg))
        if header is None or header.get("alg") != ALGORITHM:
            return None
        if "kid" in header and not isinstance(header["kid"], str):
            return None
        # unencoded (detached) payloads are not supported
        if header.get("b64", True) is False:
            return None

        payload = _json_object(_b64url_decode(payload_seg))
        if payload is None:
            return None

        expected = hmac.new(secret.encode("utf-8"), header_seg + b"." + payload_seg, hashlib.sha256).digest()
        if not hmac.compare_digest(expected, _b64url_decode(signature_seg)):
            return None

        if not _claims_valid(payload, time.time() if now is None else now):
            return None
        return payload
    except Exception:
        return None
