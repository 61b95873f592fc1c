"""
Password hashing and session token issuance/verification.
"""
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import jwt
from passlib.context import CryptContext

from smsi.core.config import settings

logger = logging.getLogger(__name__)

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

_SPECIAL_CHARS = re.compile(r'[!@#$%^&*(),.?":{}|<>]')


def hash_password(plaintext: str) -> str:
    return pwd_context.hash(plaintext)


def verify_password(plaintext: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(plaintext, password_hash)
    except (ValueError, TypeError):
        # unknown or corrupt hash format counts as a mismatch
        logger.warning("Stored password hash could not be parsed")
        return False


def dummy_verify() -> None:
    """Spend a comparable amount of time when the account does not exist."""
    pwd_context.dummy_verify()


def validate_password(password: str) -> List[str]:
    """Return the list of policy violations, empty when the password is acceptable."""
    errors = []
    if len(password) < settings.PASSWORD_MIN_LENGTH:
        errors.append(f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters long")
    if settings.PASSWORD_REQUIRE_UPPERCASE and not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if settings.PASSWORD_REQUIRE_LOWERCASE and not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if settings.PASSWORD_REQUIRE_NUMBERS and not re.search(r"\d", password):
        errors.append("Password must contain at least one number")
    if settings.PASSWORD_REQUIRE_SPECIAL and not _SPECIAL_CHARS.search(password):
        errors.append("Password must contain at least one special character")
    return errors


def create_token(user_id: int, email: str, role: str, expires_in: Optional[timedelta] = None) -> str:
    now = datetime.now(timezone.utc)
    ttl = expires_in if expires_in is not None else timedelta(days=settings.JWT_EXPIRES_DAYS)
    payload = {
        "user_id": user_id,
        "email": email,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret(), algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str, secret: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """Decode and check a session token.

    Returns the claims, or None for every failure mode (malformed, unsigned,
    wrong algorithm, bad signature, expired). Callers cannot tell which check
    failed.
    """
    if not isinstance(token, str) or token.count(".") != 2:
        return None
    try:
        return jwt.decode(token, secret or settings.jwt_secret(), algorithms=[settings.JWT_ALGORITHM])
    except Exception as e:
        logger.debug(f"Token rejected: {type(e).__name__}")
        return None


def token_max_age_seconds() -> int:
    return settings.JWT_EXPIRES_DAYS * 24 * 60 * 60
