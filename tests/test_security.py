from datetime import timedelta

import jwt
import pytest
from pydantic import ValidationError

from smsi.core.config import Settings, settings
from smsi.core.security import (
    create_token, hash_password, validate_password, verify_password, verify_token,
)


def test_hash_and_verify_password():
    h = hash_password("Str0ng!Pass")
    assert h != "Str0ng!Pass"
    assert verify_password("Str0ng!Pass", h)
    assert not verify_password("wrong", h)


def test_verify_password_with_garbage_hash_is_false():
    assert verify_password("anything", "not-a-bcrypt-hash") is False


def test_password_policy_messages():
    assert validate_password("Str0ng!Pass") == []
    problems = validate_password("short")
    assert "Password must be at least 8 characters long" in problems
    assert "Password must contain at least one uppercase letter" in problems
    assert "Password must contain at least one number" in problems
    assert "Password must contain at least one special character" in problems


def test_token_round_trip():
    token = create_token(7, "a@example.com", "admin")
    claims = verify_token(token)
    assert claims["user_id"] == 7
    assert claims["email"] == "a@example.com"
    assert claims["role"] == "admin"
    assert claims["exp"] - claims["iat"] == settings.JWT_EXPIRES_DAYS * 86400


def test_expired_token_rejected():
    token = create_token(7, "a@example.com", "user", expires_in=timedelta(seconds=-1))
    assert verify_token(token) is None


def test_token_with_other_secret_rejected():
    token = create_token(7, "a@example.com", "user")
    assert verify_token(token, secret="another-secret-of-sufficient-length!") is None


def test_malformed_and_unsigned_tokens_rejected():
    assert verify_token("") is None
    assert verify_token("abc") is None
    assert verify_token("a.b.c") is None
    unsigned = jwt.encode({"user_id": 1, "email": "x@example.com", "role": "admin"}, None, algorithm="none")
    assert verify_token(unsigned) is None


def test_wrong_algorithm_rejected():
    token = jwt.encode({"user_id": 1}, settings.jwt_secret(), algorithm="HS512")
    assert verify_token(token) is None


def test_only_hs256_is_configurable():
    assert Settings(JWT_ALGORITHM="HS256").JWT_ALGORITHM == "HS256"
    with pytest.raises(ValidationError):
        Settings(JWT_ALGORITHM="RS256")
