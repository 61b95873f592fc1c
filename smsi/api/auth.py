import logging

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from smsi.core.auth import Principal, require_auth
from smsi.core.config import settings
from smsi.core.database import get_db
from smsi.core.errors import AuthenticationError, NotFoundError, ValidationFailed
from smsi.core.security import create_token, token_max_age_seconds, validate_password
from smsi.services import audit
from smsi.services.users import create_user, get_user, verify_credentials

logger = logging.getLogger(__name__)

router = APIRouter()


class RegisterBody(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(min_length=8)
    confirm_password: str
    consent_rgpd: bool


class LoginBody(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


def public_user(user) -> dict:
    return {"id": user.id, "name": user.name, "email": user.email, "role": user.role}


@router.post("/register", status_code=201)
def register(payload: RegisterBody, request: Request, db: Session = Depends(get_db)):
    if not payload.consent_rgpd:
        raise ValidationFailed("RGPD consent is required")
    if payload.password != payload.confirm_password:
        raise ValidationFailed("Passwords do not match")
    problems = validate_password(payload.password)
    if problems:
        raise ValidationFailed("Password does not meet security requirements", details=problems)

    user = create_user(db, payload.name, payload.email, payload.password, role="user", consent_rgpd=True)
    audit.log_audit(db, request, audit.REGISTER, "user", user_id=user.id, resource_id=user.id)
    return {"message": "User registered successfully", "user": public_user(user)}


@router.post("/login")
def login(payload: LoginBody, request: Request, response: Response, db: Session = Depends(get_db)):
    user = verify_credentials(db, payload.email, payload.password)
    if user is None:
        logger.warning("Failed login attempt")
        raise AuthenticationError("Invalid email or password")

    token = create_token(user.id, user.email, user.role)
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=token_max_age_seconds(),
        httponly=True,
        secure=settings.is_production(),
        samesite="strict",
        path="/",
    )
    logger.info(f"User {user.id} logged in")
    audit.log_audit(db, request, audit.LOGIN, "session", user_id=user.id)
    return {"message": "Login successful", "user": public_user(user), "token": token}


@router.post("/logout")
def logout(request: Request, response: Response, principal: Principal = Depends(require_auth),
           db: Session = Depends(get_db)):
    # tokens are stateless; the client copy is all that goes away
    response.delete_cookie(settings.AUTH_COOKIE_NAME, path="/")
    audit.log_audit(db, request, audit.LOGOUT, "session", user_id=principal.id)
    return {"message": "Logged out"}


@router.get("/me")
def me(principal: Principal = Depends(require_auth), db: Session = Depends(get_db)):
    user = get_user(db, principal.id)
    if user is None:
        raise NotFoundError("User not found")
    return {"user": {**public_user(user), "last_login": user.last_login, "created_at": user.created_at}}
