import logging
from typing import Dict, Optional

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from smsi.core.errors import ConflictError
from smsi.core.security import dummy_verify, hash_password, verify_password
from smsi.models.orm import Module, Result, User, utcnow

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.get(User, user_id)


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.scalar(select(User).where(User.email == normalize_email(email)))


def create_user(db: Session, name: str, email: str, password: str, role: str = "user", consent_rgpd: bool = False) -> User:
    email = normalize_email(email)
    if get_user_by_email(db, email) is not None:
        raise ConflictError("User with this email already exists")
    user = User(name=name, email=email, password_hash=hash_password(password), role=role, consent_rgpd=consent_rgpd)
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("User with this email already exists")
    db.refresh(user)
    return user


def touch_last_login(db: Session, user: User) -> None:
    """Best effort; a failed write never blocks the login."""
    try:
        user.last_login = utcnow()
        db.commit()
    except SQLAlchemyError as e:
        logger.warning(f"Could not update last_login for user {user.id}: {e}")
        db.rollback()


def verify_credentials(db: Session, email: str, password: str) -> Optional[User]:
    user = get_user_by_email(db, email)
    if user is None:
        dummy_verify()
        return None
    if not verify_password(password, user.password_hash):
        return None
    touch_last_login(db, user)
    return user


def update_user(db: Session, user: User, name: Optional[str] = None, email: Optional[str] = None,
                role: Optional[str] = None) -> User:
    if email is not None:
        email = normalize_email(email)
        other = get_user_by_email(db, email)
        if other is not None and other.id != user.id:
            raise ConflictError("User with this email already exists")
        user.email = email
    if name is not None:
        user.name = name
    if role is not None:
        user.role = role
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("User with this email already exists")
    db.refresh(user)
    return user


def delete_user(db: Session, user: User) -> None:
    """Erase the account; its results go with it through the relationship cascade."""
    db.delete(user)
    db.commit()


def user_stats(db: Session) -> Dict[str, int]:
    row = db.execute(select(
        func.count(User.id),
        func.coalesce(func.sum(case((User.role == "admin", 1), else_=0)), 0),
        func.coalesce(func.sum(case((User.role == "user", 1), else_=0)), 0),
    )).one()
    return {"total": row[0], "admins": row[1], "users": row[2]}


def user_progress(db: Session, user_id: int) -> Dict[str, float]:
    total_modules = db.scalar(select(func.count(Module.id)).where(Module.is_active.is_(True))) or 0
    row = db.execute(
        select(
            func.count(Result.id),
            func.coalesce(func.sum(case((Result.passed.is_(True), 1), else_=0)), 0),
            func.coalesce(func.avg(Result.score), 0),
            func.coalesce(func.sum(Result.time_spent_minutes), 0),
        )
        .join(Module, Module.id == Result.module_id)
        .where(Result.user_id == user_id, Module.is_active.is_(True))
    ).one()
    return {
        "user_id": user_id,
        "total_modules": total_modules,
        "completed_modules": row[0],
        "passed_modules": row[1],
        "average_score": float(row[2]),
        "certificates_earned": row[1],
        "total_time_spent": float(row[3]),
    }
