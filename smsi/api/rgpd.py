"""
Personal data rights: export everything held about the caller, or erase it.
"""
import logging

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from smsi.core.auth import Principal, require_auth
from smsi.core.database import get_db
from smsi.core.errors import NotFoundError, ValidationFailed
from smsi.core.security import verify_password
from smsi.models.orm import AuditLog, Module, Result, utcnow
from smsi.services import audit
from smsi.services.users import delete_user, get_user

logger = logging.getLogger(__name__)

router = APIRouter()


class DeleteAccount(BaseModel):
    password: str = Field(min_length=1)


@router.get("/export")
def export_data(request: Request, principal: Principal = Depends(require_auth), db: Session = Depends(get_db)):
    user = get_user(db, principal.id)
    if user is None:
        raise NotFoundError("User not found")

    results = db.execute(
        select(Result, Module.title)
        .join(Module, Module.id == Result.module_id)
        .where(Result.user_id == user.id)
        .order_by(Result.completed_at)
    ).all()
    logs = db.scalars(select(AuditLog).where(AuditLog.user_id == user.id).order_by(AuditLog.created_at)).all()

    export = {
        "export_date": utcnow(),
        "user": {
            "id": user.id, "name": user.name, "email": user.email, "role": user.role,
            "consent_rgpd": user.consent_rgpd, "last_login": user.last_login,
            "created_at": user.created_at, "updated_at": user.updated_at,
        },
        "results": [
            {"module_id": r.module_id, "module_title": title, "score": r.score, "passed": r.passed,
             "total_questions": r.total_questions, "correct_answers": r.correct_answers,
             "time_spent_minutes": r.time_spent_minutes, "certificate_generated": r.certificate_generated,
             "completed_at": r.completed_at}
            for r, title in results
        ],
        "audit_logs": [
            {"action": log.action, "resource": log.resource, "resource_id": log.resource_id,
             "ip_address": log.ip_address, "created_at": log.created_at}
            for log in logs
        ],
    }
    audit.log_audit(db, request, audit.DATA_EXPORT, "user", user_id=user.id, resource_id=user.id)
    return export


@router.delete("/delete")
def delete_account(payload: DeleteAccount, request: Request, principal: Principal = Depends(require_auth),
                   db: Session = Depends(get_db)):
    user = get_user(db, principal.id)
    if user is None:
        raise NotFoundError("User not found")
    if not verify_password(payload.password, user.password_hash):
        raise ValidationFailed("Invalid password")

    user_id = user.id
    delete_user(db, user)
    logger.info(f"User {user_id} erased their account")
    # audit rows carry a plain user id, so the entry outlives the account
    audit.log_audit(db, request, audit.DATA_DELETE, "user", user_id=user_id, resource_id=user_id)
    return {"message": "Account and personal data deleted"}
