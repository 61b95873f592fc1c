import math
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, EmailStr, Field, model_validator
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from smsi.api.modules import module_dict
from smsi.core.auth import Principal, ensure_not_self, require_role
from smsi.core.database import get_db
from smsi.core.errors import NotFoundError
from smsi.models.orm import AuditLog, Module, Quiz, User
from smsi.services import audit
from smsi.services.users import create_user, delete_user, get_user, update_user, user_stats

router = APIRouter()

Role = Literal["user", "admin"]
Difficulty = Literal["beginner", "intermediate", "advanced"]


# ============= Users =============

class UserCreate(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(min_length=8)
    role: Role = "user"
    consent_rgpd: bool = True


class UserUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    email: Optional[EmailStr] = None
    role: Optional[Role] = None


def admin_user_dict(u: User) -> dict:
    return {
        "id": u.id, "name": u.name, "email": u.email, "role": u.role, "consent_rgpd": u.consent_rgpd,
        "last_login": u.last_login, "created_at": u.created_at, "updated_at": u.updated_at,
    }


def load_user(db: Session, user_id: int) -> User:
    user = get_user(db, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


@router.get("/users")
def list_users(page: int = Query(1, ge=1), limit: int = Query(50, ge=1, le=200),
               admin: Principal = Depends(require_role("admin")), db: Session = Depends(get_db)):
    users = db.scalars(select(User).order_by(User.created_at.desc(), User.id.desc()).limit(limit).offset((page - 1) * limit)).all()
    stats = user_stats(db)
    return {
        "users": [admin_user_dict(u) for u in users],
        "pagination": {"page": page, "limit": limit, "total": stats["total"], "pages": math.ceil(stats["total"] / limit)},
        "stats": stats,
    }


@router.post("/users", status_code=201)
def create_user_admin(payload: UserCreate, request: Request, admin: Principal = Depends(require_role("admin")),
                      db: Session = Depends(get_db)):
    user = create_user(db, payload.name, payload.email, payload.password, role=payload.role, consent_rgpd=payload.consent_rgpd)
    audit.log_audit(db, request, audit.USER_CREATE, "user", user_id=admin.id, resource_id=user.id, details={"role": user.role})
    return {"message": "User created successfully", "user": admin_user_dict(user)}


@router.get("/users/{user_id}")
def get_user_admin(user_id: int, admin: Principal = Depends(require_role("admin")), db: Session = Depends(get_db)):
    return {"user": admin_user_dict(load_user(db, user_id))}


@router.put("/users/{user_id}")
def update_user_admin(user_id: int, payload: UserUpdate, request: Request,
                      admin: Principal = Depends(require_role("admin")), db: Session = Depends(get_db)):
    user = load_user(db, user_id)
    changes = payload.model_dump(exclude_none=True)
    update_user(db, user, **changes)
    audit.log_audit(db, request, audit.USER_UPDATE, "user", user_id=admin.id, resource_id=user_id,
                    details={"fields": sorted(changes)})
    return {"message": "User updated successfully", "user": admin_user_dict(user)}


@router.delete("/users/{user_id}")
def delete_user_admin(user_id: int, request: Request, admin: Principal = Depends(require_role("admin")),
                      db: Session = Depends(get_db)):
    ensure_not_self(admin, user_id)
    user = load_user(db, user_id)
    delete_user(db, user)
    audit.log_audit(db, request, audit.USER_DELETE, "user", user_id=admin.id, resource_id=user_id)
    return {"message": "User deleted successfully"}


# ============= Modules =============

class ModuleCreate(BaseModel):
    title: str = Field(min_length=5)
    description: str = Field(min_length=10)
    content: str = Field(min_length=50)
    duration_minutes: int = Field(default=30, ge=5, le=180)
    difficulty_level: Difficulty = "beginner"
    is_active: bool = True


class ModuleUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=5)
    description: Optional[str] = Field(default=None, min_length=10)
    content: Optional[str] = Field(default=None, min_length=50)
    duration_minutes: Optional[int] = Field(default=None, ge=5, le=180)
    difficulty_level: Optional[Difficulty] = None
    is_active: Optional[bool] = None


class QuizCreate(BaseModel):
    question: str = Field(min_length=1)
    options: List[str] = Field(min_length=2)
    correct_option: int = Field(ge=0)
    explanation: str = ""
    points: int = Field(default=1, ge=1)

    @model_validator(mode="after")
    def correct_option_in_range(self):
        if self.correct_option >= len(self.options):
            raise ValueError("correct_option must index into options")
        return self


def load_module(db: Session, module_id: int) -> Module:
    m = db.get(Module, module_id)
    if m is None:
        raise NotFoundError("Module not found")
    return m


@router.get("/modules")
def list_modules_admin(admin: Principal = Depends(require_role("admin")), db: Session = Depends(get_db)):
    modules = db.scalars(select(Module).order_by(Module.created_at, Module.id)).all()
    stats = {"total": len(modules), "active": sum(1 for m in modules if m.is_active)}
    for level in ("beginner", "intermediate", "advanced"):
        stats[level] = sum(1 for m in modules if m.difficulty_level == level)
    return {"modules": [module_dict(m) for m in modules], "stats": stats}


@router.post("/modules", status_code=201)
def create_module(payload: ModuleCreate, request: Request, admin: Principal = Depends(require_role("admin")),
                  db: Session = Depends(get_db)):
    m = Module(**payload.model_dump())
    db.add(m); db.commit(); db.refresh(m)
    audit.log_audit(db, request, audit.MODULE_CREATE, "module", user_id=admin.id, resource_id=m.id)
    return {"message": "Module created successfully", "module": module_dict(m)}


@router.put("/modules/{module_id}")
def update_module(module_id: int, payload: ModuleUpdate, request: Request,
                  admin: Principal = Depends(require_role("admin")), db: Session = Depends(get_db)):
    m = load_module(db, module_id)
    changes = payload.model_dump(exclude_none=True)
    for k, v in changes.items():
        setattr(m, k, v)
    db.commit(); db.refresh(m)
    audit.log_audit(db, request, audit.MODULE_UPDATE, "module", user_id=admin.id, resource_id=module_id,
                    details={"fields": sorted(changes)})
    return {"message": "Module updated successfully", "module": module_dict(m)}


@router.delete("/modules/{module_id}")
def deactivate_module(module_id: int, request: Request, admin: Principal = Depends(require_role("admin")),
                      db: Session = Depends(get_db)):
    m = load_module(db, module_id)
    m.is_active = False
    db.commit()
    audit.log_audit(db, request, audit.MODULE_DELETE, "module", user_id=admin.id, resource_id=module_id)
    return {"message": "Module deactivated"}


@router.post("/modules/{module_id}/quizzes", status_code=201)
def add_question(module_id: int, payload: QuizCreate, request: Request,
                 admin: Principal = Depends(require_role("admin")), db: Session = Depends(get_db)):
    load_module(db, module_id)
    q = Quiz(module_id=module_id, **payload.model_dump())
    db.add(q); db.commit(); db.refresh(q)
    audit.log_audit(db, request, audit.QUIZ_CREATE, "quiz", user_id=admin.id, resource_id=q.id,
                    details={"module_id": module_id})
    return {
        "quiz": {"id": q.id, "module_id": q.module_id, "question": q.question, "options": q.options,
                 "correct_option": q.correct_option, "explanation": q.explanation, "points": q.points}
    }


# ============= Audit =============

@router.get("/audit-logs")
def list_audit_logs(limit: int = Query(50, ge=1, le=500), offset: int = Query(0, ge=0),
                    admin: Principal = Depends(require_role("admin")), db: Session = Depends(get_db)):
    rows = db.execute(
        select(AuditLog, User.email)
        .outerjoin(User, User.id == AuditLog.user_id)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit).offset(offset)
    ).all()
    total = db.scalar(select(func.count(AuditLog.id))) or 0
    logs = [
        {"id": log.id, "user_id": log.user_id, "user_email": email, "action": log.action, "resource": log.resource,
         "resource_id": log.resource_id, "ip_address": log.ip_address, "user_agent": log.user_agent,
         "details": log.details, "created_at": log.created_at}
        for log, email in rows
    ]
    return {"logs": logs, "pagination": {"limit": limit, "offset": offset, "total": total, "has_more": offset + len(logs) < total}}
