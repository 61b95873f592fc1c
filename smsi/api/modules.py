from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from smsi.core.auth import Principal, require_auth
from smsi.core.database import get_db
from smsi.core.errors import NotFoundError
from smsi.models.orm import Module, Result

router = APIRouter()

DIFFICULTY_ORDER = {"beginner": 0, "intermediate": 1, "advanced": 2}


def module_dict(m: Module) -> dict:
    return {
        "id": m.id, "title": m.title, "description": m.description, "content": m.content,
        "duration_minutes": m.duration_minutes, "difficulty_level": m.difficulty_level,
        "is_active": m.is_active, "created_at": m.created_at, "updated_at": m.updated_at,
    }


def get_active_module(db: Session, module_id: int) -> Module:
    m = db.scalar(select(Module).where(Module.id == module_id, Module.is_active.is_(True)))
    if m is None:
        raise NotFoundError("Module not found")
    return m


def active_modules(db: Session) -> list:
    rows = db.scalars(select(Module).where(Module.is_active.is_(True)).order_by(Module.created_at, Module.id)).all()
    return sorted(rows, key=lambda m: DIFFICULTY_ORDER.get(m.difficulty_level, len(DIFFICULTY_ORDER)))


@router.get("")
def list_modules(principal: Principal = Depends(require_auth), db: Session = Depends(get_db)):
    results = {r.module_id: r for r in db.scalars(select(Result).where(Result.user_id == principal.id))}
    out = []
    for m in active_modules(db):
        item = module_dict(m)
        r = results.get(m.id)
        item["progress"] = None if r is None else {
            "module_id": m.id, "user_id": principal.id, "completed": True,
            "score": r.score, "passed": r.passed, "completed_at": r.completed_at,
        }
        out.append(item)
    return {"modules": out}


@router.get("/{module_id}")
def get_module(module_id: int, principal: Principal = Depends(require_auth), db: Session = Depends(get_db)):
    return {"module": module_dict(get_active_module(db, module_id))}
