from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from smsi.api.modules import active_modules
from smsi.core.auth import Principal, require_auth
from smsi.core.database import get_db
from smsi.services.users import user_progress

router = APIRouter()


@router.get("/dashboard")
def dashboard(principal: Principal = Depends(require_auth), db: Session = Depends(get_db)):
    """Landing data for a signed-in learner; guarded by the edge middleware as well."""
    return {
        "user": {"id": principal.id, "email": principal.email, "role": principal.role},
        "progress": user_progress(db, principal.id),
        "modules": [{"id": m.id, "title": m.title, "difficulty_level": m.difficulty_level} for m in active_modules(db)],
    }
