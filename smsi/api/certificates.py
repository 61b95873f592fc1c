import logging
import re

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from smsi.core.auth import Principal, require_auth
from smsi.core.database import get_db
from smsi.core.errors import InternalError, NotFoundError, ValidationFailed
from smsi.models.orm import Module, Result
from smsi.services import audit
from smsi.services.certificates import (
    CertificateData, generate_certificate_id, is_eligible, mark_certificate_generated, render_certificate_pdf,
)
from smsi.services.scoring import get_result
from smsi.services.users import get_user

logger = logging.getLogger(__name__)

router = APIRouter()


class GenerateCertificate(BaseModel):
    module_id: int


@router.get("")
def list_certificates(principal: Principal = Depends(require_auth), db: Session = Depends(get_db)):
    rows = db.execute(
        select(Result, Module.title)
        .join(Module, Module.id == Result.module_id)
        .where(Result.user_id == principal.id, Result.passed.is_(True))
        .order_by(Result.completed_at.desc())
    ).all()
    return {"certificates": [
        {"id": r.id, "module_id": r.module_id, "module_title": title, "score": r.score,
         "completed_at": r.completed_at, "certificate_generated": r.certificate_generated}
        for r, title in rows
    ]}


@router.post("/generate")
def generate_certificate(payload: GenerateCertificate, request: Request, principal: Principal = Depends(require_auth),
                         db: Session = Depends(get_db)):
    user = get_user(db, principal.id)
    if user is None:
        raise NotFoundError("User not found")
    module = db.get(Module, payload.module_id)
    if module is None or not module.is_active:
        raise NotFoundError("Module not found")
    result = get_result(db, principal.id, payload.module_id)
    if result is None:
        raise NotFoundError("No quiz result found for this module")
    if not is_eligible(result):
        raise ValidationFailed("Certificate not available - quiz not passed")

    certificate_id = generate_certificate_id(user.id, module.id, result.completed_at)
    try:
        pdf = render_certificate_pdf(CertificateData(
            user_name=user.name,
            user_email=user.email,
            module_name=module.title,
            score=result.score,
            completion_date=result.completed_at,
            certificate_id=certificate_id,
        ))
    except Exception as e:
        logger.error(f"Certificate rendering failed for result {result.id}: {e}", exc_info=True)
        raise InternalError("Failed to generate certificate")
    first = mark_certificate_generated(db, result)
    audit.log_audit(db, request, audit.CERTIFICATE_GENERATE, "certificate", user_id=principal.id,
                    resource_id=certificate_id, details={"module_id": payload.module_id, "first_issue": first})

    slug = re.sub(r"[^A-Za-z0-9]+", "-", module.title).strip("-") or "module"
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="SMSI-Certificate-{slug}-{certificate_id}.pdf"'},
    )
