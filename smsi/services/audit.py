import logging
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy.orm import Session

from smsi.core.config import settings
from smsi.middleware.rate_limit import client_address
from smsi.models.orm import AuditLog

logger = logging.getLogger(__name__)

# Authentication
LOGIN = "login"
LOGOUT = "logout"
REGISTER = "register"
# Training
QUIZ_SUBMIT = "quiz_submit"
CERTIFICATE_GENERATE = "certificate_generate"
# Admin
USER_CREATE = "user_create"
USER_UPDATE = "user_update"
USER_DELETE = "user_delete"
MODULE_CREATE = "module_create"
MODULE_UPDATE = "module_update"
MODULE_DELETE = "module_delete"
QUIZ_CREATE = "quiz_create"
# RGPD
DATA_EXPORT = "data_export"
DATA_DELETE = "data_delete"


def log_audit(db: Session, request: Request, action: str, resource: str, user_id: Optional[int] = None,
              resource_id: Any = None, details: Optional[Dict[str, Any]] = None) -> None:
    """Record an audit entry. Never raises; a failed write is only logged.

    Call after the primary operation has committed, so a rollback here
    cannot undo it.
    """
    try:
        db.add(AuditLog(
            user_id=user_id,
            action=action,
            resource=resource,
            resource_id=str(resource_id) if resource_id is not None else None,
            ip_address=client_address(request, settings.TRUST_PROXY_HEADERS),
            user_agent=request.headers.get("user-agent", "unknown")[:512],
            details=details or {},
        ))
        db.commit()
    except Exception as e:
        logger.error(f"Failed to log audit {action}: {e}")
        try:
            db.rollback()
        except Exception:
            logger.exception("Rollback after audit failure also failed")
