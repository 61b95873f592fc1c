"""
Certificate eligibility and PDF rendering.
"""
import io
import logging
import random
import string
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas
from sqlalchemy import update
from sqlalchemy.orm import Session

from smsi.models.orm import Result

logger = logging.getLogger(__name__)


def is_eligible(result: Optional[Result]) -> bool:
    return result is not None and result.passed is True


def generate_certificate_id(user_id: int, module_id: int, completed_at: datetime, rng: random.Random = None) -> str:
    rng = rng or random.SystemRandom()
    suffix = "".join(rng.choice(string.ascii_uppercase + string.digits) for _ in range(4))
    return f"SMSI-{completed_at:%Y%m%d}-{user_id:04d}-{module_id:02d}-{suffix}"


@dataclass
class CertificateData:
    user_name: str
    user_email: str
    module_name: str
    score: float
    completion_date: datetime
    certificate_id: str


def render_certificate_pdf(data: CertificateData) -> bytes:
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4
    pdf.setTitle(f"Certificate {data.certificate_id}")

    pdf.setStrokeColor(colors.HexColor("#3B82F6"))
    pdf.setLineWidth(2)
    pdf.rect(28, 28, width - 56, height - 56)

    pdf.setFillColor(colors.HexColor("#1F2937"))
    pdf.setFont("Helvetica-Bold", 24)
    pdf.drawCentredString(width / 2, height - 120, "SMSI Platform")
    pdf.setFont("Helvetica", 12)
    pdf.drawCentredString(width / 2, height - 140, "Cybersecurity Awareness Training")

    pdf.setFillColor(colors.HexColor("#3B82F6"))
    pdf.setFont("Helvetica-Bold", 36)
    pdf.drawCentredString(width / 2, height - 220, "CERTIFICATE")
    pdf.setFont("Helvetica", 18)
    pdf.drawCentredString(width / 2, height - 245, "of Completion")

    pdf.setFillColor(colors.HexColor("#1F2937"))
    pdf.setFont("Helvetica", 14)
    pdf.drawCentredString(width / 2, height - 310, "This certifies that")
    pdf.setFont("Helvetica-Bold", 22)
    pdf.drawCentredString(width / 2, height - 345, data.user_name)
    pdf.setFont("Helvetica", 14)
    pdf.drawCentredString(width / 2, height - 385, "has successfully completed the training module")
    pdf.setFont("Helvetica-Bold", 18)
    pdf.drawCentredString(width / 2, height - 415, data.module_name)
    pdf.setFont("Helvetica", 12)
    pdf.drawCentredString(width / 2, height - 450, f"Score: {data.score:.1f}%")
    pdf.drawCentredString(width / 2, height - 470, f"Completed on {data.completion_date:%B %d, %Y}")

    pdf.setFont("Helvetica", 9)
    pdf.setFillColor(colors.HexColor("#6B7280"))
    pdf.drawCentredString(width / 2, 60, f"Certificate ID: {data.certificate_id}")
    pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def mark_certificate_generated(db: Session, result: Result) -> bool:
    """Flip ``certificate_generated`` once. Returns True only on the first flip."""
    res = db.execute(
        update(Result)
        .where(Result.id == result.id, Result.certificate_generated.is_(False))
        .values(certificate_generated=True)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if res.rowcount:
        logger.info(f"Certificate generated for result {result.id}")
    return bool(res.rowcount)
