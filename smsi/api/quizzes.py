from typing import List

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from smsi.api.modules import get_active_module
from smsi.core.auth import Principal, require_auth
from smsi.core.database import get_db
from smsi.core.errors import NotFoundError
from smsi.models.orm import Quiz
from smsi.services import audit
from smsi.services.certificates import is_eligible
from smsi.services.scoring import PASS_THRESHOLD, SubmittedAnswer, record_result, score_submission
from smsi.services.users import get_user

router = APIRouter()


class AnswerIn(BaseModel):
    quiz_id: int
    selected_option: int


class QuizSubmission(BaseModel):
    module_id: int
    answers: List[AnswerIn]
    time_spent_minutes: float = Field(ge=0, allow_inf_nan=False)


def question_bank(db: Session, module_id: int) -> List[Quiz]:
    return list(db.scalars(select(Quiz).where(Quiz.module_id == module_id).order_by(Quiz.created_at, Quiz.id)))


@router.get("/{module_id}")
def get_quiz(module_id: int, principal: Principal = Depends(require_auth), db: Session = Depends(get_db)):
    module = get_active_module(db, module_id)
    questions = question_bank(db, module_id)
    if not questions:
        raise NotFoundError("No quiz questions available for this module")
    return {
        "module": {"id": module.id, "title": module.title, "description": module.description},
        "questions": [
            {"id": q.id, "module_id": q.module_id, "question": q.question, "options": q.options, "points": q.points}
            for q in questions
        ],
        "total_questions": len(questions),
        "total_points": sum(q.points for q in questions),
        "pass_threshold": PASS_THRESHOLD,
    }


@router.post("/submit")
def submit_quiz(payload: QuizSubmission, request: Request, principal: Principal = Depends(require_auth),
                db: Session = Depends(get_db)):
    if get_user(db, principal.id) is None:
        raise NotFoundError("User not found")
    module = get_active_module(db, payload.module_id)
    questions = question_bank(db, payload.module_id)
    if not questions:
        raise NotFoundError("No quiz questions found")

    scored = score_submission(questions, [SubmittedAnswer(a.quiz_id, a.selected_option) for a in payload.answers])
    stored = record_result(db, principal.id, module.id, scored, payload.time_spent_minutes)
    audit.log_audit(db, request, audit.QUIZ_SUBMIT, "module", user_id=principal.id, resource_id=module.id,
                    details={"score": scored.score, "passed": scored.passed})

    return {
        "result": {
            "score": scored.score,
            "passed": scored.passed,
            "total_questions": scored.total_questions,
            "correct_answers": scored.correct_answers,
            "total_points": scored.total_points,
            "earned_points": scored.earned_points,
            "time_spent_minutes": payload.time_spent_minutes,
            "certificate_eligible": is_eligible(stored),
            "best_score": stored.score,
        },
        "detailed_results": scored.details_as_dicts(),
        "module": {"id": module.id, "title": module.title},
    }
