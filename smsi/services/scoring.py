"""
Quiz scoring and best-score persistence.

Scoring is driven by the submitted answers: each answer is matched to a
question of the module's bank by id; answers that match nothing are ignored
entirely, and unanswered questions add nothing to either total. A partial
submission therefore shrinks the achievable total instead of counting as
wrong.
"""
import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from smsi.core.errors import NotFoundError
from smsi.models.orm import Quiz, Result, utcnow

logger = logging.getLogger(__name__)

PASS_THRESHOLD = 80.0


@dataclass
class SubmittedAnswer:
    quiz_id: int
    selected_option: int


@dataclass
class AnswerDetail:
    quiz_id: int
    question: str
    selected_option: int
    correct_option: int
    is_correct: bool
    points_earned: int
    explanation: str


@dataclass
class ScoredSubmission:
    score: float
    passed: bool
    total_questions: int
    correct_answers: int
    total_points: int
    earned_points: int
    details: List[AnswerDetail] = field(default_factory=list)

    def details_as_dicts(self) -> List[dict]:
        return [asdict(d) for d in self.details]


def is_passing(percentage: float) -> bool:
    return percentage >= PASS_THRESHOLD


def score_submission(questions: Sequence[Quiz], answers: Iterable[SubmittedAnswer]) -> ScoredSubmission:
    bank = {q.id: q for q in questions}
    total_points = 0
    earned_points = 0
    details = []

    for answer in answers:
        quiz = bank.get(answer.quiz_id)
        if quiz is None:
            continue
        is_correct = answer.selected_option == quiz.correct_option
        points = quiz.points if is_correct else 0
        total_points += quiz.points
        earned_points += points
        details.append(AnswerDetail(
            quiz_id=quiz.id,
            question=quiz.question,
            selected_option=answer.selected_option,
            correct_option=quiz.correct_option,
            is_correct=is_correct,
            points_earned=points,
            explanation=quiz.explanation,
        ))

    percentage = (earned_points / total_points) * 100 if total_points > 0 else 0.0
    return ScoredSubmission(
        score=percentage,
        passed=is_passing(percentage),
        total_questions=len(bank),
        correct_answers=sum(1 for d in details if d.is_correct),
        total_points=total_points,
        earned_points=earned_points,
        details=details,
    )


def get_result(db: Session, user_id: int, module_id: int) -> Optional[Result]:
    return db.scalar(select(Result).where(Result.user_id == user_id, Result.module_id == module_id))


def record_result(db: Session, user_id: int, module_id: int, scored: ScoredSubmission,
                  time_spent_minutes: float, completed_at: Optional[datetime] = None) -> Result:
    """Store ``scored`` as the (user, module) result if it beats the stored score.

    The overwrite is a single ``UPDATE ... WHERE score < :new`` so two
    concurrent submissions cannot regress the stored best. Returns the stored
    result either way. Raises NotFoundError when no row can exist for the
    pair, i.e. the user or the module is gone.
    """
    completed_at = completed_at or utcnow()
    values = dict(
        score=scored.score,
        total_questions=scored.total_questions,
        correct_answers=scored.correct_answers,
        passed=scored.passed,
        time_spent_minutes=time_spent_minutes,
        completed_at=completed_at,
    )

    insert_error = None
    if get_result(db, user_id, module_id) is None:
        db.add(Result(user_id=user_id, module_id=module_id, certificate_generated=False, **values))
        try:
            db.commit()
            logger.info(f"First result for user {user_id} module {module_id}: {scored.score:.2f}")
            return get_result(db, user_id, module_id)
        except IntegrityError as e:
            # a concurrent first submission won the insert, or a foreign key failed
            db.rollback()
            insert_error = e

    res = db.execute(
        update(Result)
        .where(Result.user_id == user_id, Result.module_id == module_id, Result.score < scored.score)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if res.rowcount:
        logger.info(f"New best for user {user_id} module {module_id}: {scored.score:.2f}")
    stored = get_result(db, user_id, module_id)
    if stored is None:
        logger.warning(f"No result row for user {user_id} module {module_id}: {insert_error}")
        raise NotFoundError("User or module not found") from insert_error
    return stored
