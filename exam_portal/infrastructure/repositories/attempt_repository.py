import json
import logging
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..db.models import StudentExamModel, StudentAnswerModel
from ..db.models.attempt_model import STATUS_IN_PROGRESS, STATUS_SUBMITTED
from exam_portal.application.errors import NotFoundError

logger = logging.getLogger(__name__)


class AttemptRepository:
    """
    Attempts (student_exams) and their answers. Nothing here commits.
    """

    def __init__(self, db: Session):
        self.db = db

    def create_attempt(self, attempt: StudentExamModel) -> StudentExamModel:
        self.db.add(attempt)
        self.db.flush()  # get attempt.id
        return attempt

    def get_attempt(self, attempt_id: int) -> StudentExamModel:
        attempt = self.db.query(StudentExamModel).filter(StudentExamModel.id == attempt_id).first()
        if not attempt:
            logger.warning(f"Attempt {attempt_id} not found")
            raise NotFoundError(f"Attempt {attempt_id} not found")
        return attempt

    def get_attempt_for_update(self, attempt_id: int) -> StudentExamModel:
        """
        Same as get_attempt, but holds a row lock until the transaction ends
        on backends that support SELECT ... FOR UPDATE.
        """
        attempt = (
            self.db.query(StudentExamModel)
            .filter(StudentExamModel.id == attempt_id)
            .populate_existing()
            .with_for_update()
            .first()
        )
        if not attempt:
            logger.warning(f"Attempt {attempt_id} not found")
            raise NotFoundError(f"Attempt {attempt_id} not found")
        return attempt

    def lock_in_progress(self, attempt_id: int) -> bool:
        """
        No-op UPDATE guarded on status. Takes the write lock (row lock on
        Postgres, database lock on SQLite) for the rest of the transaction.

        Returns False when the attempt is no longer in progress.
        """
        result = self.db.execute(
            update(StudentExamModel)
            .where(
                StudentExamModel.id == attempt_id,
                StudentExamModel.status == STATUS_IN_PROGRESS,
            )
            .values(status=StudentExamModel.status)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def mark_submitted(self, attempt_id: int, ended_at: datetime) -> bool:
        """
        Flips in_progress -> submitted in one conditional UPDATE.

        Returns False when the attempt was no longer in progress, i.e. another
        caller already won the transition.
        """
        result = self.db.execute(
            update(StudentExamModel)
            .where(
                StudentExamModel.id == attempt_id,
                StudentExamModel.status == STATUS_IN_PROGRESS,
            )
            .values(status=STATUS_SUBMITTED, ended_at=ended_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def update_attempt_score(self, attempt_id: int, score: Dict[str, int]) -> None:
        self.db.execute(
            update(StudentExamModel)
            .where(StudentExamModel.id == attempt_id)
            .values(score=score)
            .execution_options(synchronize_session=False)
        )

    def upsert_answer(self, attempt_id: int, question_id: int, value: Any) -> StudentAnswerModel:
        encoded = json.dumps(value)
        existing = (
            self.db.query(StudentAnswerModel)
            .filter(
                StudentAnswerModel.attempt_id == attempt_id,
                StudentAnswerModel.question_id == question_id,
            )
            .first()
        )

        if existing:
            existing.answer = encoded
            answer = existing
        else:
            answer = StudentAnswerModel(attempt_id=attempt_id, question_id=question_id, answer=encoded)
            self.db.add(answer)

        self.db.flush()
        return answer

    def get_answers(self, attempt_id: int) -> Dict[int, Any]:
        rows = (
            self.db.query(StudentAnswerModel)
            .filter(StudentAnswerModel.attempt_id == attempt_id)
            .all()
        )

        answers: Dict[int, Any] = {}
        for r in rows:
            if r.answer is None:
                continue
            try:
                answers[r.question_id] = json.loads(r.answer)
            except (TypeError, ValueError):
                logger.warning(
                    f"Ignoring undecodable answer {r.id} for attempt {attempt_id}, question {r.question_id}"
                )
        return answers
