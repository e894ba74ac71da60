from __future__ import annotations

import logging
import random
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from exam_portal import config
from exam_portal.application.errors import (
    ExamPortalError,
    InvalidStateError,
    NotFoundError,
    StoreFailure,
)
from exam_portal.application.grading import GradeResult, grade
from exam_portal.infrastructure.db.models import StudentExamModel
from exam_portal.infrastructure.db.models.attempt_model import STATUS_IN_PROGRESS
from exam_portal.infrastructure.repositories.attempt_repository import AttemptRepository
from exam_portal.infrastructure.repositories.question_bank_repository import QuestionBankRepository

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------
# Attempt Engine
# ---------------------------

class AttemptEngine:
    """
    Drives an attempt through start -> answer -> submit.

    Every public operation runs in its own transaction: it either commits all
    of its writes or none of them. Callers pass an already authenticated
    student id; no credential checks happen here.
    """

    def __init__(
        self,
        db: Session,
        *,
        question_bank: Optional[QuestionBankRepository] = None,
        attempts: Optional[AttemptRepository] = None,
        clock: Optional[Callable[[], datetime]] = None,
        rng: Optional[random.Random] = None,
        enforce_deadline: Optional[bool] = None,
    ):
        self.db = db
        self._bank = question_bank or QuestionBankRepository(db)
        self._attempts = attempts or AttemptRepository(db)
        self._clock = clock or utcnow
        self._rng = rng or random.Random()
        self._enforce_deadline = config.ENFORCE_DEADLINE if enforce_deadline is None else enforce_deadline

    # ---------------------------
    # Public API
    # ---------------------------

    def start(self, exam_id: int, student_id: int) -> Dict[str, Any]:
        """
        Opens a new attempt and returns the exam's questions in a fresh random
        order. Choices never carry the is_correct flag.
        """
        logger.info(f"Student {student_id} starting exam {exam_id}")
        with self._transaction(f"start exam {exam_id}"):
            exam = self._bank.get_exam(exam_id)
            started_at = self._clock()
            ends_at = started_at + timedelta(minutes=exam.duration_minutes)

            attempt = self._attempts.create_attempt(
                StudentExamModel(
                    student_id=student_id,
                    exam_id=exam.id,
                    started_at=started_at,
                    ends_at=ends_at,
                    status=STATUS_IN_PROGRESS,
                )
            )

            questions = []
            for q in self._bank.list_questions(exam.id):
                questions.append(
                    {
                        "id": q.id,
                        "type": q.type,
                        "text": q.text,
                        "choices": [{"id": c.id, "text": c.text} for c in self._bank.list_choices(q.id)],
                    }
                )
            self._rng.shuffle(questions)

            result = {
                "attempt_id": attempt.id,
                "exam_id": exam.id,
                "started_at": started_at,
                "ends_at": ends_at,
                "questions": questions,
            }

        logger.info(
            f"Created attempt {result['attempt_id']} for student {student_id} "
            f"(exam {exam_id}, {len(questions)} questions, ends at {ends_at.isoformat()})"
        )
        return result

    def record_answer(
        self,
        attempt_id: int,
        question_id: int,
        answer: Any,
        student_id: Optional[int] = None,
    ) -> None:
        """
        Creates or overwrites the answer for (attempt, question). Neither the
        question nor the answer value is validated against the exam.
        """
        with self._transaction(f"record answer for attempt {attempt_id}"):
            attempt = self._attempts.get_attempt_for_update(attempt_id)
            self._check_owner(attempt, student_id)
            if attempt.status != STATUS_IN_PROGRESS:
                logger.warning(f"Rejected answer for attempt {attempt_id}: status is {attempt.status}")
                raise InvalidStateError("exam not active")
            self._check_deadline(attempt)
            if not self._attempts.lock_in_progress(attempt_id):
                # Submitted between our read and our write
                logger.warning(f"Rejected answer for attempt {attempt_id}: submitted concurrently")
                raise InvalidStateError("exam not active")
            self._attempts.upsert_answer(attempt_id, question_id, answer)

        logger.info(f"Saved answer for attempt {attempt_id}, question {question_id}")

    def submit(self, attempt_id: int, student_id: Optional[int] = None) -> GradeResult:
        """
        Closes the attempt and grades it. Only the first successful call
        grades; every later call raises InvalidStateError and changes nothing.
        """
        logger.info(f"Submitting attempt {attempt_id}")
        with self._transaction(f"submit attempt {attempt_id}"):
            attempt = self._attempts.get_attempt(attempt_id)
            self._check_owner(attempt, student_id)
            if attempt.status != STATUS_IN_PROGRESS:
                logger.warning(f"Rejected submit for attempt {attempt_id}: status is {attempt.status}")
                raise InvalidStateError("already submitted")
            self._check_deadline(attempt)

            exam_id = attempt.exam_id
            if not self._attempts.mark_submitted(attempt_id, self._clock()):
                # Lost the race against a concurrent submit
                logger.warning(f"Attempt {attempt_id} was submitted concurrently")
                raise InvalidStateError("already submitted")

            questions = self._bank.list_questions(exam_id)
            answers = self._attempts.get_answers(attempt_id)
            result = grade(questions, answers, self._bank.list_choices)
            self._attempts.update_attempt_score(attempt_id, result.to_dict())

        logger.info(
            f"Attempt {attempt_id} graded: {result.correct}/{result.total} ({result.percent}%)"
        )
        return result

    def get_attempt(self, attempt_id: int, student_id: Optional[int] = None) -> Dict[str, Any]:
        try:
            attempt = self._attempts.get_attempt(attempt_id)
        except SQLAlchemyError as e:
            logger.error(f"Store failure reading attempt {attempt_id}: {e}", exc_info=True)
            raise StoreFailure(f"Could not read attempt {attempt_id}") from e
        self._check_owner(attempt, student_id)
        return {
            "attempt_id": attempt.id,
            "exam_id": attempt.exam_id,
            "student_id": attempt.student_id,
            "status": attempt.status,
            "started_at": attempt.started_at,
            "ends_at": attempt.ends_at,
            "ended_at": attempt.ended_at,
            "score": attempt.score,
        }

    # ---------------------------
    # Internals
    # ---------------------------

    @contextmanager
    def _transaction(self, action: str):
        try:
            yield
            self.db.commit()
        except ExamPortalError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Store failure during {action}: {e}", exc_info=True)
            raise StoreFailure(f"Could not {action}") from e
        except Exception:
            self.db.rollback()
            raise

    def _check_owner(self, attempt: StudentExamModel, student_id: Optional[int]) -> None:
        if student_id is not None and attempt.student_id != student_id:
            logger.warning(f"Student {student_id} tried to access attempt {attempt.id} of student {attempt.student_id}")
            raise NotFoundError(f"Attempt {attempt.id} not found")

    def _check_deadline(self, attempt: StudentExamModel) -> None:
        if not self._enforce_deadline:
            return
        if _as_utc(self._clock()) > _as_utc(attempt.ends_at):
            logger.warning(f"Attempt {attempt.id} is past its deadline {attempt.ends_at}")
            raise InvalidStateError("exam time is over")
