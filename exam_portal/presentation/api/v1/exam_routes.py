import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import List

from exam_portal.application.attempt_engine import AttemptEngine
from exam_portal.application.errors import InvalidStateError, NotFoundError, StoreFailure
from exam_portal.infrastructure.repositories.question_bank_repository import QuestionBankRepository
from exam_portal.presentation.dependencies import (
    get_db,
    get_current_user,
    student_required,
    get_attempt_engine,
)
from exam_portal.presentation.schemas.exam_schema import ExamOut
from exam_portal.presentation.schemas.attempt_schema import (
    AnswerRequest,
    AttemptOut,
    StartAttemptResponse,
    SubmitResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _translate(e: Exception, action: str) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, InvalidStateError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, StoreFailure):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Storage temporarily unavailable, please retry.",
        )
    logger.error(f"Unexpected error during {action}: {e}", exc_info=True)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="An unexpected error occurred.",
    )


# --------------------------------------------------
# 1. List exams
# --------------------------------------------------
@router.get("/exams", response_model=List[ExamOut])
def list_exams(db: Session = Depends(get_db), user: dict = Depends(get_current_user)):
    logger.info(f"User {user['user_id']} fetching all exams")
    try:
        return QuestionBankRepository(db).list_exams()
    except SQLAlchemyError as e:
        logger.error(f"Store failure listing exams: {e}", exc_info=True)
        raise _translate(StoreFailure("Could not list exams"), "listing exams") from e


# --------------------------------------------------
# 2. Start attempt
# --------------------------------------------------
@router.post(
    "/exams/{exam_id}/start",
    response_model=StartAttemptResponse,
    status_code=status.HTTP_201_CREATED,
)
def start_exam(
    exam_id: int,
    student: dict = Depends(student_required),
    engine: AttemptEngine = Depends(get_attempt_engine),
):
    """
    Opens a timed attempt and returns the questions in random order, without answer keys.
    """
    try:
        return engine.start(exam_id, student["user_id"])
    except Exception as e:
        raise _translate(e, f"start of exam {exam_id}")


# --------------------------------------------------
# 3. Save / overwrite an answer
# --------------------------------------------------
@router.post("/attempts/{attempt_id}/answers")
def save_answer(
    attempt_id: int,
    data: AnswerRequest,
    student: dict = Depends(student_required),
    engine: AttemptEngine = Depends(get_attempt_engine),
):
    try:
        engine.record_answer(attempt_id, data.question_id, data.answer, student_id=student["user_id"])
        return {"ok": True}
    except Exception as e:
        raise _translate(e, f"saving answer for attempt {attempt_id}")


# --------------------------------------------------
# 4. Submit and grade
# --------------------------------------------------
@router.post("/attempts/{attempt_id}/submit", response_model=SubmitResponse)
def submit_attempt(
    attempt_id: int,
    student: dict = Depends(student_required),
    engine: AttemptEngine = Depends(get_attempt_engine),
):
    try:
        result = engine.submit(attempt_id, student_id=student["user_id"])
        return {"score": result.to_dict()}
    except Exception as e:
        raise _translate(e, f"submit of attempt {attempt_id}")


# --------------------------------------------------
# 5. Read back an attempt
# --------------------------------------------------
@router.get("/attempts/{attempt_id}", response_model=AttemptOut)
def get_attempt(
    attempt_id: int,
    student: dict = Depends(student_required),
    engine: AttemptEngine = Depends(get_attempt_engine),
):
    try:
        return engine.get_attempt(attempt_id, student_id=student["user_id"])
    except Exception as e:
        raise _translate(e, f"lookup of attempt {attempt_id}")
