from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from exam_portal.application.admin.exam_authoring_usecase import create_exam, add_question
from exam_portal.application.errors import NotFoundError, StoreFailure
from exam_portal.presentation.dependencies import get_db, admin_required
from exam_portal.presentation.schemas.exam_schema import ExamCreate, ExamOut, QuestionCreate, QuestionCreatedOut
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/exams", response_model=ExamOut)
def add_exam(data: ExamCreate, db: Session = Depends(get_db), admin: dict = Depends(admin_required)):
    try:
        exam = create_exam(db, data, admin["user_id"])
        logger.info(f"Exam created successfully with ID: {exam.id}")
        return exam
    except ValueError as e:
        logger.warning(f"Validation error during exam creation by admin {admin['user_id']}: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StoreFailure as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.post("/exams/{exam_id}/questions", response_model=QuestionCreatedOut)
def add_exam_question(
    exam_id: int,
    data: QuestionCreate,
    db: Session = Depends(get_db),
    admin: dict = Depends(admin_required),
):
    try:
        question = add_question(db, exam_id, data, admin["user_id"])
        return QuestionCreatedOut(id=question.id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        logger.warning(f"Validation error adding question to exam {exam_id}: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StoreFailure as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
