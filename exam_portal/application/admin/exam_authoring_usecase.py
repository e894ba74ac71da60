import logging
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from exam_portal.application.errors import StoreFailure
from exam_portal.infrastructure.db.models import ExamModel, QuestionModel
from exam_portal.infrastructure.repositories.question_bank_repository import QuestionBankRepository
from exam_portal.presentation.schemas.exam_schema import ExamCreate, QuestionCreate

logger = logging.getLogger(__name__)


def create_exam(db: Session, data: ExamCreate, admin_id: int) -> ExamModel:
    try:
        logger.info(f"Admin {admin_id} creating exam '{data.title}'")
        exam = QuestionBankRepository(db).create_exam(data.title, data.duration_minutes, admin_id)
        db.commit()
        db.refresh(exam)
        return exam
    except SQLAlchemyError as e:
        logger.error(f"Database error creating exam by admin {admin_id}: {e}", exc_info=True)
        db.rollback()
        raise StoreFailure("Could not create exam") from e
    except Exception:
        db.rollback()
        raise


def add_question(db: Session, exam_id: int, data: QuestionCreate, admin_id: int) -> QuestionModel:
    """
    Adds a question and its choices in one transaction; a rejected MCQ
    leaves nothing behind.
    """
    try:
        logger.info(f"Admin {admin_id} adding {data.type} question to exam {exam_id}")
        question = QuestionBankRepository(db).add_question(
            exam_id,
            data.type,
            data.text,
            [c.model_dump() for c in data.choices],
        )
        db.commit()
        db.refresh(question)
        return question
    except SQLAlchemyError as e:
        logger.error(f"Database error adding question to exam {exam_id}: {e}", exc_info=True)
        db.rollback()
        raise StoreFailure("Could not add question") from e
    except Exception:
        db.rollback()
        raise
