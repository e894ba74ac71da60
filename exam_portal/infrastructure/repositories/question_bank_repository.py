from typing import List, Optional
import logging
from sqlalchemy.orm import Session
from ..db.models import ExamModel, QuestionModel, ChoiceModel
from exam_portal.application.grading import QUESTION_TYPE_MCQ
from exam_portal.application.errors import NotFoundError

logger = logging.getLogger(__name__)


class QuestionBankRepository:
    """
    Exams, questions and choices. Writes are flushed, never committed;
    the caller owns the transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_exam(self, exam_id: int) -> ExamModel:
        exam = self.db.query(ExamModel).filter(ExamModel.id == exam_id).first()
        if not exam:
            logger.warning(f"Exam {exam_id} not found")
            raise NotFoundError(f"Exam {exam_id} not found")
        return exam

    def list_exams(self) -> List[ExamModel]:
        return (
            self.db.query(ExamModel)
            .order_by(ExamModel.created_at.desc(), ExamModel.id.desc())
            .all()
        )

    def list_questions(self, exam_id: int) -> List[QuestionModel]:
        return (
            self.db.query(QuestionModel)
            .filter(QuestionModel.exam_id == exam_id)
            .order_by(QuestionModel.id)
            .all()
        )

    def list_choices(self, question_id: int) -> List[ChoiceModel]:
        return (
            self.db.query(ChoiceModel)
            .filter(ChoiceModel.question_id == question_id)
            .order_by(ChoiceModel.id)
            .all()
        )

    def create_exam(self, title: str, duration_minutes: int, created_by: int) -> ExamModel:
        if duration_minutes <= 0:
            raise ValueError("duration_minutes must be positive")
        exam = ExamModel(title=title, duration_minutes=duration_minutes, created_by=created_by)
        self.db.add(exam)
        self.db.flush()  # get exam.id
        logger.info(f"Created exam {exam.id} '{title}' by user {created_by}")
        return exam

    def add_question(
        self,
        exam_id: int,
        question_type: str,
        text: str,
        choices: Optional[List[dict]] = None,
    ) -> QuestionModel:
        """
        Adds a question with its choices. An MCQ needs at least 2 choices
        and exactly 1 flagged correct.
        """
        self.get_exam(exam_id)
        choices = choices or []

        if question_type == QUESTION_TYPE_MCQ:
            if len(choices) < 2:
                raise ValueError("MCQ must have at least 2 choices")
            if sum(1 for c in choices if c.get("is_correct")) != 1:
                raise ValueError("MCQ must have exactly 1 correct choice")

        question = QuestionModel(exam_id=exam_id, type=question_type, text=text)
        self.db.add(question)
        self.db.flush()  # get question.id

        for c in choices:
            self.db.add(
                ChoiceModel(
                    question_id=question.id,
                    text=c["text"],
                    is_correct=bool(c.get("is_correct", False)),
                )
            )
        self.db.flush()
        logger.info(f"Added {question_type} question {question.id} with {len(choices)} choices to exam {exam_id}")
        return question
