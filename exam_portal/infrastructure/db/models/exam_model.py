from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..base import Base
from exam_portal.application.grading import QUESTION_TYPE_MCQ


class ExamModel(Base):
    __tablename__ = "exams"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    questions = relationship(
        "QuestionModel",
        back_populates="exam",
        cascade="all, delete-orphan",
        order_by="QuestionModel.id",
    )
    author = relationship("UserModel")


class QuestionModel(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    exam_id = Column(Integer, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String, nullable=False, default=QUESTION_TYPE_MCQ)
    text = Column(Text, nullable=False)

    # Relationships
    exam = relationship("ExamModel", back_populates="questions")
    choices = relationship(
        "ChoiceModel",
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="ChoiceModel.id",
    )


class ChoiceModel(Base):
    __tablename__ = "choices"

    id = Column(Integer, primary_key=True, index=True)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    text = Column(Text, nullable=False)
    is_correct = Column(Boolean, default=False, nullable=False)

    # Relationships
    question = relationship("QuestionModel", back_populates="choices")
