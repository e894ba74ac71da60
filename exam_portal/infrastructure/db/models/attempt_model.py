from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from ..base import Base

STATUS_IN_PROGRESS = "in_progress"
STATUS_SUBMITTED = "submitted"


class StudentExamModel(Base):
    """One student's timed attempt at an exam."""

    __tablename__ = "student_exams"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    exam_id = Column(Integer, ForeignKey("exams.id"), nullable=False, index=True)
    started_at = Column(DateTime(timezone=True), nullable=False)
    ends_at = Column(DateTime(timezone=True), nullable=False)  # fixed at start
    ended_at = Column(DateTime(timezone=True), nullable=True)  # set on submit
    status = Column(String, nullable=False, default=STATUS_IN_PROGRESS)
    score = Column(JSON, nullable=True)  # {"correct", "total", "percent"}

    # Relationships
    exam = relationship("ExamModel")
    student = relationship("UserModel")
    answers = relationship("StudentAnswerModel", back_populates="attempt", cascade="all, delete-orphan")


class StudentAnswerModel(Base):
    __tablename__ = "student_answers"

    id = Column(Integer, primary_key=True, index=True)
    attempt_id = Column(Integer, ForeignKey("student_exams.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = Column(Integer, nullable=False)  # not checked against the exam
    answer = Column(Text, nullable=True)  # JSON-encoded

    # Relationships
    attempt = relationship("StudentExamModel", back_populates="answers")

    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="uq_answer_attempt_question"),
    )
