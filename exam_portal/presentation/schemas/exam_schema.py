# exam_schema.py
from datetime import datetime
from pydantic import BaseModel, Field
from typing import List, Optional


class ChoiceCreate(BaseModel):
    text: str
    is_correct: bool = False


class ExamCreate(BaseModel):
    title: str = Field(..., min_length=1)
    duration_minutes: int = Field(..., gt=0)


class ExamOut(BaseModel):
    id: int
    title: str
    duration_minutes: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class QuestionCreate(BaseModel):
    type: str = "mcq"
    text: str = Field(..., min_length=1)
    choices: List[ChoiceCreate] = []


class QuestionCreatedOut(BaseModel):
    id: int
