from datetime import datetime
from pydantic import BaseModel
from typing import Any, List, Optional


class ChoiceOut(BaseModel):
    # No is_correct here: this goes to students
    id: int
    text: str


class AttemptQuestionOut(BaseModel):
    id: int
    type: str
    text: str
    choices: List[ChoiceOut]


class StartAttemptResponse(BaseModel):
    attempt_id: int
    exam_id: int
    started_at: datetime
    ends_at: datetime
    questions: List[AttemptQuestionOut]


class AnswerRequest(BaseModel):
    question_id: int
    answer: Any = None


class ScoreOut(BaseModel):
    correct: int
    total: int
    percent: int


class SubmitResponse(BaseModel):
    score: ScoreOut


class AttemptOut(BaseModel):
    attempt_id: int
    exam_id: int
    status: str
    started_at: datetime
    ends_at: datetime
    ended_at: Optional[datetime] = None
    score: Optional[ScoreOut] = None
