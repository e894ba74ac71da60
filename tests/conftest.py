import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SEED_DEMO_USERS"] = "false"
os.environ["ENFORCE_DEADLINE"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret"

import random
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from exam_portal.infrastructure.db.session import Base, engine, SessionLocal
from exam_portal.infrastructure.db import models  # noqa: F401
from exam_portal.infrastructure.db.models import UserModel, ExamModel, QuestionModel, ChoiceModel
from exam_portal.infrastructure.security.jwt_service import create_access_token

FIXED_NOW = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now=FIXED_NOW):
        self.now = now

    def __call__(self):
        return self.now


def build_exam(db, created_by, questions, title="Sample exam", duration_minutes=30):
    """
    Inserts an exam. `questions` is a list of (type, text, [(choice_text, is_correct), ...]).

    Returns {"exam_id", "questions": [{"id", "choices": {text: id}}]}.
    """
    exam = ExamModel(title=title, duration_minutes=duration_minutes, created_by=created_by)
    db.add(exam)
    db.flush()

    built = []
    for q_type, text, choices in questions:
        question = QuestionModel(exam_id=exam.id, type=q_type, text=text)
        db.add(question)
        db.flush()
        ids = {}
        for c_text, is_correct in choices:
            choice = ChoiceModel(question_id=question.id, text=c_text, is_correct=is_correct)
            db.add(choice)
            db.flush()
            ids[c_text] = choice.id
        built.append({"id": question.id, "choices": ids})

    db.commit()
    return {"exam_id": exam.id, "questions": built}


def make_user(db, email, role, name="User"):
    # Tests never log in with a password through these users
    user = UserModel(name=name, email=email, password_hash="x", role=role)
    db.add(user)
    db.commit()
    return user.id


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def admin_id(db):
    return make_user(db, "admin@example.com", "admin", name="Admin")


@pytest.fixture
def student_id(db):
    return make_user(db, "student@example.com", "student", name="Student")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def single_mcq_exam(db, admin_id):
    return build_exam(
        db,
        admin_id,
        [("mcq", "2 + 2 = ?", [("4", True), ("5", False)])],
    )


@pytest.fixture
def client(db):
    from main import app

    return TestClient(app)


def bearer(user_id, role):
    return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}
