from datetime import timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from conftest import FIXED_NOW, FakeClock, build_exam, make_user
from exam_portal.application.attempt_engine import AttemptEngine, _as_utc
from exam_portal.application.errors import InvalidStateError, NotFoundError, StoreFailure
from exam_portal.application.grading import GradeResult
from exam_portal.infrastructure.db.base import Base
from exam_portal.infrastructure.db.models import StudentExamModel, StudentAnswerModel
from exam_portal.infrastructure.db.session import build_engine
from exam_portal.infrastructure.repositories.attempt_repository import AttemptRepository


@pytest.fixture
def engine(db, clock, rng):
    return AttemptEngine(db, clock=clock, rng=rng, enforce_deadline=False)


def _correct_and_wrong(exam):
    choices = exam["questions"][0]["choices"]
    return choices["4"], choices["5"]


# ---------------------------
# start
# ---------------------------

def test_start_creates_in_progress_attempt(db, engine, student_id, single_mcq_exam):
    result = engine.start(single_mcq_exam["exam_id"], student_id)

    assert result["started_at"] == FIXED_NOW
    assert result["ends_at"] == FIXED_NOW + timedelta(minutes=30)

    attempt = db.query(StudentExamModel).filter(StudentExamModel.id == result["attempt_id"]).one()
    assert attempt.status == "in_progress"
    assert attempt.student_id == student_id
    assert attempt.score is None
    assert attempt.ended_at is None
    assert _as_utc(attempt.ends_at) == FIXED_NOW + timedelta(minutes=30)
    assert db.query(StudentAnswerModel).count() == 0


def test_start_hides_answer_key(engine, student_id, single_mcq_exam):
    result = engine.start(single_mcq_exam["exam_id"], student_id)

    [question] = result["questions"]
    assert question["type"] == "mcq"
    assert question["text"] == "2 + 2 = ?"
    assert sorted(c["text"] for c in question["choices"]) == ["4", "5"]
    for choice in question["choices"]:
        assert set(choice) == {"id", "text"}


def test_start_unknown_exam_creates_nothing(db, engine, student_id):
    with pytest.raises(NotFoundError):
        engine.start(999, student_id)
    assert db.query(StudentExamModel).count() == 0


def test_start_shuffles_questions_per_attempt(db, admin_id, student_id, clock):
    exam = build_exam(
        db,
        admin_id,
        [("mcq", f"Q{i}", [("a", True), ("b", False)]) for i in range(5)],
    )
    ids = [q["id"] for q in exam["questions"]]
    reversing = SimpleNamespace(shuffle=lambda items: items.reverse())

    result = AttemptEngine(db, clock=clock, rng=reversing).start(exam["exam_id"], student_id)

    assert [q["id"] for q in result["questions"]] == list(reversed(ids))


def test_each_start_is_a_new_attempt(engine, student_id, single_mcq_exam):
    first = engine.start(single_mcq_exam["exam_id"], student_id)
    second = engine.start(single_mcq_exam["exam_id"], student_id)
    assert first["attempt_id"] != second["attempt_id"]


# ---------------------------
# record_answer
# ---------------------------

def test_record_answer_round_trip_and_overwrite(db, engine, student_id, single_mcq_exam):
    attempt_id = engine.start(single_mcq_exam["exam_id"], student_id)["attempt_id"]
    question_id = single_mcq_exam["questions"][0]["id"]
    right, wrong = _correct_and_wrong(single_mcq_exam)

    engine.record_answer(attempt_id, question_id, wrong)
    assert AttemptRepository(db).get_answers(attempt_id) == {question_id: wrong}

    engine.record_answer(attempt_id, question_id, right)
    assert AttemptRepository(db).get_answers(attempt_id) == {question_id: right}
    assert db.query(StudentAnswerModel).filter(StudentAnswerModel.attempt_id == attempt_id).count() == 1


def test_record_answer_keeps_opaque_values(db, engine, student_id, single_mcq_exam):
    attempt_id = engine.start(single_mcq_exam["exam_id"], student_id)["attempt_id"]

    engine.record_answer(attempt_id, 777, {"text": "not even a question of this exam"})

    assert AttemptRepository(db).get_answers(attempt_id) == {777: {"text": "not even a question of this exam"}}


def test_record_answer_unknown_attempt(engine):
    with pytest.raises(NotFoundError):
        engine.record_answer(42, 1, 1)


def test_record_answer_after_submit_is_rejected(engine, student_id, single_mcq_exam):
    attempt_id = engine.start(single_mcq_exam["exam_id"], student_id)["attempt_id"]
    engine.submit(attempt_id)

    with pytest.raises(InvalidStateError, match="exam not active"):
        engine.record_answer(attempt_id, single_mcq_exam["questions"][0]["id"], 1)


def test_other_students_cannot_touch_attempt(db, engine, student_id, single_mcq_exam):
    intruder = make_user(db, "other@example.com", "student")
    attempt_id = engine.start(single_mcq_exam["exam_id"], student_id)["attempt_id"]

    with pytest.raises(NotFoundError):
        engine.record_answer(attempt_id, 1, 1, student_id=intruder)
    with pytest.raises(NotFoundError):
        engine.submit(attempt_id, student_id=intruder)
    with pytest.raises(NotFoundError):
        engine.get_attempt(attempt_id, student_id=intruder)


# ---------------------------
# submit
# ---------------------------

def test_submit_correct_answer(engine, student_id, single_mcq_exam):
    attempt_id = engine.start(single_mcq_exam["exam_id"], student_id)["attempt_id"]
    right, _ = _correct_and_wrong(single_mcq_exam)
    engine.record_answer(attempt_id, single_mcq_exam["questions"][0]["id"], right)

    assert engine.submit(attempt_id) == GradeResult(correct=1, total=1, percent=100)


def test_submit_without_answers(engine, student_id, single_mcq_exam):
    attempt_id = engine.start(single_mcq_exam["exam_id"], student_id)["attempt_id"]
    assert engine.submit(attempt_id) == GradeResult(correct=0, total=1, percent=0)


def test_submit_exam_without_questions(db, engine, admin_id, student_id):
    exam = build_exam(db, admin_id, [])
    attempt_id = engine.start(exam["exam_id"], student_id)["attempt_id"]
    assert engine.submit(attempt_id) == GradeResult(correct=0, total=0, percent=0)


def test_submit_ignores_free_text_questions(db, engine, admin_id, student_id):
    exam = build_exam(
        db,
        admin_id,
        [
            ("mcq", "Capital of France?", [("Paris", True), ("Lyon", False)]),
            ("mcq", "Largest planet?", [("Mars", False), ("Jupiter", True)]),
            ("text", "Explain gravity.", []),
        ],
    )
    q1, q2, q3 = exam["questions"]
    attempt_id = engine.start(exam["exam_id"], student_id)["attempt_id"]
    engine.record_answer(attempt_id, q1["id"], q1["choices"]["Paris"])
    engine.record_answer(attempt_id, q2["id"], q2["choices"]["Mars"])
    engine.record_answer(attempt_id, q3["id"], "Things fall down.")

    assert engine.submit(attempt_id) == GradeResult(correct=1, total=2, percent=50)


def test_submit_persists_score_and_end_time(db, engine, clock, student_id, single_mcq_exam):
    attempt_id = engine.start(single_mcq_exam["exam_id"], student_id)["attempt_id"]
    clock.now = FIXED_NOW + timedelta(minutes=5)

    engine.submit(attempt_id)

    summary = engine.get_attempt(attempt_id)
    assert summary["status"] == "submitted"
    assert summary["score"] == {"correct": 0, "total": 1, "percent": 0}
    assert _as_utc(summary["ended_at"]) == FIXED_NOW + timedelta(minutes=5)


def test_second_submit_changes_nothing(db, engine, clock, student_id, single_mcq_exam):
    attempt_id = engine.start(single_mcq_exam["exam_id"], student_id)["attempt_id"]
    right, _ = _correct_and_wrong(single_mcq_exam)
    engine.record_answer(attempt_id, single_mcq_exam["questions"][0]["id"], right)
    engine.submit(attempt_id)
    before = engine.get_attempt(attempt_id)

    clock.now = FIXED_NOW + timedelta(minutes=10)
    with pytest.raises(InvalidStateError, match="already submitted"):
        engine.submit(attempt_id)

    after = engine.get_attempt(attempt_id)
    assert after["score"] == before["score"] == {"correct": 1, "total": 1, "percent": 100}
    assert after["ended_at"] == before["ended_at"]


def test_submit_unknown_attempt(engine):
    with pytest.raises(NotFoundError):
        engine.submit(12345)


def test_concurrent_submit_grades_once(tmp_path):
    file_engine = build_engine(f"sqlite:///{tmp_path / 'race.db'}")
    Base.metadata.create_all(bind=file_engine)
    Session = sessionmaker(bind=file_engine, autoflush=False)
    try:
        setup = Session()
        student = make_user(setup, "racer@example.com", "student")
        exam = build_exam(setup, student, [("mcq", "Pick a", [("a", True), ("b", False)])])
        question = exam["questions"][0]
        attempt_id = AttemptEngine(setup).start(exam["exam_id"], student)["attempt_id"]
        AttemptEngine(setup).record_answer(attempt_id, question["id"], question["choices"]["a"])
        setup.close()

        competitor = Session()
        late = FakeClock(FIXED_NOW + timedelta(hours=1))

        class RacingRepository(AttemptRepository):
            def get_attempt(self, attempt_id):
                attempt = super().get_attempt(attempt_id)
                # Another request submits between our status read and our write
                AttemptEngine(competitor).submit(attempt_id)
                return attempt

        loser_db = Session()
        loser = AttemptEngine(loser_db, attempts=RacingRepository(loser_db), clock=late)
        with pytest.raises(InvalidStateError):
            loser.submit(attempt_id)
        loser_db.close()
        competitor.close()

        check = Session()
        attempt = check.query(StudentExamModel).filter(StudentExamModel.id == attempt_id).one()
        assert attempt.status == "submitted"
        assert attempt.score == {"correct": 1, "total": 1, "percent": 100}
        assert _as_utc(attempt.ended_at) != late.now
        check.close()
    finally:
        file_engine.dispose()


def test_answer_racing_a_submit_is_rejected(tmp_path):
    file_engine = build_engine(f"sqlite:///{tmp_path / 'answer_race.db'}")
    Base.metadata.create_all(bind=file_engine)
    Session = sessionmaker(bind=file_engine, autoflush=False)
    try:
        setup = Session()
        student = make_user(setup, "racer@example.com", "student")
        exam = build_exam(setup, student, [("mcq", "Pick a", [("a", True), ("b", False)])])
        question = exam["questions"][0]
        attempt_id = AttemptEngine(setup).start(exam["exam_id"], student)["attempt_id"]
        setup.close()

        competitor = Session()

        class RacingRepository(AttemptRepository):
            def get_attempt_for_update(self, attempt_id):
                attempt = super().get_attempt_for_update(attempt_id)
                # The attempt is submitted after we saw it in progress
                AttemptEngine(competitor).submit(attempt_id)
                return attempt

        loser_db = Session()
        loser = AttemptEngine(loser_db, attempts=RacingRepository(loser_db))
        with pytest.raises(InvalidStateError, match="exam not active"):
            loser.record_answer(attempt_id, question["id"], question["choices"]["a"])
        loser_db.close()
        competitor.close()

        check = Session()
        attempt = check.query(StudentExamModel).filter(StudentExamModel.id == attempt_id).one()
        assert attempt.status == "submitted"
        assert attempt.score == {"correct": 0, "total": 1, "percent": 0}
        assert AttemptRepository(check).get_answers(attempt_id) == {}
        check.close()
    finally:
        file_engine.dispose()


def test_lock_in_progress_only_matches_open_attempts(engine, db, student_id, single_mcq_exam):
    attempt_id = engine.start(single_mcq_exam["exam_id"], student_id)["attempt_id"]
    repo = AttemptRepository(db)

    assert repo.lock_in_progress(attempt_id) is True
    db.commit()
    engine.submit(attempt_id)
    assert repo.lock_in_progress(attempt_id) is False
    db.rollback()


# ---------------------------
# deadline
# ---------------------------

def test_deadline_is_advisory_by_default(engine, clock, student_id, single_mcq_exam):
    attempt_id = engine.start(single_mcq_exam["exam_id"], student_id)["attempt_id"]
    clock.now = FIXED_NOW + timedelta(hours=2)

    engine.record_answer(attempt_id, single_mcq_exam["questions"][0]["id"], 1)
    assert engine.submit(attempt_id).total == 1


def test_deadline_enforced_when_enabled(db, clock, rng, student_id, single_mcq_exam):
    engine = AttemptEngine(db, clock=clock, rng=rng, enforce_deadline=True)
    attempt_id = engine.start(single_mcq_exam["exam_id"], student_id)["attempt_id"]
    question_id = single_mcq_exam["questions"][0]["id"]

    clock.now = FIXED_NOW + timedelta(minutes=30)
    engine.record_answer(attempt_id, question_id, 1)

    clock.now = FIXED_NOW + timedelta(minutes=31)
    with pytest.raises(InvalidStateError, match="time is over"):
        engine.record_answer(attempt_id, question_id, 2)
    with pytest.raises(InvalidStateError, match="time is over"):
        engine.submit(attempt_id)
    assert engine.get_attempt(attempt_id)["status"] == "in_progress"


# ---------------------------
# store failures
# ---------------------------

class FailingScoreRepository(AttemptRepository):
    def update_attempt_score(self, attempt_id, score):
        raise OperationalError("UPDATE student_exams", {}, Exception("disk I/O error"))


def test_failed_submit_leaves_attempt_in_progress(db, clock, rng, student_id, single_mcq_exam):
    attempt_id = AttemptEngine(db, clock=clock, rng=rng).start(single_mcq_exam["exam_id"], student_id)["attempt_id"]
    broken = AttemptEngine(db, attempts=FailingScoreRepository(db), clock=clock)

    with pytest.raises(StoreFailure):
        broken.submit(attempt_id)

    summary = AttemptEngine(db).get_attempt(attempt_id)
    assert summary["status"] == "in_progress"
    assert summary["score"] is None
    assert summary["ended_at"] is None

    # Retry with a healthy store grades normally
    assert AttemptEngine(db, clock=clock).submit(attempt_id).total == 1
