import logging
from typing import Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from exam_portal.config import ROLE_ADMIN, ROLE_STUDENT
from exam_portal.infrastructure.db.models import UserModel
from exam_portal.infrastructure.repositories.user_repository import UserRepository
from exam_portal.infrastructure.security.password_service import hash_password, verify_password

logger = logging.getLogger(__name__)

DEMO_USERS = [
    ("Admin", "admin@example.com", "adminpass", ROLE_ADMIN),
    ("Student", "student@example.com", "pass", ROLE_STUDENT),
]


def authenticate(db: Session, email: str, password: str) -> Optional[UserModel]:
    user = UserRepository(db).get_by_email(email)
    if not user or not verify_password(password, user.password_hash):
        logger.warning(f"Failed login for {email}")
        return None
    return user


def register_student(db: Session, name: str, email: str, password: str) -> UserModel:
    repo = UserRepository(db)
    if repo.get_by_email(email):
        raise ValueError(f"User '{email}' already exists")
    try:
        user = repo.create_user(name, email, hash_password(password), ROLE_STUDENT)
        db.commit()
        db.refresh(user)
        return user
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Database integrity error registering {email}: {e}")
        raise ValueError(f"User '{email}' already exists")
    except Exception:
        db.rollback()
        raise


def seed_demo_users(db: Session) -> int:
    """Seeds the demo admin and student when no users exist yet."""
    repo = UserRepository(db)
    if repo.count() > 0:
        return 0
    for name, email, password, role in DEMO_USERS:
        repo.create_user(name, email, hash_password(password), role)
    db.commit()
    logger.info("Seeded demo users: admin@example.com/adminpass, student@example.com/pass")
    return len(DEMO_USERS)
