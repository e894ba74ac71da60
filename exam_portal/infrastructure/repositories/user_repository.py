import logging
from typing import Optional
from sqlalchemy.orm import Session
from ..db.models import UserModel

logger = logging.getLogger(__name__)


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: int) -> Optional[UserModel]:
        return self.db.query(UserModel).filter(UserModel.id == user_id).first()

    def get_by_email(self, email: str) -> Optional[UserModel]:
        return self.db.query(UserModel).filter(UserModel.email == email).first()

    def count(self) -> int:
        return self.db.query(UserModel).count()

    def create_user(self, name: str, email: str, password_hash: str, role: str) -> UserModel:
        user = UserModel(name=name, email=email, password_hash=password_hash, role=role)
        self.db.add(user)
        self.db.flush()
        logger.info(f"Created {role} user {user.id} ({email})")
        return user
