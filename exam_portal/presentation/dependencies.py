import logging
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from exam_portal.config import ROLE_ADMIN, ROLE_STUDENT
from exam_portal.application.attempt_engine import AttemptEngine
from exam_portal.infrastructure.db.session import SessionLocal
from exam_portal.infrastructure.repositories.user_repository import UserRepository
from exam_portal.infrastructure.security.jwt_service import decode_access_token, InvalidTokenError

logger = logging.getLogger(__name__)

# auto_error=False so a missing token gets the same 401 body as a bad one
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> dict:
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="missing token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = decode_access_token(token)
    except InvalidTokenError as e:
        logger.warning(f"Token validation failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = UserRepository(db).get_by_id(payload["user_id"])
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return {"user_id": user.id, "role": user.role}


def admin_required(current_user: dict = Depends(get_current_user)) -> dict:
    if current_user.get("role") != ROLE_ADMIN:
        logger.warning(f"Access denied for non-admin user_id: {current_user.get('user_id')}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="forbidden",
        )
    return current_user


def student_required(current_user: dict = Depends(get_current_user)) -> dict:
    if current_user.get("role") != ROLE_STUDENT:
        logger.warning(f"Access denied for non-student user_id: {current_user.get('user_id')}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="forbidden",
        )
    return current_user


def get_attempt_engine(db: Session = Depends(get_db)) -> AttemptEngine:
    return AttemptEngine(db)
