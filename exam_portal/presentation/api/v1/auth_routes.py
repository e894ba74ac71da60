from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from exam_portal.application.auth_usecase import authenticate, register_student
from exam_portal.infrastructure.repositories.user_repository import UserRepository
from exam_portal.infrastructure.security.jwt_service import create_access_token
from exam_portal.presentation.dependencies import get_db, get_current_user
from exam_portal.presentation.schemas.user_schema import LoginRequest, SignupRequest, TokenResponse, UserOut
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=TokenResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    user = authenticate(db, data.email, data.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid credentials")
    token = create_access_token(user.id, user.role)
    logger.info(f"User {user.id} logged in as {user.role}")
    return TokenResponse(access_token=token, user=UserOut.model_validate(user))


@router.post("/signup", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def signup(data: SignupRequest, db: Session = Depends(get_db)):
    try:
        return register_student(db, data.name, data.email, data.password)
    except ValueError as e:
        logger.warning(f"Signup rejected for {data.email}: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/me", response_model=UserOut)
def me(current_user: dict = Depends(get_current_user), db: Session = Depends(get_db)):
    user = UserRepository(db).get_by_id(current_user["user_id"])
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user
