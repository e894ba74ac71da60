from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError

from exam_portal.config import JWT_SECRET_KEY, JWT_ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES


class InvalidTokenError(Exception):
    pass


def create_access_token(user_id: int, role: str, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {"sub": str(user_id), "role": role, "exp": expire}
    return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Verifies signature and expiry and returns {"user_id", "role"}.
    """
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        raise InvalidTokenError(str(e)) from e

    sub = payload.get("sub")
    role = payload.get("role")
    if sub is None or role is None:
        raise InvalidTokenError("Token is missing subject or role")
    try:
        user_id = int(sub)
    except (TypeError, ValueError) as e:
        raise InvalidTokenError("Token subject is not a user id") from e
    return {"user_id": user_id, "role": role}
