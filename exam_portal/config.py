import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./exam_portal.db")
# SQLite busy timeout; lock waits longer than this fail instead of hanging
DB_LOCK_TIMEOUT_SECONDS = float(os.getenv("DB_LOCK_TIMEOUT_SECONDS", "15"))

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "replace-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(6 * 60)))


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# When off, ends_at is advisory only and late answers/submissions are accepted
ENFORCE_DEADLINE = _flag("ENFORCE_DEADLINE", "false")
SEED_DEMO_USERS = _flag("SEED_DEMO_USERS", "true")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

ROLE_ADMIN = "admin"
ROLE_STUDENT = "student"
