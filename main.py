import sys
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from exam_portal.config import CORS_ORIGINS, SEED_DEMO_USERS
from exam_portal.presentation.api.v1.auth_routes import router as auth_router
from exam_portal.presentation.api.v1.admin_routes import router as admin_router
from exam_portal.presentation.api.v1.exam_routes import router as exam_router
from exam_portal.application.auth_usecase import seed_demo_users
from exam_portal.infrastructure.db.session import Base, engine, SessionLocal
from exam_portal.infrastructure.db import models  # noqa: F401  registers tables

# Create tables
Base.metadata.create_all(bind=engine)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if SEED_DEMO_USERS:
        db = SessionLocal()
        try:
            seed_demo_users(db)
        finally:
            db.close()
    yield


# Initialize FastAPI app
app = FastAPI(title="Exam Portal API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An internal server error occurred."}
    )

# Include routers
app.include_router(auth_router, prefix="/api/auth", tags=["Authentication"])
app.include_router(admin_router, prefix="/api/admin", tags=["Admin (Exams)"])
app.include_router(exam_router, prefix="/api", tags=["Student (Attempts)"])


@app.get("/")
def root():
    return {"message": "Welcome to Exam Portal API"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
