from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from datetime import datetime
from sqlalchemy import text
from studentcare.database import engine, Base
from studentcare.routers import chat, timetable
from studentcare.config import settings
import logging
import traceback

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"DATABASE_URL: {'Configured' if settings.DATABASE_URL else 'Missing'}")
    logger.info(f"OPENAI_API_KEY: {'Configured' if settings.OPENAI_API_KEY else 'Missing - AI features will use fallbacks'}")
    logger.info(f"ENVIRONMENT: {settings.ENVIRONMENT}")

    # Startup: Create database tables
    try:
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Keep serving; "/" reports the database as disconnected
        logger.error(f"Error creating database tables: {e}")
    yield
    logger.info("Shutting down...")

app = FastAPI(
    title="StudentCare API",
    description="Timetable extraction and wellbeing chat for students",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
# Parse ALLOWED_ORIGINS from comma-separated string, strip whitespace
allowed_origins = [origin.strip() for origin in settings.ALLOWED_ORIGINS.split(",") if origin.strip()]

logger.info(f"CORS allowed origins: {allowed_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins if allowed_origins else ["*"],  # Fallback to allow all if empty
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(timetable.router, prefix="/api/timetable", tags=["timetable"])
app.include_router(chat.router, prefix="/api/chat", tags=["chat"])


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    content = {"error": "Internal server error", "message": str(exc)}
    if not settings.is_production:
        content["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(status_code=500, content=content)


def database_status() -> str:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return "connected"
    except Exception as e:
        logger.warning(f"Database check failed: {e}")
        return "disconnected"


@app.get("/")
async def root():
    return {
        "message": "StudentCare API is running!",
        "database": database_status(),
        "environment": settings.ENVIRONMENT,
        "timestamp": datetime.utcnow().isoformat()
    }

@app.get("/health")
async def health():
    return {"status": "ok", "timestamp": datetime.utcnow().isoformat()}
