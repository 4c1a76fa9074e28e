from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from studentcare.config import settings


def normalize_database_url(url: str) -> str:
    """Ensure postgres URLs carry the psycopg2 driver (SQLAlchemy 2.0 requires it)"""
    if url.startswith("postgresql://") and "+psycopg2" not in url:
        return url.replace("postgresql://", "postgresql+psycopg2://", 1)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg2://", 1)
    return url


database_url = normalize_database_url(settings.DATABASE_URL)

if database_url.startswith("sqlite"):
    # SQLite is used for local development; FastAPI may hand the session to another thread
    engine = create_engine(
        database_url,
        echo=False,
        connect_args={"check_same_thread": False},
    )
else:
    # Use pool_pre_ping to handle connection issues gracefully
    # pool_recycle to prevent stale connections
    engine = create_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,  # Verify connections before using them
        pool_recycle=3600,   # Recycle connections after 1 hour
        connect_args={
            "connect_timeout": 10,  # 10 second connection timeout
        }
    )
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
