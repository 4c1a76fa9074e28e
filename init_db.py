"""
Database initialization script
Run this to create the timetable and conversation tables
"""
from dotenv import load_dotenv

load_dotenv()

from studentcare.database import engine, Base
from studentcare.models import Timetable, Conversation  # noqa: F401 - registers the tables

def init_database():
    """Initialize database with tables"""
    Base.metadata.create_all(bind=engine)
    print(f"Database initialized successfully! Tables: {', '.join(sorted(Base.metadata.tables))}")

if __name__ == "__main__":
    init_database()
