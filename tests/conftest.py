"""
Shared fixtures: in-memory SQLite database and a TestClient with mocked AI services
"""
import os

# Must be set before studentcare.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["OPENAI_API_KEY"] = ""

import pytest
from unittest.mock import Mock
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from studentcare.database import Base, get_db
from studentcare.main import app
from studentcare.routers.chat import get_chat_service
from studentcare.routers.timetable import get_extraction_service
from studentcare.services.chat_service import ChatService
from studentcare.services.openai_service import OpenAIService
from studentcare.services.timetable_extraction_service import TimetableExtractionService


@pytest.fixture
def db_session():
    """Fresh in-memory database per test"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def mock_openai():
    """OpenAIService double; tests set return values per call"""
    mock = Mock(spec=OpenAIService)
    mock.is_configured = True
    mock.vision_model = "test-vision-model"
    mock.model = "test-model"
    return mock


@pytest.fixture
def chat_service(mock_openai):
    return ChatService(mock_openai, history_window=10)


@pytest.fixture
def extraction_service(mock_openai):
    return TimetableExtractionService(mock_openai)


@pytest.fixture
def client(db_session, chat_service, extraction_service):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_chat_service] = lambda: chat_service
    app.dependency_overrides[get_extraction_service] = lambda: extraction_service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
