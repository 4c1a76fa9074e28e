from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./studentcare.db"
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4.1-mini"
    OPENAI_VISION_MODEL: str = "gpt-4.1-mini"  # Must accept image and file parts
    OPENAI_TIMEOUT: float = 120.0
    ALLOWED_ORIGINS: str = "http://localhost:5173,http://localhost:3000"
    ENVIRONMENT: str = "development"
    PORT: int = 8000

    # Uploads
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024  # 10MB

    # Number of past turns sent to the counselor model
    CHAT_HISTORY_WINDOW: int = 10

    # Optional deployment hint (Railway, Render, ...)
    RAILWAY_ENVIRONMENT: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production" or self.RAILWAY_ENVIRONMENT is not None

settings = Settings()
