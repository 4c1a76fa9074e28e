from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, Float, JSON, Index
from studentcare.database import Base
from datetime import datetime
import enum

class MessageRole(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"

class SentimentLabel(str, enum.Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"

class SessionMood(str, enum.Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"
    MIXED = "mixed"


# Timetables table
class Timetable(Base):
    __tablename__ = "timetables"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(String, nullable=False, index=True)
    # semester, academicYear, institutionName, courseName, studentName, section, ...
    meta_data = Column(JSON, name="metadata", nullable=False, default=dict)  # Python attr 'meta_data' maps to DB column 'metadata'
    # Day name -> list of {time, subject, teacher, room}; shape is whatever the model returned
    structured_data = Column(JSON, nullable=False)
    original_filename = Column(String, nullable=True)
    raw_extracted_text = Column(Text, nullable=True)  # Model output kept for debugging
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_timetables_student_created", "student_id", "created_at"),
    )


# Conversations table
class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(Integer, primary_key=True, index=True)
    conversation_id = Column(String, nullable=False, unique=True, index=True)
    student_id = Column(String, nullable=False, index=True)
    # Ordered turns: {role, content, timestamp, sentiment?, concerns, metadata?}
    messages = Column(JSON, nullable=False, default=list)

    # Session
    session_start = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    session_end = Column(DateTime, nullable=True)
    duration_minutes = Column(Integer, nullable=True)
    overall_mood = Column(String, nullable=True)  # SessionMood value
    mood_score = Column(Float, nullable=True)  # -1 to 1
    session_concerns = Column(JSON, nullable=True)  # Aggregated concerns from all messages
    summary = Column(Text, nullable=True)

    # academicPressure, sleepQuality, stressLevel, socialWellbeing, overallWellbeing (0-10)
    analytics = Column(JSON, nullable=True)

    # Flags
    requires_attention = Column(Boolean, default=False, nullable=False, index=True)
    crisis_detected = Column(Boolean, default=False, nullable=False, index=True)
    crisis_keywords = Column(JSON, nullable=False, default=list)

    meta_data = Column(JSON, name="metadata", nullable=True)  # deviceType, location, ...
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_conversations_student_created", "student_id", "created_at"),
    )
