from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime
from studentcare.config import settings
from studentcare.database import get_db
from studentcare.models import Conversation, MessageRole
from studentcare.routers.timetable import latest_timetable
from studentcare.services.chat_service import ChatService, detect_concerns, detect_crisis
from studentcare.services import mood_analytics, schedule_service
import asyncio
import logging
import uuid

logger = logging.getLogger(__name__)

router = APIRouter()

chat_service = ChatService(history_window=settings.CHAT_HISTORY_WINDOW)


def get_chat_service() -> ChatService:
    return chat_service


class SendMessageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    student_id: Optional[str] = Field(None, alias="studentId")
    message: Optional[str] = None
    conversation_id: Optional[str] = Field(None, alias="conversationId")


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_conversation(conversation: Conversation) -> Dict[str, Any]:
    return {
        "_id": str(conversation.id),
        "studentId": conversation.student_id,
        "conversationId": conversation.conversation_id,
        "messages": conversation.messages or [],
        "session": {
            "startTime": _isoformat(conversation.session_start),
            "endTime": _isoformat(conversation.session_end),
            "duration": conversation.duration_minutes,
            "overallMood": conversation.overall_mood,
            "moodScore": conversation.mood_score,
            "concerns": conversation.session_concerns or [],
            "summary": conversation.summary,
        },
        "analytics": conversation.analytics or {},
        "flags": {
            "requiresAttention": conversation.requires_attention,
            "crisisDetected": conversation.crisis_detected,
            "keywords": conversation.crisis_keywords or [],
        },
        "metadata": conversation.meta_data or {},
        "isActive": conversation.is_active,
        "createdAt": _isoformat(conversation.created_at),
        "updatedAt": _isoformat(conversation.updated_at),
    }


def get_or_create_conversation(
    db: Session,
    student_id: str,
    conversation_id: Optional[str] = None
) -> Tuple[Conversation, bool]:
    """
    Find the active conversation with this id, or start a new one.

    A new conversation keeps the requested id unless an ended conversation
    already holds it, in which case a fresh id is issued.
    """
    if conversation_id:
        conversation = db.query(Conversation).filter(
            Conversation.conversation_id == conversation_id,
            Conversation.is_active.is_(True)
        ).first()
        if conversation:
            return conversation, False

        taken = db.query(Conversation.id).filter(
            Conversation.conversation_id == conversation_id
        ).first()
        if taken:
            logger.info(f"Conversation {conversation_id} has ended - starting a new one")
            conversation_id = None

    conversation = Conversation(
        student_id=student_id,
        conversation_id=conversation_id or str(uuid.uuid4()),
        messages=[],
        session_start=datetime.utcnow(),
        crisis_keywords=[],
        is_active=True
    )
    db.add(conversation)
    return conversation, True


def load_student_context(db: Session, student_id: str) -> Dict[str, Any]:
    """Schedule context for the counselor prompt; missing data just means no context"""
    try:
        timetable = latest_timetable(db, student_id)
        if timetable:
            return schedule_service.student_context(timetable.structured_data)
    except Exception as e:
        logger.warning(f"Could not fetch timetable context: {e}")
    return {}


@router.post("/message")
async def send_message(
    request: SendMessageRequest,
    service: ChatService = Depends(get_chat_service),
    db: Session = Depends(get_db)
):
    """Store a student message, generate the counselor reply and store that too"""
    student_id = (request.student_id or "").strip()
    message = (request.message or "").strip()
    if not student_id or not message:
        raise HTTPException(status_code=400, detail="studentId and message are required")

    conversation, is_new = get_or_create_conversation(db, student_id, request.conversation_id)

    # Analyze user message; model calls block, so they run off the event loop
    sentiment = await asyncio.to_thread(service.analyze_sentiment, message)
    concerns = detect_concerns(message)
    crisis_check = detect_crisis(message)

    messages: List[Dict[str, Any]] = list(conversation.messages or [])
    messages.append({
        "role": MessageRole.USER.value,
        "content": message,
        "timestamp": datetime.utcnow().isoformat(),
        "sentiment": {
            "score": sentiment.score,
            "label": sentiment.label,
            "emotions": sentiment.emotions,
        },
        "concerns": concerns,
    })

    if crisis_check.is_crisis:
        logger.warning(f"Crisis keywords detected in conversation {conversation.conversation_id}")
        conversation.crisis_detected = True
        conversation.requires_attention = True
        keywords = list(conversation.crisis_keywords or [])
        conversation.crisis_keywords = keywords + [k for k in crisis_check.keywords if k not in keywords]

    student_context = load_student_context(db, student_id)

    # History already includes the new user turn
    ai_response = await asyncio.to_thread(
        service.generate_chat_response,
        message,
        messages[-settings.CHAT_HISTORY_WINDOW:],
        student_context
    )

    messages.append({
        "role": MessageRole.ASSISTANT.value,
        "content": ai_response,
        "timestamp": datetime.utcnow().isoformat(),
        "concerns": [],
    })
    conversation.messages = messages
    db.commit()

    return {
        "success": True,
        "conversationId": conversation.conversation_id,
        "message": ai_response,
        "sentiment": sentiment.model_dump(),
        "concerns": concerns,
        "crisisDetected": crisis_check.is_crisis,
        "isNewConversation": is_new
    }


@router.get("/conversation/{conversation_id}")
async def get_conversation(
    conversation_id: str,
    db: Session = Depends(get_db)
):
    conversation = db.query(Conversation).filter(
        Conversation.conversation_id == conversation_id
    ).first()
    if not conversation:
        raise HTTPException(status_code=404, detail="Conversation not found")

    return {"conversation": serialize_conversation(conversation)}


@router.get("/student/{student_id}/conversations")
async def get_student_conversations(
    student_id: str,
    limit: int = Query(10, ge=0, le=100),
    skip: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    """Get a page of a student's conversations, newest first"""
    query = db.query(Conversation).filter(Conversation.student_id == student_id)
    total = query.count()
    conversations = query.order_by(
        Conversation.created_at.desc(), Conversation.id.desc()
    ).offset(skip).limit(limit).all()

    return {
        "conversations": [serialize_conversation(c) for c in conversations],
        "total": total,
        "hasMore": total > skip + len(conversations)
    }


@router.post("/conversation/{conversation_id}/end")
async def end_conversation(
    conversation_id: str,
    service: ChatService = Depends(get_chat_service),
    db: Session = Depends(get_db)
):
    """End a conversation and store the session analysis"""
    conversation = db.query(Conversation).filter(
        Conversation.conversation_id == conversation_id,
        Conversation.is_active.is_(True)
    ).first()
    if not conversation:
        raise HTTPException(status_code=404, detail="Active conversation not found")

    analysis = await asyncio.to_thread(service.analyze_session, conversation.messages or [])

    end_time = datetime.utcnow()
    conversation.session_end = end_time
    conversation.duration_minutes = round((end_time - conversation.session_start).total_seconds() / 60)
    conversation.overall_mood = analysis.overall_mood
    conversation.mood_score = analysis.mood_score
    conversation.session_concerns = analysis.concerns
    conversation.summary = analysis.summary
    conversation.analytics = analysis.analytics
    conversation.is_active = False
    db.commit()

    logger.info(f"Conversation {conversation_id} ended after {conversation.duration_minutes} minutes")

    return {
        "success": True,
        "message": "Conversation ended",
        "analysis": {
            "overallMood": analysis.overall_mood,
            "summary": analysis.summary,
            "duration": conversation.duration_minutes
        }
    }


@router.get("/student/{student_id}/analytics")
async def get_mood_analytics(
    student_id: str,
    days: int = Query(30, ge=1, le=365),
    db: Session = Depends(get_db)
):
    """Mood analytics over the student's conversations of the last `days` days"""
    conversations = db.query(Conversation).filter(
        Conversation.student_id == student_id,
        Conversation.session_start >= mood_analytics.window_start(days)
    ).order_by(Conversation.session_start.asc(), Conversation.id.asc()).all()

    return {"analytics": mood_analytics.aggregate(conversations)}


@router.delete("/conversation/{conversation_id}")
async def delete_conversation(
    conversation_id: str,
    db: Session = Depends(get_db)
):
    conversation = db.query(Conversation).filter(
        Conversation.conversation_id == conversation_id
    ).first()
    if not conversation:
        raise HTTPException(status_code=404, detail="Conversation not found")

    db.delete(conversation)
    db.commit()

    return {"success": True, "message": "Conversation deleted"}
