"""
Counseling chat service: keyword heuristics plus prompts for the generative model.
Every model call has a fixed fallback so a chat turn never fails on the AI side.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from studentcare.services.openai_service import OpenAIService
from studentcare.schemas.ai_results import SentimentResult, SessionAnalysis
import logging

logger = logging.getLogger(__name__)

# Crisis keywords for detection
CRISIS_KEYWORDS = [
    "suicide", "kill myself", "end my life", "want to die", "better off dead",
    "self harm", "hurt myself", "cut myself", "hate myself", "no point living",
]

# Concern keywords for categorization
CONCERN_PATTERNS: Dict[str, List[str]] = {
    "academic_pressure": ["exam", "test", "assignment", "grade", "fail", "study", "homework", "pressure"],
    "sleep_issues": ["sleep", "tired", "exhausted", "insomnia", "cant sleep", "sleepless"],
    "stress": ["stress", "anxious", "anxiety", "worried", "nervous", "overwhelmed"],
    "social_issues": ["lonely", "alone", "friends", "isolated", "left out", "bullied"],
    "family_issues": ["family", "parents", "home", "fight", "argument"],
    "health": ["sick", "pain", "headache", "unwell", "health"],
}

FALLBACK_REPLY = "I'm here to listen. Can you tell me more about how you're feeling?"

COUNSELOR_PROMPT = """You are a caring, empathetic AI counselor chatbot for students. Your role is to:
- Check in on students' mental health and wellbeing
- Listen actively and empathetically
- Provide emotional support and validation
- Help students identify stressors and concerns
- Suggest healthy coping strategies
- Encourage seeking professional help when needed
- Be warm, understanding, and non-judgmental

Guidelines:
- Keep responses concise (2-4 sentences max)
- Ask follow-up questions to understand better
- Acknowledge their feelings
- Never diagnose or provide medical advice
- If serious concerns detected, encourage professional help
- Be natural and conversational, not clinical
- Reference their schedule/context when relevant
{context}

Previous conversation:
{history}

Student's message: "{message}"

Respond empathetically and supportively:"""

SENTIMENT_PROMPT = """Analyze the sentiment and emotions in this message. Return ONLY a JSON object:

Message: "{message}"

Return format:
{{
  "score": <number between -1 and 1, where -1 is very negative, 0 is neutral, 1 is very positive>,
  "label": "positive" | "negative" | "neutral",
  "emotions": ["happy", "sad", "anxious", "stressed", "excited", "calm", etc.],
  "intensity": <number 0-10 indicating emotional intensity>
}}"""

SESSION_PROMPT = """Analyze this counseling conversation and provide insights. Return ONLY a JSON object:

Conversation:
{conversation}

Return format:
{{
  "overallMood": "positive" | "negative" | "neutral" | "mixed",
  "moodScore": <number -1 to 1>,
  "concerns": ["academic_pressure", "sleep_issues", etc.],
  "summary": "Brief 1-2 sentence summary of the conversation",
  "analytics": {{
    "academicPressure": <0-10>,
    "sleepQuality": <0-10>,
    "stressLevel": <0-10>,
    "socialWellbeing": <0-10>,
    "overallWellbeing": <0-10>
  }}
}}"""


@dataclass
class CrisisCheck:
    is_crisis: bool
    keywords: List[str] = field(default_factory=list)


def detect_crisis(text: str) -> CrisisCheck:
    """Substring scan against CRISIS_KEYWORDS; sets a flag only, not a clinical assessment"""
    lower_text = (text or "").lower()
    detected = [keyword for keyword in CRISIS_KEYWORDS if keyword in lower_text]
    return CrisisCheck(is_crisis=bool(detected), keywords=detected)


def detect_concerns(text: str) -> List[str]:
    lower_text = (text or "").lower()
    return [
        concern for concern, keywords in CONCERN_PATTERNS.items()
        if any(keyword in lower_text for keyword in keywords)
    ]


def format_history(messages: List[Dict[str, Any]], limit: int = 10, assistant_name: str = "You") -> str:
    lines = []
    for msg in (messages[-limit:] if limit else messages):
        speaker = "Student" if msg.get("role") == "user" else assistant_name
        lines.append(f"{speaker}: {msg.get('content', '')}")
    return "\n".join(lines)


def format_student_context(student_context: Optional[Dict[str, Any]]) -> str:
    if not student_context:
        return ""
    context_info = ""
    next_class = student_context.get("nextClass")
    if next_class:
        context_info += f"\nStudent's next class: {next_class.get('subject', 'Unknown')} at {next_class.get('time', 'unknown time')}"
    if student_context.get("upcomingClasses"):
        context_info += f"\nUpcoming classes today: {student_context['upcomingClasses']}"
    return context_info


class ChatService:
    """Sentiment, reply generation and session analysis backed by the generative model"""

    def __init__(self, openai_service: Optional[OpenAIService] = None, history_window: int = 10):
        self.openai_service = openai_service or OpenAIService()
        self.history_window = history_window

    def analyze_sentiment(self, text: str) -> SentimentResult:
        try:
            data = self.openai_service.complete_json(SENTIMENT_PROMPT.format(message=text), temperature=0.2)
            return SentimentResult.model_validate(data)
        except Exception as e:
            logger.error(f"Sentiment analysis error: {e}")
            # Return neutral sentiment on error
            return SentimentResult.neutral()

    def generate_chat_response(
        self,
        user_message: str,
        conversation_history: Optional[List[Dict[str, Any]]] = None,
        student_context: Optional[Dict[str, Any]] = None
    ) -> str:
        """Generate an empathetic counselor reply"""
        history = format_history(conversation_history or [], limit=self.history_window)
        prompt = COUNSELOR_PROMPT.format(
            context=format_student_context(student_context),
            history=history or "This is the start of the conversation.",
            message=user_message,
        )
        try:
            return self.openai_service.complete_text(prompt, temperature=0.7)
        except Exception as e:
            logger.error(f"Chat response generation error: {e}")
            return FALLBACK_REPLY

    def analyze_session(self, messages: List[Dict[str, Any]]) -> SessionAnalysis:
        """Summarise a finished conversation; empty sessions skip the model"""
        if not messages:
            return SessionAnalysis.empty()

        conversation_text = format_history(messages, limit=0, assistant_name="Assistant")
        try:
            data = self.openai_service.complete_json(SESSION_PROMPT.format(conversation=conversation_text))
            return SessionAnalysis.model_validate(data)
        except Exception as e:
            logger.error(f"Session analysis error: {e}")
            return SessionAnalysis.fallback()
