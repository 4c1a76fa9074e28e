"""
Pydantic schemas for the JSON the generative model returns.
Model output is loosely typed; these schemas coerce it into shapes we store.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from studentcare.models import SentimentLabel, SessionMood


SENTIMENT_LABELS = [label.value for label in SentimentLabel]
SESSION_MOODS = [mood.value for mood in SessionMood]
WELLBEING_METRICS = ["academicPressure", "sleepQuality", "stressLevel", "socialWellbeing", "overallWellbeing"]


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class SentimentResult(BaseModel):
    """Sentiment of a single student message"""
    score: float = Field(0.0, description="-1 (very negative) to 1 (very positive)")
    label: str = Field("neutral", description="positive | negative | neutral")
    emotions: List[str] = Field(default_factory=list)
    intensity: float = Field(5.0, description="Emotional intensity 0-10")

    @field_validator("score", mode="before")
    @classmethod
    def clamp_score(cls, v):
        if v is None:
            return 0.0
        return _clamp(float(v), -1.0, 1.0)

    @field_validator("intensity", mode="before")
    @classmethod
    def clamp_intensity(cls, v):
        if v is None:
            return 5.0
        return _clamp(float(v), 0.0, 10.0)

    @field_validator("label", mode="before")
    @classmethod
    def normalize_label(cls, v):
        label = str(v or "neutral").strip().lower()
        return label if label in SENTIMENT_LABELS else SentimentLabel.NEUTRAL.value

    @field_validator("emotions", mode="before")
    @classmethod
    def normalize_emotions(cls, v):
        if not v:
            return []
        if isinstance(v, str):
            v = [v]
        return [str(e).strip().lower() for e in v if str(e).strip()]

    @classmethod
    def neutral(cls) -> "SentimentResult":
        return cls(score=0, label="neutral", emotions=[], intensity=5)


class SessionAnalysis(BaseModel):
    """Whole-conversation analysis produced when a session ends"""
    model_config = ConfigDict(populate_by_name=True)

    overall_mood: str = Field("neutral", alias="overallMood")
    mood_score: float = Field(0.0, alias="moodScore")
    concerns: List[str] = Field(default_factory=list)
    summary: str = "Conversation completed"
    analytics: Dict[str, float] = Field(default_factory=dict)

    @field_validator("overall_mood", mode="before")
    @classmethod
    def normalize_mood(cls, v):
        mood = str(v or "neutral").strip().lower()
        return mood if mood in SESSION_MOODS else SessionMood.NEUTRAL.value

    @field_validator("mood_score", mode="before")
    @classmethod
    def clamp_mood_score(cls, v):
        if v is None:
            return 0.0
        return _clamp(float(v), -1.0, 1.0)

    @field_validator("analytics", mode="before")
    @classmethod
    def clamp_metrics(cls, v):
        # Keep only known metrics, each on a 0-10 scale
        if not isinstance(v, dict):
            return {}
        metrics = {}
        for key in WELLBEING_METRICS:
            if v.get(key) is not None:
                metrics[key] = _clamp(float(v[key]), 0.0, 10.0)
        return metrics

    @classmethod
    def empty(cls) -> "SessionAnalysis":
        return cls(overallMood="neutral", moodScore=0, concerns=[], summary="No messages in session", analytics={})

    @classmethod
    def fallback(cls) -> "SessionAnalysis":
        return cls(
            overallMood="neutral",
            moodScore=0,
            concerns=[],
            summary="Conversation completed",
            analytics={metric: 5 for metric in WELLBEING_METRICS},
        )


class ExtractionResult(BaseModel):
    """Outcome of a timetable extraction call; never raises to the caller"""
    success: bool
    data: Optional[Dict[str, Any]] = None
    raw_text: Optional[str] = None
    error: Optional[str] = None
