"""
Mood analytics aggregated over a student's recent conversations
"""
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional
from studentcare.models import Conversation


def window_start(days: int, now: Optional[datetime] = None) -> datetime:
    return (now or datetime.utcnow()) - timedelta(days=days)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def aggregate(conversations: Iterable[Conversation]) -> Dict[str, Any]:
    """Summarise conversations that are already filtered and sorted oldest first"""
    conversations: List[Conversation] = list(conversations)

    concern_counts: Counter = Counter()
    for conv in conversations:
        concern_counts.update(conv.session_concerns or [])

    wellbeing_scores = [
        conv.analytics["overallWellbeing"]
        for conv in conversations
        if conv.analytics and conv.analytics.get("overallWellbeing")
    ]

    analytics: Dict[str, Any] = {
        "totalConversations": len(conversations),
        "moodTrend": [
            {
                "date": _isoformat(conv.session_start),
                "mood": conv.overall_mood,
                "score": conv.mood_score,
            }
            for conv in conversations
        ],
        "commonConcerns": dict(concern_counts),
        "averageWellbeing": sum(wellbeing_scores) / len(wellbeing_scores) if wellbeing_scores else 0,
        "flags": {
            "totalCrises": sum(1 for conv in conversations if conv.crisis_detected),
            "needsAttention": sum(1 for conv in conversations if conv.requires_attention),
        },
    }

    if conversations:
        analytics["latestMetrics"] = conversations[-1].analytics

    return analytics
