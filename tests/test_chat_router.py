"""
API tests for /api/chat
"""
import threading
import time
from datetime import datetime, timedelta
from fastapi.testclient import TestClient
from studentcare.main import app
from studentcare.models import Conversation, Timetable
from studentcare.services.openai_service import LLMNotConfiguredError


def sentiment_then_reply(mock_openai, reply="I hear you. What's been hardest this week?"):
    mock_openai.complete_json.return_value = {"score": -0.6, "label": "negative", "emotions": ["stressed"], "intensity": 7}
    mock_openai.complete_text.return_value = reply


def add_conversation(db, student_id="s-1", conversation_id="c-1", **fields):
    conversation = Conversation(
        student_id=student_id,
        conversation_id=conversation_id,
        messages=fields.pop("messages", []),
        crisis_keywords=fields.pop("crisis_keywords", []),
        **fields
    )
    db.add(conversation)
    db.commit()
    return conversation


class TestSendMessage:
    def test_new_conversation(self, client, mock_openai, db_session):
        sentiment_then_reply(mock_openai)
        response = client.post("/api/chat/message", json={"studentId": "s-1", "message": "I'm stressed about my exam"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["isNewConversation"] is True
        assert body["message"] == "I hear you. What's been hardest this week?"
        assert body["sentiment"]["label"] == "negative"
        assert body["concerns"] == ["academic_pressure", "stress"]
        assert body["crisisDetected"] is False

        conversation = db_session.query(Conversation).filter_by(conversation_id=body["conversationId"]).one()
        assert [m["role"] for m in conversation.messages] == ["user", "assistant"]
        assert conversation.messages[0]["sentiment"] == {"score": -0.6, "label": "negative", "emotions": ["stressed"]}
        assert conversation.messages[0]["concerns"] == ["academic_pressure", "stress"]
        assert conversation.is_active is True

    def test_continues_active_conversation(self, client, mock_openai, db_session):
        sentiment_then_reply(mock_openai)
        first = client.post("/api/chat/message", json={"studentId": "s-1", "message": "hi"}).json()
        second = client.post("/api/chat/message", json={
            "studentId": "s-1", "message": "still here", "conversationId": first["conversationId"]
        }).json()

        assert second["conversationId"] == first["conversationId"]
        assert second["isNewConversation"] is False
        conversation = db_session.query(Conversation).one()
        assert len(conversation.messages) == 4
        # The reply prompt carries earlier turns
        prompt = mock_openai.complete_text.call_args[0][0]
        assert "Student: hi" in prompt

    def test_client_supplied_id_is_kept(self, client, mock_openai):
        sentiment_then_reply(mock_openai)
        body = client.post("/api/chat/message", json={"studentId": "s-1", "message": "hi", "conversationId": "my-id"}).json()
        assert body["conversationId"] == "my-id"
        assert body["isNewConversation"] is True

    def test_ended_conversation_id_gets_fresh_conversation(self, client, mock_openai, db_session):
        add_conversation(db_session, conversation_id="done", is_active=False)
        sentiment_then_reply(mock_openai)
        body = client.post("/api/chat/message", json={"studentId": "s-1", "message": "hi", "conversationId": "done"}).json()
        assert body["isNewConversation"] is True
        assert body["conversationId"] != "done"
        assert db_session.query(Conversation).count() == 2

    def test_crisis_sets_flags(self, client, mock_openai, db_session):
        sentiment_then_reply(mock_openai)
        body = client.post("/api/chat/message", json={"studentId": "s-1", "message": "I want to die"}).json()
        assert body["crisisDetected"] is True

        body = client.post("/api/chat/message", json={
            "studentId": "s-1", "message": "I hate myself and want to die", "conversationId": body["conversationId"]
        }).json()
        conversation = db_session.query(Conversation).one()
        assert conversation.crisis_detected is True
        assert conversation.requires_attention is True
        assert conversation.crisis_keywords == ["want to die", "hate myself"]

    def test_missing_fields(self, client):
        response = client.post("/api/chat/message", json={"studentId": "s-1"})
        assert response.status_code == 400
        assert response.json()["detail"] == "studentId and message are required"
        assert client.post("/api/chat/message", json={"studentId": " ", "message": "hi"}).status_code == 400

    def test_ai_unavailable_uses_fallbacks(self, client, mock_openai):
        mock_openai.complete_json.side_effect = LLMNotConfiguredError("no key")
        mock_openai.complete_text.side_effect = LLMNotConfiguredError("no key")
        body = client.post("/api/chat/message", json={"studentId": "s-1", "message": "hello"}).json()
        assert body["success"] is True
        assert body["message"] == "I'm here to listen. Can you tell me more about how you're feeling?"
        assert body["sentiment"]["label"] == "neutral"

    def test_slow_reply_does_not_block_other_requests(self, client, mock_openai):
        started = threading.Event()
        release = threading.Event()

        def slow_reply(*args, **kwargs):
            started.set()
            release.wait(5)
            return "Take your time."

        sentiment_then_reply(mock_openai)
        mock_openai.complete_text.side_effect = slow_reply

        # One shared event loop for both requests
        with TestClient(app) as shared_client:
            chat = threading.Thread(
                target=shared_client.post,
                args=("/api/chat/message",),
                kwargs={"json": {"studentId": "s-1", "message": "hi"}},
            )
            chat.start()
            try:
                assert started.wait(5)
                began = time.monotonic()
                health = shared_client.get("/health")
                elapsed = time.monotonic() - began
                # The chat turn is still waiting on the model
                assert chat.is_alive()
            finally:
                release.set()
                chat.join(5)

        assert health.status_code == 200
        assert elapsed < 2

    def test_timetable_context_in_prompt(self, client, mock_openai, db_session):
        today = datetime.now().strftime("%A")
        db_session.add(Timetable(
            student_id="s-1",
            meta_data={},
            structured_data={today: [{"time": "11:59PM", "subject": "Late Seminar"}]},
        ))
        db_session.commit()
        sentiment_then_reply(mock_openai)

        client.post("/api/chat/message", json={"studentId": "s-1", "message": "hi"})
        prompt = mock_openai.complete_text.call_args[0][0]
        assert "Student's next class: Late Seminar at 11:59PM" in prompt
        assert "Upcoming classes today: 1" in prompt


class TestConversationResource:
    def test_get_conversation(self, client, db_session):
        add_conversation(db_session, messages=[{"role": "user", "content": "hi"}])
        response = client.get("/api/chat/conversation/c-1")
        assert response.status_code == 200
        conversation = response.json()["conversation"]
        assert conversation["conversationId"] == "c-1"
        assert conversation["studentId"] == "s-1"
        assert conversation["messages"] == [{"role": "user", "content": "hi"}]
        assert conversation["flags"] == {"requiresAttention": False, "crisisDetected": False, "keywords": []}
        assert conversation["isActive"] is True

    def test_get_missing(self, client):
        response = client.get("/api/chat/conversation/nope")
        assert response.status_code == 404
        assert response.json()["detail"] == "Conversation not found"

    def test_student_conversations_paging(self, client, db_session):
        now = datetime.utcnow()
        for i in range(3):
            add_conversation(db_session, conversation_id=f"c-{i}", created_at=now - timedelta(hours=3 - i))
        add_conversation(db_session, student_id="other", conversation_id="x")

        body = client.get("/api/chat/student/s-1/conversations", params={"limit": 2, "skip": 0}).json()
        assert [c["conversationId"] for c in body["conversations"]] == ["c-2", "c-1"]
        assert body["total"] == 3
        assert body["hasMore"] is True

        body = client.get("/api/chat/student/s-1/conversations", params={"limit": 2, "skip": 2}).json()
        assert [c["conversationId"] for c in body["conversations"]] == ["c-0"]
        assert body["hasMore"] is False

    def test_delete(self, client, db_session):
        add_conversation(db_session)
        response = client.delete("/api/chat/conversation/c-1")
        assert response.json() == {"success": True, "message": "Conversation deleted"}
        assert db_session.query(Conversation).count() == 0
        assert client.delete("/api/chat/conversation/c-1").status_code == 404


class TestEndConversation:
    def test_end_stores_analysis(self, client, mock_openai, db_session):
        add_conversation(
            db_session,
            messages=[{"role": "user", "content": "exams"}, {"role": "assistant", "content": "tell me more"}],
            session_start=datetime.utcnow() - timedelta(minutes=14, seconds=50),
        )
        mock_openai.complete_json.return_value = {
            "overallMood": "negative",
            "moodScore": -0.4,
            "concerns": ["academic_pressure"],
            "summary": "Worried about exams.",
            "analytics": {"stressLevel": 7, "overallWellbeing": 4},
        }

        response = client.post("/api/chat/conversation/c-1/end")
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Conversation ended",
            "analysis": {"overallMood": "negative", "summary": "Worried about exams.", "duration": 15},
        }

        db_session.expire_all()
        conversation = db_session.query(Conversation).one()
        assert conversation.is_active is False
        assert conversation.session_end is not None
        assert conversation.mood_score == -0.4
        assert conversation.session_concerns == ["academic_pressure"]
        assert conversation.analytics == {"stressLevel": 7, "overallWellbeing": 4}

    def test_end_twice(self, client, db_session):
        add_conversation(db_session)
        assert client.post("/api/chat/conversation/c-1/end").status_code == 200
        response = client.post("/api/chat/conversation/c-1/end")
        assert response.status_code == 404
        assert response.json()["detail"] == "Active conversation not found"

    def test_end_empty_conversation(self, client, mock_openai, db_session):
        add_conversation(db_session)
        body = client.post("/api/chat/conversation/c-1/end").json()
        # Empty sessions never reach the model
        mock_openai.complete_json.assert_not_called()
        assert body["analysis"]["summary"] == "No messages in session"
        assert body["analysis"]["overallMood"] == "neutral"


class TestMoodAnalytics:
    def test_analytics(self, client, db_session):
        now = datetime.utcnow()
        add_conversation(
            db_session, conversation_id="a", session_start=now - timedelta(days=3),
            overall_mood="negative", mood_score=-0.5, session_concerns=["stress", "sleep_issues"],
            analytics={"overallWellbeing": 4}, crisis_detected=True, requires_attention=True,
        )
        add_conversation(
            db_session, conversation_id="b", session_start=now - timedelta(days=1),
            overall_mood="positive", mood_score=0.5, session_concerns=["stress"],
            analytics={"overallWellbeing": 8},
        )
        add_conversation(db_session, conversation_id="old", session_start=now - timedelta(days=90))

        analytics = client.get("/api/chat/student/s-1/analytics").json()["analytics"]
        assert analytics["totalConversations"] == 2
        assert [p["mood"] for p in analytics["moodTrend"]] == ["negative", "positive"]
        assert analytics["commonConcerns"] == {"stress": 2, "sleep_issues": 1}
        assert analytics["averageWellbeing"] == 6
        assert analytics["flags"] == {"totalCrises": 1, "needsAttention": 1}
        assert analytics["latestMetrics"] == {"overallWellbeing": 8}

    def test_days_window(self, client, db_session):
        add_conversation(db_session, session_start=datetime.utcnow() - timedelta(days=90))
        analytics = client.get("/api/chat/student/s-1/analytics", params={"days": 120}).json()["analytics"]
        assert analytics["totalConversations"] == 1

    def test_no_conversations(self, client):
        analytics = client.get("/api/chat/student/nobody/analytics").json()["analytics"]
        assert analytics["totalConversations"] == 0
        assert analytics["averageWellbeing"] == 0
        assert "latestMetrics" not in analytics
