"""
API tests: health check, auth enforcement, request validation and a
short scam conversation replayed over HTTP.
"""

import uuid

import pytest
from fastapi.testclient import TestClient


# ── Setup ────────────────────────────────────────────────────────

API_KEY = "test-secret-key-123"


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setenv("API_KEY", API_KEY)
    from honeypot.main import app
    return TestClient(app)


@pytest.fixture
def headers():
    return {"x-api-key": API_KEY}


def payload(session_id, text, history=None):
    return {
        "sessionId": session_id,
        "message": {"sender": "scammer", "text": text, "timestamp": 1771585363308},
        "conversationHistory": history or [],
        "metadata": {"channel": "SMS", "language": "English", "locale": "IN"},
    }


# ── Health ──────────────────────────────────────────────────────

class TestHealth:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "online"
        assert body["configVersion"]


# ── Auth Enforcement ────────────────────────────────────────────

class TestAuth:
    def test_missing_key(self, client):
        response = client.post("/honeypot", json=payload(str(uuid.uuid4()), "hello"))
        assert response.status_code == 401

    def test_wrong_key(self, client):
        response = client.post("/honeypot", json=payload(str(uuid.uuid4()), "hello"),
                               headers={"x-api-key": "nope"})
        assert response.status_code == 401


# ── Request Validation ──────────────────────────────────────────

class TestValidation:
    def test_missing_message(self, client, headers):
        response = client.post("/honeypot", json={"sessionId": "abc"}, headers=headers)
        assert response.status_code == 422

    def test_blank_text(self, client, headers):
        response = client.post("/honeypot", json=payload(str(uuid.uuid4()), "   "), headers=headers)
        assert response.status_code == 400

    def test_extra_fields_ignored(self, client, headers):
        body = payload(str(uuid.uuid4()), "hello")
        body["unexpected"] = {"nested": True}
        response = client.post("/honeypot", json=body, headers=headers)
        assert response.status_code == 200

    def test_partial_metadata_kept_as_sent(self, client, headers):
        from honeypot.main import pipeline

        session_id = str(uuid.uuid4())
        body = payload(session_id, "hello")
        body["metadata"] = {"channel": "WhatsApp"}
        assert client.post("/honeypot", json=body, headers=headers).status_code == 200
        assert pipeline.store.get(session_id).metadata == {"channel": "WhatsApp"}


# ── Conversation Replay ─────────────────────────────────────────

class TestConversation:
    def test_scam_conversation(self, client, headers):
        from honeypot.main import pipeline

        session_id = str(uuid.uuid4())
        turns = [
            "URGENT: Your SBI account will be blocked in 2 hours. Share your OTP immediately.",
            "I am calling from SBI Bank head office. Call me back at +91-9876543210.",
            "Send Rs.500 verification fee to sbi.verify@ybl right now",
        ]
        history = []
        for text in turns:
            response = client.post("/honeypot", json=payload(session_id, text, history), headers=headers)
            assert response.status_code == 200
            body = response.json()
            assert body["status"] == "success"
            assert isinstance(body["reply"], str) and body["reply"]
            assert set(body) == {"status", "reply"}
            history += [
                {"sender": "scammer", "text": text},
                {"sender": "user", "text": body["reply"]},
            ]

        session = pipeline.store.get(session_id)
        assert session.scam_detected
        report = session.intelligence.as_report()
        assert "9876543210" in report["phoneNumbers"]
        assert "sbi.verify@ybl" in report["upiIds"]
