"""
Tests for the scam classifier: blended confidence, fraud typing,
message flags and the urgency ladder.
"""

from dataclasses import replace

import pytest

from honeypot.catalog import FraudType, UrgencyLevel
from honeypot.config import ClassifierConfig
from honeypot.detector import ScamClassifier


SCAM_MESSAGES = [
    ("Your account will be blocked today. Verify immediately.", FraudType.THREAT),
    ("Dear customer, your KYC has expired. Update your details within 24 hours or your account will be suspended.",
     FraudType.THREAT),
    ("Share your OTP immediately to verify your account", FraudType.CREDENTIAL_THEFT),
    ("Congratulations! You won Rs.50000. Send Rs.500 fee to prize@upi", FraudType.LOTTERY),
]

INNOCENT_MESSAGES = [
    "Hey, how are you, want to grab coffee this weekend?",
    "Good morning! How was your weekend?",
    "Did you finish the project report?",
    "Let's meet for coffee at 5.",
    "Happy birthday! Have a great day.",
    "Can you send me the notes from class?",
    "I love this song",
    "The bank is closed on Sunday",
]


# ── Scam Detection ──────────────────────────────────────────────

class TestScamDetection:
    @pytest.mark.parametrize("text,fraud_type", SCAM_MESSAGES)
    def test_detects_scam(self, classifier, text, fraud_type):
        result = classifier.classify(text)
        assert result.is_scam
        assert result.confidence >= 0.6
        assert result.fraud_type is fraud_type

    def test_blocked_account_is_critical(self, classifier):
        result = classifier.classify("Your account will be blocked today. Verify immediately.")
        assert result.urgency is UrgencyLevel.CRITICAL
        assert result.urgency.label == "critical"
        assert {"threat", "verification", "urgency"} <= result.risk_factors

    def test_prize_message_flags(self, classifier):
        result = classifier.classify("Congratulations! You won Rs.50000. Send Rs.500 fee to prize@upi")
        assert result.has_financial_context
        assert result.has_direct_request
        assert "prize" in result.risk_factors
        assert "high_risk_keyword" in result.risk_factors

    def test_scores_are_reported(self, classifier):
        result = classifier.classify("Share your OTP immediately to verify your account")
        assert set(result.scores) == {"rule", "keyword", "behavioral", "context"}
        assert result.scores["rule"] == 1.0


# ── False Positives ─────────────────────────────────────────────

class TestFalsePositives:
    @pytest.mark.parametrize("text", INNOCENT_MESSAGES)
    def test_innocent_not_flagged(self, classifier, text):
        result = classifier.classify(text)
        assert not result.is_scam
        assert result.confidence < 0.3

    def test_small_talk_has_no_signal(self, classifier):
        result = classifier.classify("Hey, how are you, want to grab coffee this weekend?")
        assert result.confidence == 0.0
        assert result.fraud_type is None
        assert result.risk_factors == frozenset()

    def test_keywords_match_inside_longer_words(self, classifier):
        result = classifier.classify("I updated my profile picture")
        assert result.scores["keyword"] == pytest.approx(0.06)
        assert not result.is_scam

    def test_plural_otp_still_counts(self, classifier):
        result = classifier.classify("Please share the OTPs")
        assert "keyword:otp" in result.indicators
        assert "credential" in result.risk_factors
        assert result.scores["rule"] > 0


# ── Degenerate Input ────────────────────────────────────────────

class TestDegenerateInput:
    @pytest.mark.parametrize("text", ["", "   ", None, "!!!???", "😀😀😀"])
    def test_no_signal(self, classifier, text):
        result = classifier.classify(text)
        assert not result.is_scam
        assert result.confidence == 0.0

    def test_oversized_input_is_capped(self, classifier):
        result = classifier.classify("a" * 50000)
        assert result.confidence == 0.0

    @pytest.mark.parametrize("text", [t for t, _ in SCAM_MESSAGES] + INNOCENT_MESSAGES)
    def test_confidence_in_range(self, classifier, text):
        result = classifier.classify(text, history=[t for t, _ in SCAM_MESSAGES])
        assert 0.0 <= result.confidence <= 1.0


# ── History, Hints and Config ───────────────────────────────────

class TestHistoryAndConfig:
    def test_history_raises_confidence(self, classifier):
        history = [
            "Your account will be blocked today. Verify immediately.",
            "Send Rs.500 fee to prize@upi",
        ]
        alone = classifier.classify("Please do it now")
        with_history = classifier.classify("Please do it now", history=history)
        assert with_history.confidence > alone.confidence
        assert "quick_escalation" in with_history.risk_factors

    def test_hint_blends_upward(self, classifier):
        result = classifier.classify("hello", confidence_hint=0.9)
        assert result.confidence == pytest.approx(0.45)
        assert not result.is_scam

    def test_hint_never_lowers(self, classifier):
        text = "Your account will be blocked today. Verify immediately."
        plain = classifier.classify(text)
        hinted = classifier.classify(text, confidence_hint=0.0)
        assert hinted.confidence == plain.confidence

    def test_threshold_is_configurable(self):
        strict = ScamClassifier(replace(ClassifierConfig(), threshold=0.99))
        result = strict.classify("Your account will be blocked today. Verify immediately.")
        assert not result.is_scam
        assert result.confidence >= 0.6


# ── Urgency Ladder ──────────────────────────────────────────────

class TestUrgency:
    @pytest.mark.parametrize("text,level", [
        ("Reply urgently", UrgencyLevel.CRITICAL),
        ("Complete it within 2 hours", UrgencyLevel.HIGH),
        ("Please do it today", UrgencyLevel.HIGH),
        ("Please reply soon", UrgencyLevel.MEDIUM),
        ("Reply at your convenience", UrgencyLevel.LOW),
        ("Hello there", UrgencyLevel.NORMAL),
    ])
    def test_levels(self, classifier, text, level):
        assert classifier.urgency_level(text) is level

    def test_direct_request(self, classifier):
        assert classifier.has_direct_request("Please share your OTP")
        assert not classifier.has_direct_request("I shared a photo")

    def test_financial_context(self, classifier):
        assert classifier.has_financial_context("Send money to my account")
        assert not classifier.has_financial_context("See you at the park")
