"""
End-to-end turn tests: session bookkeeping, blocked-reply handling,
closing and reporting, all-or-nothing commits.
"""

import threading
import time
from dataclasses import replace

import pytest

from honeypot.agent import Branch, Reply, StrategyEngine
from honeypot.catalog import EntityType, FraudType
from honeypot.config import StateConfig
from honeypot.errors import InputError, TurnFailure
from honeypot.extractor import IntelligenceExtractor
from honeypot.models import Message
from honeypot.pipeline import HoneypotPipeline
from honeypot.safety import SafetyFilter
from honeypot.state import Phase

SID = "a1b2c3d4-session"


class LeakyStrategy(StrategyEngine):
    """Always proposes a reply the safety filter must block."""

    def respond(self, session, text, classification, extraction, phase):
        return Reply("As an AI model, I cannot continue.", Branch.AMBIGUOUS)


class ExplodingExtractor(IntelligenceExtractor):
    def __init__(self, fail_from=1):
        super().__init__()
        self.calls = 0
        self.fail_from = fail_from

    def extract(self, text, history=(), turn=0):
        self.calls += 1
        if self.calls >= self.fail_from:
            raise RuntimeError("extractor exploded")
        return super().extract(text, history, turn)


# ── Basic Turns ─────────────────────────────────────────────────

class TestTurns:
    def test_reply_and_bookkeeping(self, pipeline, store):
        reply = pipeline.process(SID, "Your account will be blocked today. Verify immediately.")
        session = store.get(SID)
        assert isinstance(reply, str) and reply
        assert session.scam_detected
        assert session.fraud_type is FraudType.THREAT
        assert session.phase is Phase.GREETING
        assert [m.sender for m in session.messages] == ["scammer", "agent"]
        assert session.messages[-1].text == reply

    def test_max_confidence_never_drops(self, pipeline, store):
        seen = []
        for text in ["Your account will be blocked today. Verify immediately.", "ok", "hello there", "nice"]:
            pipeline.process(SID, text)
            seen.append(store.get(SID).max_confidence)
        assert seen[0] >= 0.6
        assert seen == sorted(seen)

    def test_fraud_type_is_sticky(self, pipeline, store):
        pipeline.process(SID, "Your account will be blocked today. Verify immediately.")
        pipeline.process(SID, "Congratulations! You won Rs.50000. Send Rs.500 fee to prize@upi")
        assert store.get(SID).fraud_type is FraudType.THREAT

    def test_intelligence_deduplicated_across_turns(self, pipeline, store):
        pipeline.process(SID, "Pay the fee to prize@upi")
        pipeline.process(SID, "I said pay to PRIZE@UPI")
        assert store.get(SID).intelligence.values(EntityType.PAYMENT_HANDLE) == ["prize@upi"]

    def test_small_talk_stays_friendly(self, pipeline, store):
        pipeline.process(SID, "Hey, how are you, want to grab coffee this weekend?")
        session = store.get(SID)
        assert not session.scam_detected
        assert session.max_confidence < 0.3

    def test_timestamp_and_metadata(self, pipeline, store):
        message = Message(sender="scammer", text="hello", timestamp=1771585363308)
        pipeline.process(SID, message, metadata={"channel": "WhatsApp", "locale": "IN"})
        session = store.get(SID)
        assert session.messages[0].timestamp == pytest.approx(1771585363.308)
        assert session.metadata == {"channel": "WhatsApp", "locale": "IN"}


# ── Input Validation ────────────────────────────────────────────

class TestInvalidInput:
    @pytest.mark.parametrize("session_id,text", [
        ("", "hello"),
        ("   ", "hello"),
        (None, "hello"),
        (SID, ""),
        (SID, "    "),
    ])
    def test_rejected(self, pipeline, store, session_id, text):
        with pytest.raises(InputError):
            pipeline.process(session_id, text)
        assert len(store) == 0


# ── History Seeding ─────────────────────────────────────────────

class TestHistory:
    def test_history_seeds_fresh_session(self, pipeline, store):
        history = [
            Message(sender="scammer", text="Call me on 9876543210"),
            Message(sender="user", text="Who is this?"),
        ]
        pipeline.process(SID, "Okay tell me more", history=history)
        session = store.get(SID)
        assert session.intelligence.values(EntityType.PHONE) == ["9876543210"]
        assert len(session.messages) == 4
        assert session.turn_count == 2

    def test_history_ignored_for_existing_session(self, pipeline, store):
        pipeline.process(SID, "hello")
        pipeline.process(SID, "are you there", history=[Message(sender="scammer", text="Call 9876543210")])
        assert not store.get(SID).intelligence.has(EntityType.PHONE)
        assert len(store.get(SID).messages) == 4


# ── Blocked Replies ─────────────────────────────────────────────

class TestBlockedReplies:
    def test_fourth_block_is_terminal(self, store, config, reporter, rng):
        pipeline = HoneypotPipeline(
            store, config=config, reporter=reporter, rng=rng,
            strategy=LeakyStrategy(config.strategy, rng),
        )
        replies = [pipeline.process(SID, text) for text in ["hello", "what?", "are you there", "reply please"]]

        assert replies[:3] == SafetyFilter.FALLBACKS[:3]
        assert replies[3] == SafetyFilter.TERMINAL_APOLOGY
        session = store.get(SID)
        assert session.ended
        assert session.consecutive_blocks == 4
        assert len(reporter.reports) == 1


# ── Closing and Reporting ───────────────────────────────────────

class TestClosing:
    def test_turn_ceiling_closes_and_reports_once(self, store, config, reporter, rng):
        short = replace(config, state=replace(StateConfig(), max_turns=2))
        pipeline = HoneypotPipeline(store, config=short, reporter=reporter, rng=rng)

        for text in ["hello", "Your account will be blocked today. Verify immediately.", "why?"]:
            pipeline.process(SID, text)

        session = store.get(SID)
        assert session.phase is Phase.CLOSING
        assert session.ended and session.report_sent
        assert len(reporter.reports) == 1
        sid, payload = reporter.reports[0]
        assert sid == SID
        assert payload["sessionId"] == SID
        assert payload["scamDetected"] is True
        assert payload["totalMessagesExchanged"] == 6

        after = pipeline.process(SID, "hello? are you there?")
        assert after in StrategyEngine.CLOSING
        assert len(store.get(SID).messages) == 6
        assert len(reporter.reports) == 1

    def test_external_termination(self, pipeline, store, reporter):
        pipeline.process(SID, "hello")
        pipeline.process(SID, "fine", terminate=True)
        assert store.get(SID).phase is Phase.CLOSING
        assert len(reporter.reports) == 1

    def test_idle_flagged_session_reported(self, pipeline, store, reporter):
        store.on_expire = pipeline.report_expired
        pipeline.process(SID, "Your account will be blocked today. Verify immediately.")
        store.reap_idle(now=time.time() + 10_000)
        assert len(reporter.reports) == 1
        assert reporter.reports[0][1]["scamDetected"] is True

    def test_idle_benign_session_not_reported(self, pipeline, store, reporter):
        store.on_expire = pipeline.report_expired
        pipeline.process(SID, "hello")
        store.reap_idle(now=time.time() + 10_000)
        assert reporter.reports == []

    def test_reporter_failure_does_not_break_reply(self, store, config, rng):
        class BrokenReporter:
            def dispatch(self, session_id, payload):
                raise RuntimeError("endpoint down")

        pipeline = HoneypotPipeline(store, config=config, reporter=BrokenReporter(), rng=rng)
        assert pipeline.process(SID, "bye", terminate=True)


# ── All-or-Nothing Turns ────────────────────────────────────────

class TestAtomicity:
    def test_failed_turn_leaves_session_untouched(self, store, config, reporter, rng):
        pipeline = HoneypotPipeline(store, config=config, reporter=reporter, rng=rng,
                                    extractor=ExplodingExtractor(fail_from=2))
        pipeline.process(SID, "Your account will be blocked today. Verify immediately.")
        before = store.get(SID)
        snapshot = (len(before.messages), before.phase, before.max_confidence, before.consecutive_blocks)

        with pytest.raises(TurnFailure):
            pipeline.process(SID, "Send Rs.500 fee to prize@upi")

        after = store.get(SID)
        assert (len(after.messages), after.phase, after.max_confidence, after.consecutive_blocks) == snapshot
        assert not after.intelligence.has(EntityType.PAYMENT_HANDLE)

    def test_failed_first_turn_creates_nothing(self, store, config, reporter, rng):
        pipeline = HoneypotPipeline(store, config=config, reporter=reporter, rng=rng,
                                    extractor=ExplodingExtractor(fail_from=1))
        with pytest.raises(TurnFailure):
            pipeline.process(SID, "hello")
        assert store.get(SID) is None


# ── Concurrency ─────────────────────────────────────────────────

class TestConcurrency:
    def test_parallel_turns_on_one_session_serialise(self, pipeline, store):
        threads = [
            threading.Thread(target=pipeline.process, args=(SID, f"message number {i}"))
            for i in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        session = store.get(SID)
        assert session.turn_count == 8
        assert len(session.messages) == 16
