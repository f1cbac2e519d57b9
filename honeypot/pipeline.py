"""
Per-turn orchestration.

    incoming -> classify -> extract -> transition -> respond -> safety -> reply

Each turn works on a deep copy of the stored session and commits it only
after every step succeeded, so a fault never leaves a half-applied turn.
The terminal report is handed to the reporter after the commit and never
blocks or fails the reply.
"""

import copy
import logging
import random
from typing import Optional, Protocol, Sequence, Union

from honeypot.agent import StrategyEngine
from honeypot.callback import build_final_output
from honeypot.config import DEFAULT_CONFIG, EngineConfig
from honeypot.detector import ScamClassifier
from honeypot.errors import InputError, TurnFailure
from honeypot.extractor import IntelligenceExtractor
from honeypot.memory import AGENT_SENDERS, COUNTERPART, Session, SessionStore
from honeypot.models import Message as IncomingMessage
from honeypot.safety import SafetyFilter
from honeypot.state import StateController, TurnSignals

logger = logging.getLogger(__name__)

AGENT = "agent"


class ReportSink(Protocol):
    def dispatch(self, session_id: str, payload: dict): ...


def _parse_timestamp(value) -> Optional[float]:
    if value is None:
        return None
    try:
        stamp = float(value)
    except (TypeError, ValueError):
        return None
    # Millisecond epochs
    return stamp / 1000.0 if stamp > 1e11 else stamp


class HoneypotPipeline:
    """Runs one conversational turn at a time against a caller-owned store."""

    def __init__(
        self,
        store: SessionStore,
        config: EngineConfig = DEFAULT_CONFIG,
        classifier: Optional[ScamClassifier] = None,
        extractor: Optional[IntelligenceExtractor] = None,
        controller: Optional[StateController] = None,
        strategy: Optional[StrategyEngine] = None,
        safety: Optional[SafetyFilter] = None,
        reporter: Optional[ReportSink] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.store = store
        self.config = config
        self.rng = rng or random.Random()
        self.classifier = classifier or ScamClassifier(config.classifier)
        self.extractor = extractor or IntelligenceExtractor(config.extractor)
        self.controller = controller or StateController(config.state)
        self.strategy = strategy or StrategyEngine(config.strategy, self.rng)
        self.safety = safety or SafetyFilter(config.safety, self.rng)
        self.reporter = reporter

    def process(
        self,
        session_id: str,
        message: Union[IncomingMessage, str],
        history: Optional[Sequence[IncomingMessage]] = None,
        metadata: Optional[dict] = None,
        confidence_hint: Optional[float] = None,
        terminate: bool = False,
    ) -> str:
        """Handle one counterpart message and return the persona's reply.

        Raises InputError for an invalid invocation and TurnFailure when an
        internal fault aborted the turn (session left unchanged).
        """
        if isinstance(message, str):
            message = IncomingMessage(text=message)
        text = self._validate(session_id, message)

        with self.store.lock(session_id):
            stored = self.store.get(session_id)
            fresh = stored is None
            if fresh:
                stored = self.store.create(session_id)
                stored.persona = self.strategy.new_persona_state()

            if stored.ended:
                logger.info(f"[{session_id[:8]}] Message after session end, no transition")
                return self.strategy.farewell_text()

            session = copy.deepcopy(stored)
            try:
                reply = self._run_turn(session, text, message, fresh, history, metadata,
                                       confidence_hint, terminate)
                self.store.update(session)
            except Exception as exc:
                logger.error(f"[{session_id[:8]}] Turn aborted: {exc}", exc_info=True)
                if fresh:
                    self.store.delete(session_id)
                raise TurnFailure("turn aborted") from exc

            if session.ended and session.report_sent:
                self._dispatch_report(session)

        return reply

    def report_expired(self, session: Session) -> None:
        """Store expire hook: send the report for flagged sessions that never closed."""
        if session.scam_detected and not session.report_sent:
            session.report_sent = True
            self._dispatch_report(session)

    # ============================================================
    # Turn steps
    # ============================================================

    def _run_turn(self, session: Session, text: str, message: IncomingMessage, fresh: bool,
                  history, metadata, confidence_hint, terminate) -> str:
        sid = session.session_id

        if fresh and history:
            self._seed_history(session, history)
        if metadata:
            session.metadata.update({k: str(v) for k, v in metadata.items() if v is not None})

        prior = session.counterpart_texts()
        incoming = session.record(COUNTERPART, text, _parse_timestamp(message.timestamp))

        # 1. Classify
        classification = self.classifier.classify(text, prior, confidence_hint)
        session.max_confidence = max(session.max_confidence, classification.confidence)
        if classification.is_scam:
            if not session.scam_detected:
                logger.info(f"[{sid[:8]}] SCAM CONFIRMED conf={classification.confidence:.2f}")
            session.scam_detected = True
            if session.fraud_type is None and classification.fraud_type is not None:
                session.fraud_type = classification.fraud_type
        session.tactics.update(classification.risk_factors)

        # 2. Extract
        extraction = self.extractor.extract(text, prior, turn=incoming.turn)
        session.intelligence.merge(extraction.items)
        session.intelligence.add_keywords(extraction.keywords)

        # 3. Transition
        signals = TurnSignals(
            max_confidence=session.max_confidence,
            turn_count=session.turn_count,
            has_financial_context=classification.has_financial_context,
            has_direct_request=classification.has_direct_request,
            extraction_progress=session.intelligence.progress(),
            consecutive_delays=session.consecutive_stalls,
            external_termination=terminate,
        )
        result = self.controller.transition(session.phase, signals)
        session.previous_phase, session.phase = session.phase, result.next_phase

        # 4. Respond
        if result.should_end:
            reply = self.strategy.closing_reply(session)
            session.ended = True
        else:
            reply = self.strategy.respond(session, text, classification, extraction, session.phase)

        # 5. Safety
        validation = self.safety.validate(reply.text, session.phase, session.consecutive_blocks)
        if validation.is_valid:
            session.consecutive_blocks = 0
        else:
            session.consecutive_blocks += 1
        if validation.terminal:
            session.ended = True
        final = validation.cleaned_response

        session.consecutive_stalls = session.consecutive_stalls + 1 if self.strategy.is_stalling(final) else 0
        session.record(AGENT, final)

        if session.ended and not session.report_sent:
            session.report_sent = True

        logger.info(
            f"[{sid[:8]}] TURN {session.turn_count} msg_len={len(text)} "
            f"conf={classification.confidence:.2f} max={session.max_confidence:.2f} "
            f"type={session.fraud_type.value if session.fraud_type else '-'} "
            f"phase={session.previous_phase.value}->{session.phase.value} "
            f"items={len(session.intelligence)} ended={session.ended}"
        )
        return final

    def _seed_history(self, session: Session, history: Sequence[IncomingMessage]) -> None:
        for entry in history:
            entry_text = getattr(entry, "text", None)
            if not isinstance(entry_text, str) or not entry_text.strip():
                continue
            sender = AGENT if (entry.sender or COUNTERPART) in AGENT_SENDERS else COUNTERPART
            recorded = session.record(sender, entry_text, _parse_timestamp(entry.timestamp))
            if sender == COUNTERPART:
                extraction = self.extractor.extract(entry_text, turn=recorded.turn)
                session.intelligence.merge(extraction.items)
                session.intelligence.add_keywords(extraction.keywords)

    @staticmethod
    def _validate(session_id, message) -> str:
        if not isinstance(session_id, str) or not session_id.strip():
            raise InputError("sessionId is required")
        text = getattr(message, "text", None)
        if not isinstance(text, str) or not text.strip():
            raise InputError("message text is required")
        return text

    def _dispatch_report(self, session: Session) -> None:
        if self.reporter is None:
            return
        try:
            self.reporter.dispatch(session.session_id, build_final_output(session))
        except Exception as exc:
            logger.error(f"[{session.session_id[:8]}] Report dispatch failed: {exc}", exc_info=True)
