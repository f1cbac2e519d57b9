"""Builds and delivers the terminal session report.

The report is posted once per session, from a background thread, with
exponential backoff (1s, 2s, 4s). Delivery problems are logged and never
reach the reply path."""

import logging
import threading
import time
from typing import Callable, Optional

import requests

from honeypot.errors import ReportDeliveryFailure
from honeypot.memory import Session
from honeypot.models import ExtractedIntelligence, FinalOutput

logger = logging.getLogger(__name__)

MAX_RETRIES: int = 3
RETRY_DELAYS: tuple = (1, 2, 4)


def build_final_output(session: Session) -> dict:
    """Terminal report for a session, validated through ``FinalOutput``."""
    intel = session.intelligence.as_report()
    fraud_type = session.fraud_type.value if session.fraud_type else "unknown"
    payload = FinalOutput(
        sessionId=session.session_id,
        scamDetected=session.scam_detected,
        scamType=fraud_type,
        confidenceLevel=round(min(max(session.max_confidence, 0.0), 1.0), 4),
        totalMessagesExchanged=len(session.messages),
        extractedIntelligence=ExtractedIntelligence(**intel),
        agentNotes=_build_agent_notes(session, intel),
    )
    return payload.model_dump()


def _build_agent_notes(session: Session, intel: dict) -> str:
    """One-line summary of the engagement."""
    parts = []

    if session.scam_detected:
        label = session.fraud_type.value if session.fraud_type else "unclassified"
        parts.append(f"Scam detected: {label.replace('_', ' ').title()}")
    else:
        parts.append("No definitive scam detected")

    intel_items = []
    for key, label in [
        ("phoneNumbers", "phones"),
        ("bankAccounts", "accounts"),
        ("upiIds", "UPIs"),
        ("phishingLinks", "URLs"),
    ]:
        if intel.get(key):
            intel_items.append(f"{len(intel[key])} {label}")
    if intel_items:
        parts.append(f"Extracted: {', '.join(intel_items)}")
    else:
        parts.append("No actionable intelligence extracted")

    others = [
        item for item in session.intelligence.items()
        if item.entity_type.value in ("name", "organization", "routing_code", "tax_id", "crypto_wallet")
    ]
    if others:
        parts.append("Identity fragments: " + ", ".join(sorted(f"{i.entity_type.value}={i.value}" for i in others)))

    if session.tactics:
        tactic_str = ", ".join(sorted(t.replace("_", " ") for t in session.tactics))
        parts.append(f"Tactics observed: {tactic_str}")

    parts.append(f"Engagement: {len(session.messages)} messages, final phase {session.phase.value}")
    return " | ".join(parts)


class CallbackReporter:
    """Posts terminal reports to an HTTP endpoint from a daemon thread."""

    def __init__(
        self,
        url: str,
        timeout: float = 15,
        delays: tuple = RETRY_DELAYS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.delays = delays
        self._sleep = sleep

    def dispatch(self, session_id: str, payload: dict) -> Optional[threading.Thread]:
        """Send in the background. Returns the worker thread, or None when no URL is configured."""
        if not self.url:
            logger.info(f"[{session_id[:8]}] No CALLBACK_URL configured, report not sent")
            return None

        def _worker():
            try:
                self.send_with_retry(session_id, payload)
            except ReportDeliveryFailure as exc:
                logger.error(f"[{session_id[:8]}] {exc}")

        thread = threading.Thread(target=_worker, daemon=True)
        thread.start()
        return thread

    def send_with_retry(self, session_id: str, payload: dict) -> bool:
        """POST with exponential backoff. Raises ReportDeliveryFailure when every attempt fails."""
        short_id = session_id[:8]
        attempts = len(self.delays)
        for attempt in range(attempts):
            if self._do_send(session_id, payload):
                return True
            logger.warning(f"[{short_id}] Report delivery failed attempt={attempt + 1}/{attempts}")
            if attempt < attempts - 1:
                delay = self.delays[attempt]
                logger.info(f"[{short_id}] Report retry {attempt + 1} in {delay}s")
                self._sleep(delay)
        raise ReportDeliveryFailure(f"Report delivery failed after {attempts} attempts")

    def _do_send(self, session_id: str, payload: dict) -> bool:
        """Single POST. True on 2xx."""
        short_id = session_id[:8]
        try:
            logger.info(f"[{short_id}] Sending report to {self.url}")
            response = requests.post(
                self.url,
                json=payload,
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
            )
        except requests.exceptions.Timeout:
            logger.error(f"[{short_id}] Report delivery timed out")
            return False
        except requests.exceptions.RequestException as exc:
            logger.error(f"[{short_id}] Report delivery network error: {exc}")
            return False

        if 200 <= response.status_code < 300:
            logger.info(f"[{short_id}] Report accepted ({response.status_code})")
            return True
        logger.warning(f"[{short_id}] Report rejected: {response.status_code} {response.text[:200]}")
        return False
