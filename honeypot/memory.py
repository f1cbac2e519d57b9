"""Session state and the store interface the pipeline runs against.

The store is owned by the caller and handed to the pipeline. It provides
get/create/update/delete plus a per-session lock so turns for one
conversation are serialised while different conversations run in parallel.

``InMemorySessionStore`` also reclaims sessions idle past the configured
window and hands each one to an ``on_expire`` hook (used to fire the
terminal report if it was never sent).
"""

import abc
import logging
import threading
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from honeypot.agent import PersonaState
from honeypot.catalog import EntityType, FraudType
from honeypot.extractor import ExtractionItem
from honeypot.state import Phase

logger = logging.getLogger(__name__)

COUNTERPART = "scammer"
AGENT_SENDERS = frozenset({"agent", "user", "honeypot"})

# Categories that count toward extraction progress
CORE_CATEGORIES: Tuple[Tuple[EntityType, ...], ...] = (
    (EntityType.PAYMENT_HANDLE, EntityType.PAYMENT_LINK),
    (EntityType.BANK_ACCOUNT,),
    (EntityType.PHONE,),
    (EntityType.URL,),
)

REPORT_GROUPS: Dict[str, Tuple[EntityType, ...]] = {
    "bankAccounts": (EntityType.BANK_ACCOUNT,),
    "upiIds": (EntityType.PAYMENT_HANDLE, EntityType.PAYMENT_LINK),
    "phishingLinks": (EntityType.URL,),
    "phoneNumbers": (EntityType.PHONE,),
}


@dataclass(frozen=True)
class Message:
    sender: str
    text: str
    timestamp: float
    turn: int

    @property
    def from_counterpart(self) -> bool:
        return self.sender not in AGENT_SENDERS


class IntelligenceLedger:
    """De-duplicated intelligence keyed by (type, normalised value)."""

    def __init__(self) -> None:
        self._items: Dict[Tuple[EntityType, str], ExtractionItem] = {}
        self._keywords: Dict[str, None] = {}

    def merge(self, items: Iterable[ExtractionItem]) -> int:
        """Add items, keeping the highest confidence per key. Returns the number of new keys."""
        added = 0
        for item in items:
            current = self._items.get(item.key)
            if current is None:
                added += 1
            if current is None or item.confidence > current.confidence:
                self._items[item.key] = item
        return added

    def add_keywords(self, keywords: Iterable[str]) -> None:
        for word in keywords:
            self._keywords.setdefault(word.lower(), None)

    def items(self, entity_type: Optional[EntityType] = None) -> List[ExtractionItem]:
        return [
            item for item in self._items.values()
            if entity_type is None or item.entity_type is entity_type
        ]

    def values(self, entity_type: EntityType) -> List[str]:
        return [item.value for item in self.items(entity_type)]

    def has(self, entity_type: EntityType) -> bool:
        return any(item.entity_type is entity_type for item in self._items.values())

    @property
    def keywords(self) -> List[str]:
        return list(self._keywords)

    def progress(self) -> float:
        filled = sum(
            1 for group in CORE_CATEGORIES
            if any(self.has(entity_type) for entity_type in group)
        )
        return min(1.0, filled / len(CORE_CATEGORIES))

    def as_report(self) -> Dict[str, List[str]]:
        report = {
            key: sorted(v for t in types for v in self.values(t))
            for key, types in REPORT_GROUPS.items()
        }
        report["suspiciousKeywords"] = self.keywords
        return report

    def __len__(self) -> int:
        return len(self._items)


@dataclass
class Session:
    session_id: str
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    messages: List[Message] = field(default_factory=list)
    phase: Phase = Phase.INITIAL
    previous_phase: Optional[Phase] = None
    max_confidence: float = 0.0
    fraud_type: Optional[FraudType] = None
    scam_detected: bool = False
    intelligence: IntelligenceLedger = field(default_factory=IntelligenceLedger)
    tactics: Set[str] = field(default_factory=set)
    consecutive_stalls: int = 0
    consecutive_blocks: int = 0
    persona: PersonaState = field(default_factory=PersonaState)
    recent_replies: Deque[str] = field(default_factory=lambda: deque(maxlen=8))
    metadata: Dict[str, str] = field(default_factory=dict)
    ended: bool = False
    report_sent: bool = False

    @property
    def turn_count(self) -> int:
        """Counterpart messages seen so far, the current one included."""
        return sum(1 for m in self.messages if m.from_counterpart)

    def counterpart_texts(self) -> List[str]:
        return [m.text for m in self.messages if m.from_counterpart]

    def record(self, sender: str, text: str, timestamp: Optional[float] = None) -> Message:
        now = time.time()
        message = Message(
            sender=sender,
            text=text,
            timestamp=timestamp if timestamp is not None else now,
            turn=len(self.messages) + 1,
        )
        self.messages.append(message)
        self.last_activity = now
        return message


# ============================================================
# Store interface
# ============================================================

class SessionStore(abc.ABC):
    """What the pipeline needs from session storage."""

    @abc.abstractmethod
    def get(self, session_id: str) -> Optional[Session]:
        ...

    @abc.abstractmethod
    def create(self, session_id: str) -> Session:
        ...

    @abc.abstractmethod
    def update(self, session: Session) -> None:
        ...

    @abc.abstractmethod
    def delete(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)
            self._drop_idle_lock(session_id)

    @contextmanager
    def lock(self, session_id: str) -> Iterator[None]:
        with self._lock:
            entry = self._locks.setdefault(session_id, _SessionLock())
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._lock:
                entry.users -= 1
                self._drop_idle_lock(session_id)

    def _drop_idle_lock(self, session_id: str) -> None:
        # Caller holds self._lock. An entry stays while anyone holds or waits on it.
        entry = self._locks.get(session_id)
        if entry is not None and entry.users == 0 and session_id not in self._sessions:
            del self._locks[session_id]

    def _in_use(self, session_id: str) -> bool:
        entry = self._locks.get(session_id)
        return entry is not None and entry.users > 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    # ==================== Idle reclamation ====================

    def _maybe_cleanup(self) -> None:
        now = self._clock()
        if now - self._last_cleanup < self.CLEANUP_INTERVAL_SECONDS:
            return
        self._last_cleanup = now
        self.reap_idle(now)

    def reap_idle(self, now: Optional[float] = None) -> List[Session]:
        """Remove sessions idle past the window and pass each to ``on_expire``."""
        now = self._clock() if now is None else now
        with self._lock:
            expired = [
                s for s in self._sessions.values()
                if now - s.last_activity > self.idle_seconds and not self._in_use(s.session_id)
            ]
            for session in expired:
                self._sessions.pop(session.session_id, None)
                self._drop_idle_lock(session.session_id)

        for session in expired:
            logger.info(f"[{session.session_id[:8]}] Session reclaimed after idle timeout")
            if self.on_expire is None:
                continue
            try:
                self.on_expire(session)
            except Exception as exc:
                logger.error(f"[{session.session_id[:8]}] Expire hook failed: {exc}", exc_info=True)
        return expired
