"""
Conversation phase controller.

A pure function of (current phase, turn signals) -> (next phase, should_end).
The engagement track runs INITIAL -> GREETING -> BUILDING_RAPPORT ->
FINANCIAL_CONTEXT -> REQUEST -> EXTRACTION, advancing at most one step per
turn. SUSPICIOUS is a recovery detour entered when our own replies keep
stalling; CLOSING is terminal.
"""

import logging
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Mapping, Optional, Union

from honeypot.config import StateConfig

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    INITIAL = "INITIAL"
    GREETING = "GREETING"
    BUILDING_RAPPORT = "BUILDING_RAPPORT"
    FINANCIAL_CONTEXT = "FINANCIAL_CONTEXT"
    REQUEST = "REQUEST"
    EXTRACTION = "EXTRACTION"
    SUSPICIOUS = "SUSPICIOUS"
    CLOSING = "CLOSING"


TRACK = (
    Phase.INITIAL,
    Phase.GREETING,
    Phase.BUILDING_RAPPORT,
    Phase.FINANCIAL_CONTEXT,
    Phase.REQUEST,
    Phase.EXTRACTION,
)


@dataclass(frozen=True)
class TurnSignals:
    max_confidence: float = 0.0
    turn_count: int = 0
    has_financial_context: bool = False
    has_direct_request: bool = False
    extraction_progress: float = 0.0
    consecutive_delays: int = 0
    external_termination: bool = False

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "TurnSignals":
        """Build from a partial mapping; absent or None fields keep their defaults."""
        data = data or {}
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known and v is not None})


@dataclass(frozen=True)
class TransitionResult:
    next_phase: Phase
    should_end: bool = False


def coerce_phase(value: Union[Phase, str, None]) -> Phase:
    """Map anything that is not a known phase back to INITIAL."""
    if isinstance(value, Phase):
        return value
    try:
        return Phase(str(value).upper())
    except ValueError:
        logger.warning(f"Unknown phase {value!r}, resetting to INITIAL")
        return Phase.INITIAL


class StateController:
    """Phase transition policy. Holds config only; no per-session state."""

    def __init__(self, config: Optional[StateConfig] = None) -> None:
        self.config = config or StateConfig()

    def transition(
        self,
        current: Union[Phase, str, None],
        signals: Union[TurnSignals, Mapping[str, Any], None] = None,
    ) -> TransitionResult:
        cfg = self.config
        phase = coerce_phase(current)
        if not isinstance(signals, TurnSignals):
            signals = TurnSignals.from_mapping(signals)

        if phase is Phase.CLOSING:
            return TransitionResult(Phase.CLOSING, should_end=True)

        if self._should_close(signals):
            return TransitionResult(Phase.CLOSING, should_end=True)

        if signals.consecutive_delays > cfg.max_delays:
            return TransitionResult(Phase.SUSPICIOUS)

        if phase is Phase.SUSPICIOUS:
            if signals.consecutive_delays == 0:
                return TransitionResult(self.track_phase(signals))
            return TransitionResult(Phase.SUSPICIOUS)

        if phase is Phase.INITIAL:
            return TransitionResult(Phase.GREETING)

        target = self.track_phase(signals)
        here = TRACK.index(phase)
        if TRACK.index(target) > here:
            return TransitionResult(TRACK[here + 1])
        return TransitionResult(phase)

    def track_phase(self, signals: TurnSignals) -> Phase:
        """The furthest track phase the signals justify."""
        cfg = self.config
        confidence = signals.max_confidence
        engaged = signals.has_financial_context or signals.has_direct_request

        if engaged and signals.has_direct_request and confidence >= cfg.extraction_confidence:
            return Phase.EXTRACTION
        if engaged and confidence >= cfg.request_confidence:
            return Phase.REQUEST
        if engaged and confidence >= cfg.financial_confidence:
            return Phase.FINANCIAL_CONTEXT
        if signals.turn_count >= cfg.rapport_turns:
            return Phase.BUILDING_RAPPORT
        return Phase.GREETING

    def _should_close(self, signals: TurnSignals) -> bool:
        cfg = self.config
        if signals.external_termination:
            return True
        if signals.turn_count > cfg.max_turns:
            return True
        return (
            signals.extraction_progress >= 1.0
            and signals.turn_count >= cfg.min_turns_before_close
        )
