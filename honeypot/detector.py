"""
Weighted multi-term scam classifier.

Scores a message (plus the counterpart's earlier messages) with four
evidence terms and blends them:

    confidence = 0.50·rule + 0.25·keyword + 0.15·behavioral + 0.10·context

Messages that trip three or more distinct risk factors get a 1.2x
multiplier. Everything is clamped to [0, 1]; nothing here raises.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from honeypot.catalog import (
    CATEGORY_FRAUD_TYPES,
    DIRECT_REQUEST_PATTERNS,
    FINANCIAL_CONTEXT_PATTERNS,
    FINANCIAL_TOPIC_KEYWORDS,
    HIGH_RISK_KEYWORDS,
    MANIPULATION_PHRASES,
    MEDIUM_RISK_KEYWORDS,
    PRESSURE_PHRASES,
    SCAM_CONTEXT_PHRASES,
    SIGNAL_PATTERNS,
    URGENCY_LEVELS,
    FraudType,
    SignalCategory,
    SignalPattern,
    UrgencyLevel,
)
from honeypot.config import ClassifierConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassificationResult:
    """Outcome of scoring one message."""
    is_scam: bool = False
    confidence: float = 0.0
    indicators: Tuple[str, ...] = ()
    risk_factors: FrozenSet[str] = frozenset()
    fraud_type: Optional[FraudType] = None
    has_financial_context: bool = False
    has_direct_request: bool = False
    urgency: UrgencyLevel = UrgencyLevel.NORMAL
    scores: Dict[str, float] = field(default_factory=dict)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class ScamClassifier:
    """
    Stateless scorer. Session memory (max confidence, sticky fraud type)
    lives with the caller; this class only looks at the texts it is given.
    """

    def __init__(self, config: Optional[ClassifierConfig] = None) -> None:
        self.config = config or ClassifierConfig()

    def classify(
        self,
        text: str,
        history: Sequence[str] = (),
        confidence_hint: Optional[float] = None,
    ) -> ClassificationResult:
        """Score ``text`` given the counterpart's earlier messages."""
        cfg = self.config
        if not isinstance(text, str) or not text.strip():
            return ClassificationResult()

        text = text[:cfg.max_scan_chars]
        history = [h[:cfg.max_scan_chars] for h in history if isinstance(h, str) and h.strip()]

        indicators: List[str] = []
        risk_factors = set()
        category_weights: Dict[SignalCategory, float] = defaultdict(float)

        rule = self._rule_score(text, history, indicators, risk_factors, category_weights)
        keyword = self._keyword_score(text, indicators, risk_factors)
        behavioral = self._behavioral_score(text, history, indicators, risk_factors)
        context = self._context_score(text, indicators, risk_factors)

        confidence = (
            cfg.rule_weight * rule
            + cfg.keyword_weight * keyword
            + cfg.behavioral_weight * behavioral
            + cfg.context_weight * context
        )
        if len(risk_factors) >= cfg.risk_factor_min:
            confidence *= cfg.risk_factor_multiplier
        confidence = _clamp(confidence)

        if confidence_hint is not None:
            hint = _clamp(float(confidence_hint))
            blended = (1 - cfg.hint_weight) * confidence + cfg.hint_weight * hint
            confidence = max(confidence, blended)

        fraud_type = None
        if category_weights:
            top = max(category_weights, key=lambda c: category_weights[c])
            fraud_type = CATEGORY_FRAUD_TYPES[top]

        return ClassificationResult(
            is_scam=confidence >= cfg.threshold,
            confidence=round(confidence, 4),
            indicators=tuple(indicators),
            risk_factors=frozenset(risk_factors),
            fraud_type=fraud_type,
            has_financial_context=self.has_financial_context(text),
            has_direct_request=self.has_direct_request(text),
            urgency=self.urgency_level(text),
            scores={
                "rule": round(rule, 4),
                "keyword": round(keyword, 4),
                "behavioral": round(behavioral, 4),
                "context": round(context, 4),
            },
        )

    # ============================================================
    # Evidence terms
    # ============================================================

    def _rule_score(self, text, history, indicators, risk_factors, category_weights) -> float:
        cfg = self.config
        score = 0.0
        boosted = False

        for pattern in SIGNAL_PATTERNS:
            if pattern.regex.search(text):
                score += pattern.weight
                boosted = boosted or pattern.urgency_boost
                risk_factors.add(pattern.category.value)
                category_weights[pattern.category] += pattern.weight
                indicators.append(f"{pattern.category.value}:{pattern.regex.pattern[:40]}")

        # Earlier messages still count, at a discount
        for prior in history:
            score += cfg.history_factor * self._score_layer(prior, SIGNAL_PATTERNS)

        if boosted and score > cfg.urgency_floor:
            score *= cfg.urgency_multiplier
        return _clamp(score)

    def _keyword_score(self, text, indicators, risk_factors) -> float:
        cfg = self.config
        score = 0.0
        lowered = text.lower()
        for word in HIGH_RISK_KEYWORDS:
            if word in lowered:
                score += cfg.high_keyword_step
                risk_factors.add("high_risk_keyword")
                indicators.append(f"keyword:{word}")
        for word in MEDIUM_RISK_KEYWORDS:
            if word in lowered:
                score += cfg.medium_keyword_step
        return _clamp(score)

    def _behavioral_score(self, text, history, indicators, risk_factors) -> float:
        cfg = self.config
        score = 0.0

        if 0 < len(history) <= cfg.escalation_window:
            recent = history[-cfg.escalation_window:]
            hits = sum(
                1 for prior in recent
                if any(word in prior.lower() for word in FINANCIAL_TOPIC_KEYWORDS)
            )
            if hits >= cfg.escalation_min_hits:
                score += cfg.escalation_bonus
                risk_factors.add("quick_escalation")
                indicators.append("behavior:quick_escalation")

        for phrase in MANIPULATION_PHRASES:
            if phrase.regex.search(text):
                score += cfg.manipulation_step
                risk_factors.add("manipulation")
                indicators.append(f"manipulation:{phrase.name}")

        for phrase in PRESSURE_PHRASES:
            if phrase.regex.search(text):
                score += cfg.pressure_step
                risk_factors.add("pressure_tactics")
                indicators.append(f"pressure:{phrase.name}")

        return _clamp(score)

    def _context_score(self, text, indicators, risk_factors) -> float:
        score = 0.0
        for phrase in SCAM_CONTEXT_PHRASES:
            if phrase.regex.search(text):
                score += self.config.context_step
                risk_factors.add("scam_context")
                indicators.append(f"context:{phrase.name}")
        return _clamp(score)

    # ============================================================
    # Message flags
    # ============================================================

    @staticmethod
    def _score_layer(text: str, patterns: Sequence[SignalPattern]) -> float:
        """Sum weights of all matching patterns."""
        return sum(p.weight for p in patterns if p.regex.search(text))

    def has_financial_context(self, text: str) -> bool:
        text = text[:self.config.max_scan_chars]
        return any(rx.search(text) for rx in FINANCIAL_CONTEXT_PATTERNS)

    def has_direct_request(self, text: str) -> bool:
        text = text[:self.config.max_scan_chars]
        return any(rx.search(text) for rx in DIRECT_REQUEST_PATTERNS)

    def urgency_level(self, text: str) -> UrgencyLevel:
        text = text[:self.config.max_scan_chars]
        for level, regex in URGENCY_LEVELS:
            if regex.search(text):
                return level
        return UrgencyLevel.NORMAL
