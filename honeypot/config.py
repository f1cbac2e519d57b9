"""
Engine configuration and deployment settings.

Two layers live here:

- ``EngineConfig`` -- a frozen, versioned bundle of every threshold and
  weight the pipeline uses. Each component receives its own section at
  construction time; tests swap values with ``dataclasses.replace``.
- ``Settings`` -- deployment knobs read from the environment (``.env``
  supported via python-dotenv): API key, callback endpoint, idle window.
"""

import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

CONFIG_VERSION = "2026.10"


@dataclass(frozen=True)
class ClassifierConfig:
    threshold: float = 0.60

    # Blend of the four evidence terms
    rule_weight: float = 0.50
    keyword_weight: float = 0.25
    behavioral_weight: float = 0.15
    context_weight: float = 0.10

    history_factor: float = 0.4          # weight of matches found in prior messages
    urgency_multiplier: float = 1.4
    urgency_floor: float = 0.25          # rule score must exceed this to be boosted
    risk_factor_multiplier: float = 1.2
    risk_factor_min: int = 3

    high_keyword_step: float = 0.12
    medium_keyword_step: float = 0.06
    escalation_bonus: float = 0.18
    escalation_window: int = 5
    escalation_min_hits: int = 2
    manipulation_step: float = 0.08
    pressure_step: float = 0.10
    context_step: float = 0.12

    hint_weight: float = 0.5
    max_scan_chars: int = 4000


@dataclass(frozen=True)
class ExtractorConfig:
    context_boost: float = 0.08
    context_boost_min: int = 2
    multi_context_boost: float = 0.05
    multi_context_min: int = 3
    name_confidence: float = 0.75
    org_confidence: float = 0.70
    snippet_window: int = 40
    max_scan_chars: int = 4000


@dataclass(frozen=True)
class StateConfig:
    financial_confidence: float = 0.35
    request_confidence: float = 0.60
    extraction_confidence: float = 0.75
    rapport_turns: int = 3
    max_delays: int = 2
    max_turns: int = 20
    min_turns_before_close: int = 4


@dataclass(frozen=True)
class StrategyConfig:
    scam_mood_confidence: float = 0.7
    engage_confidence: float = 0.4
    small_talk_ceiling: float = 0.3
    initial_trust: float = 0.5
    trust_decrement: float = 0.10
    trust_increment: float = 0.05
    low_trust: float = 0.3
    filler_probability: float = 0.30
    tag_probability: float = 0.20
    recent_reply_limit: int = 8


def _default_envelopes() -> Mapping[str, Tuple[int, int]]:
    # (min, max) characters per phase
    return MappingProxyType({
        "INITIAL":           (20, 160),
        "GREETING":          (25, 180),
        "BUILDING_RAPPORT":  (25, 200),
        "FINANCIAL_CONTEXT": (30, 220),
        "REQUEST":           (30, 240),
        "EXTRACTION":        (25, 260),
        "SUSPICIOUS":        (20, 180),
        "CLOSING":           (30, 220),
    })


@dataclass(frozen=True)
class SafetyConfig:
    length_envelopes: Mapping[str, Tuple[int, int]] = field(default_factory=_default_envelopes)
    default_envelope: Tuple[int, int] = (20, 200)
    max_consecutive_blocks: int = 3


@dataclass(frozen=True)
class EngineConfig:
    """Every tunable number the pipeline uses, in one place."""
    version: str = CONFIG_VERSION
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    extractor: ExtractorConfig = field(default_factory=ExtractorConfig)
    state: StateConfig = field(default_factory=StateConfig)
    strategy: StrategyConfig = field(default_factory=StrategyConfig)
    safety: SafetyConfig = field(default_factory=SafetyConfig)


DEFAULT_CONFIG = EngineConfig()


# ============================================================
# Deployment settings
# ============================================================

@dataclass(frozen=True)
class Settings:
    api_key: str
    callback_url: str
    callback_timeout: float
    session_idle_seconds: int
    log_level: str
    rng_seed: Optional[int]


def load_settings() -> Settings:
    """Read deployment settings from the environment."""
    seed = os.getenv("RNG_SEED")
    return Settings(
        api_key=os.getenv("API_KEY", "honeypot-dev-key"),
        callback_url=os.getenv("CALLBACK_URL", ""),
        callback_timeout=float(os.getenv("CALLBACK_TIMEOUT", "15")),
        session_idle_seconds=int(os.getenv("SESSION_IDLE_SECONDS", "1800")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        rng_seed=int(seed) if seed else None,
    )
