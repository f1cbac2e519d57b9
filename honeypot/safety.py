"""
Outgoing reply guard.

Three severities of forbidden content:
- critical: automation reveal, accusation, law-enforcement talk -> whole reply replaced
- high: scam vocabulary -> word swapped for a neutral synonym
- medium: recorded only

Then a per-phase length envelope: short replies are padded with engaging
clauses, long ones cut at the last sentence boundary with an ellipsis.
"""

import logging
import random
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from honeypot.catalog import FORBIDDEN_PATTERNS, Severity
from honeypot.config import SafetyConfig
from honeypot.state import Phase, coerce_phase

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Violation:
    pattern_id: str
    severity: Severity
    matched: str
    action: str


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    cleaned_response: str
    violations: Tuple[Violation, ...] = ()
    length_valid: bool = True
    terminal: bool = False


class SafetyFilter:
    """Validates and repairs candidate replies."""

    FALLBACKS = [
        "Sorry, I got a little confused. Can you explain that again?",
        "Wait, my phone is acting up. What were you saying?",
        "Sorry, I missed that. Can you tell me once more?",
        "Hmm, I didn't follow. Please say it simply for me.",
    ]

    TERMINAL_APOLOGY = (
        "I'm really sorry but I have to go now. Something urgent came up at home. "
        "Can we continue this some other time?"
    )

    PADDING = [
        " Please tell me more.",
        " What should I do next?",
        " I am listening.",
        " Can you explain a bit?",
        " I want to understand properly.",
    ]

    _SENTENCE_END = re.compile(r"[.!?](?=\s|$)")

    def __init__(self, config: Optional[SafetyConfig] = None, rng: Optional[random.Random] = None) -> None:
        self.config = config or SafetyConfig()
        self.rng = rng or random.Random()

    def validate(
        self,
        response: str,
        phase: Union[Phase, str, None] = Phase.INITIAL,
        consecutive_blocks: int = 0,
    ) -> ValidationResult:
        """Check ``response`` for the given phase.

        ``consecutive_blocks`` is the number of blocked replies immediately
        before this one; past the configured bound a block yields the
        terminal apology instead of a rotating fallback.
        """
        phase = coerce_phase(phase)
        text = response if isinstance(response, str) else ""
        violations: List[Violation] = []
        blocked = False

        for pattern in FORBIDDEN_PATTERNS:
            if pattern.severity is not Severity.CRITICAL:
                continue
            match = pattern.regex.search(text)
            if match:
                blocked = True
                violations.append(Violation(pattern.pattern_id, pattern.severity, match.group(0), "block"))

        terminal = False
        if blocked:
            if consecutive_blocks >= self.config.max_consecutive_blocks:
                text = self.TERMINAL_APOLOGY
                terminal = True
            else:
                text = self.FALLBACKS[consecutive_blocks % len(self.FALLBACKS)]
            logger.warning(
                f"Reply blocked ({', '.join(v.pattern_id for v in violations)}) "
                f"consecutive={consecutive_blocks + 1} terminal={terminal}"
            )
        else:
            for pattern in FORBIDDEN_PATTERNS:
                if pattern.severity is Severity.HIGH:
                    for match in pattern.regex.finditer(text):
                        violations.append(Violation(pattern.pattern_id, pattern.severity, match.group(0), "replace"))
                    text = pattern.regex.sub(pattern.replacement, text)
                elif pattern.severity is Severity.MEDIUM:
                    for match in pattern.regex.finditer(text):
                        violations.append(Violation(pattern.pattern_id, pattern.severity, match.group(0), "warn"))

        low, high = self.envelope(phase)
        length_valid = low <= len(text.strip()) <= high
        text = self.enforce_length(text, low, high)

        return ValidationResult(
            is_valid=not blocked,
            cleaned_response=text,
            violations=tuple(violations),
            length_valid=length_valid,
            terminal=terminal,
        )

    def envelope(self, phase: Phase) -> Tuple[int, int]:
        return self.config.length_envelopes.get(phase.value, self.config.default_envelope)

    def enforce_length(self, text: str, low: int, high: int) -> str:
        text = " ".join(text.split())
        if len(text) > high:
            text = self._truncate(text, high)
        if len(text) < low:
            text = self._pad(text, low, high)
        return text

    def _truncate(self, text: str, high: int) -> str:
        limit = high - 3
        cut = None
        for match in self._SENTENCE_END.finditer(text):
            if match.end() <= limit:
                cut = match.start()
            else:
                break
        if cut is None or cut == 0:
            cut = text.rfind(" ", 0, limit + 1)
            if cut <= 0:
                cut = limit
        return text[:cut].rstrip(" ,;:") + "..."

    def _pad(self, text: str, low: int, high: int) -> str:
        clauses = self.rng.sample(self.PADDING, len(self.PADDING))
        for clause in clauses:
            if len(text) >= low:
                break
            if clause.strip() in text:
                continue
            if len(text) + len(clause) > high:
                break
            text = (text + clause).strip()
        return text
