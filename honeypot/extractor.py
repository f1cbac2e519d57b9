"""Regex-based intelligence extraction engine.

Harvests payment handles, UPI deep links, phone numbers, bank accounts,
IFSC codes, URLs, crypto wallets, PAN and Aadhaar numbers, plus names and
organisations introduced in the message.

Every match goes through the same gate: required context keywords, an
optional validator, then per-type normalisation. Items are de-duplicated
by (type, normalised value) keeping the highest confidence.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from honeypot.catalog import (
    ENTITY_PATTERNS,
    HONORIFICS,
    NAME_PATTERNS,
    NAME_STOPWORDS,
    ORGANIZATION_PATTERNS,
    SUSPICIOUS_KEYWORD_PATTERNS,
    EntityPattern,
    EntityType,
)
from honeypot.config import ExtractorConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractionItem:
    entity_type: EntityType
    raw_value: str
    value: str
    confidence: float
    validated: bool = True
    source_turn: int = 0
    snippet: str = ""

    @property
    def key(self) -> Tuple[EntityType, str]:
        return self.entity_type, self.value


@dataclass(frozen=True)
class MessageContext:
    """Vocabulary flags for the message being analysed."""
    has_financial: bool = False
    has_urgency: bool = False
    has_verification: bool = False
    has_contact: bool = False
    mentions_identity: bool = False


@dataclass(frozen=True)
class ExtractionResult:
    items: Tuple[ExtractionItem, ...] = ()
    targets: Tuple[EntityType, ...] = ()
    context: MessageContext = field(default_factory=MessageContext)
    keywords: Tuple[str, ...] = ()

    def of_type(self, entity_type: EntityType) -> List[ExtractionItem]:
        return [item for item in self.items if item.entity_type is entity_type]


class CanonicalNormalizer:
    """Per-type canonical forms. Every method is idempotent."""

    @staticmethod
    def digits(value: str) -> str:
        return re.sub(r"\D", "", value)

    @staticmethod
    def phone(value: str) -> str:
        digits = CanonicalNormalizer.digits(value)
        if len(digits) == 12 and digits.startswith("91"):
            return digits[2:]
        if len(digits) == 11 and digits.startswith("0"):
            return digits[1:]
        return digits

    @staticmethod
    def url(value: str) -> str:
        cleaned = re.sub(r"^[a-z][a-z0-9+.\-]*://", "", value.strip(), flags=re.IGNORECASE)
        cleaned = cleaned.rstrip("/")
        host, sep, path = cleaned.partition("/")
        return host.lower() + sep + path

    @staticmethod
    def crypto(value: str) -> str:
        # Legacy base58 addresses are case-sensitive
        if value.lower().startswith(("0x", "bc1")):
            return value.lower()
        return value

    @staticmethod
    def text(value: str) -> str:
        return " ".join(value.split())

    @classmethod
    def normalize(cls, entity_type: EntityType, value: str) -> str:
        if entity_type is EntityType.PHONE:
            return cls.phone(value)
        if entity_type in (EntityType.BANK_ACCOUNT, EntityType.BIOMETRIC_ID):
            return cls.digits(value)
        if entity_type in (EntityType.PAYMENT_HANDLE, EntityType.PAYMENT_LINK):
            return value.strip().lower()
        if entity_type in (EntityType.ROUTING_CODE, EntityType.TAX_ID):
            return value.strip().upper()
        if entity_type is EntityType.URL:
            return cls.url(value)
        if entity_type is EntityType.CRYPTO_WALLET:
            return cls.crypto(value.strip())
        return cls.text(value)


class IntelligenceExtractor:
    """
    Stateless extractor. Results are merged into the session ledger by
    the pipeline; nothing is stored here.
    """

    # Vocabulary -> entity types worth asking for next
    TARGET_RULES: Tuple[Tuple[re.Pattern, Tuple[EntityType, ...]], ...] = tuple(
        (re.compile(rx, re.IGNORECASE), targets) for rx, targets in [
            (r"\b(?:upi|payment|pay|paytm|gpay|phonepe)\b", (EntityType.PAYMENT_HANDLE,)),
            (r"\b(?:bank|account|transfer|ifsc|neft|imps)\b", (EntityType.BANK_ACCOUNT, EntityType.ROUTING_CODE)),
            (r"\b(?:link|url|click|website|download)\b", (EntityType.URL,)),
            (r"\b(?:call|number|whatsapp|phone|contact)\b", (EntityType.PHONE,)),
            (r"\b(?:name|who)\b", (EntityType.NAME,)),
            (r"\b(?:company|organi[sz]ation|department|office)\b", (EntityType.ORGANIZATION,)),
        ]
    )

    CONTEXT_RULES: Dict[str, re.Pattern] = {
        "has_financial": re.compile(r"\b(?:money|payment|pay|transfer|bank|account|upi|rs|rupees|fee|amount)\b", re.IGNORECASE),
        "has_urgency": re.compile(r"\b(?:urgent|immediately|now|today|asap|quickly|hurry)\b", re.IGNORECASE),
        "has_verification": re.compile(r"\b(?:verify|verification|kyc|otp|confirm|update)\b", re.IGNORECASE),
        "has_contact": re.compile(r"\b(?:call|whatsapp|contact|message|sms|email)\b", re.IGNORECASE),
        "mentions_identity": re.compile(r"\b(?:name|officer|manager|executive|department|branch)\b", re.IGNORECASE),
    }

    _TRAILING_PUNCT = re.compile(r"[.,;:!?)\]>'\"]+$")

    def __init__(self, config: Optional[ExtractorConfig] = None) -> None:
        self.config = config or ExtractorConfig()

    def extract(self, text: str, history: Sequence[str] = (), turn: int = 0) -> ExtractionResult:
        """Extract intelligence from ``text``.

        ``history`` only feeds the target list; items are taken from the
        current message so each one carries its originating turn.
        """
        if not isinstance(text, str) or not text.strip():
            return ExtractionResult()

        text = text[:self.config.max_scan_chars]
        found: Dict[Tuple[EntityType, str], ExtractionItem] = {}

        for pattern in ENTITY_PATTERNS:
            for item in self._scan(pattern, text, turn):
                self._keep_best(found, item)

        for item in self._extract_people(text, turn):
            self._keep_best(found, item)

        items = tuple(found.values())
        return ExtractionResult(
            items=items,
            targets=self._targets(text, items),
            context=self.analyze_context(text),
            keywords=self.suspicious_keywords(text),
        )

    # ============================================================
    # Entity scanning
    # ============================================================

    def _scan(self, pattern: EntityPattern, text: str, turn: int) -> List[ExtractionItem]:
        lowered = text.lower()
        present = [kw for kw in pattern.context_keywords if kw in lowered]
        if pattern.context_keywords and not present:
            return []

        confidence = pattern.base_confidence
        if len(present) >= self.config.context_boost_min:
            confidence += self.config.context_boost
        if len(present) >= self.config.multi_context_min:
            confidence += self.config.multi_context_boost
        confidence = min(confidence, 1.0)

        items = []
        for match in pattern.regex.finditer(text):
            raw = self._TRAILING_PUNCT.sub("", match.group(0).strip())
            if not raw:
                continue
            if pattern.validator and not pattern.validator(raw, text):
                continue
            items.append(ExtractionItem(
                entity_type=pattern.entity_type,
                raw_value=raw,
                value=CanonicalNormalizer.normalize(pattern.entity_type, raw),
                confidence=round(confidence, 4),
                validated=pattern.validator is not None,
                source_turn=turn,
                snippet=self._snippet(text, match.start(), match.end()),
            ))
        return items

    def _extract_people(self, text: str, turn: int) -> List[ExtractionItem]:
        items = []
        for entity_type, patterns, confidence in (
            (EntityType.NAME, NAME_PATTERNS, self.config.name_confidence),
            (EntityType.ORGANIZATION, ORGANIZATION_PATTERNS, self.config.org_confidence),
        ):
            for regex in patterns:
                for match in regex.finditer(text):
                    cleaned = self._strip_honorifics(match.group(1))
                    if not cleaned:
                        continue
                    if entity_type is EntityType.NAME and self._is_boilerplate(cleaned):
                        continue
                    items.append(ExtractionItem(
                        entity_type=entity_type,
                        raw_value=match.group(1).strip(),
                        value=CanonicalNormalizer.normalize(entity_type, cleaned),
                        confidence=confidence,
                        validated=False,
                        source_turn=turn,
                        snippet=self._snippet(text, match.start(1), match.end(1)),
                    ))
        return items

    @staticmethod
    def _strip_honorifics(value: str) -> str:
        tokens = value.split()
        while tokens and tokens[0].lower().strip(".") in HONORIFICS:
            tokens.pop(0)
        while tokens and tokens[-1].lower().strip(".") in HONORIFICS:
            tokens.pop()
        return " ".join(tokens)

    @staticmethod
    def _is_boilerplate(value: str) -> bool:
        return any(token.lower() in NAME_STOPWORDS for token in value.split())

    @staticmethod
    def _keep_best(found: Dict, item: ExtractionItem) -> None:
        current = found.get(item.key)
        if current is None or item.confidence > current.confidence:
            found[item.key] = item

    def _snippet(self, text: str, start: int, end: int) -> str:
        window = self.config.snippet_window
        lo = max(0, start - window)
        hi = min(len(text), end + window)
        prefix = "..." if lo > 0 else ""
        suffix = "..." if hi < len(text) else ""
        return f"{prefix}{text[lo:hi]}{suffix}"

    # ============================================================
    # Context and targets
    # ============================================================

    def analyze_context(self, text: str) -> MessageContext:
        return MessageContext(**{
            flag: bool(regex.search(text)) for flag, regex in self.CONTEXT_RULES.items()
        })

    def _targets(self, text: str, items: Sequence[ExtractionItem]) -> Tuple[EntityType, ...]:
        have = {item.entity_type for item in items}
        targets: List[EntityType] = []
        for regex, entity_types in self.TARGET_RULES:
            if regex.search(text):
                for entity_type in entity_types:
                    if entity_type not in have and entity_type not in targets:
                        targets.append(entity_type)
        return tuple(targets)

    def suspicious_keywords(self, text: str) -> Tuple[str, ...]:
        """Lower-cased scam vocabulary found in the message, in first-seen order."""
        seen: List[str] = []
        for regex in SUSPICIOUS_KEYWORD_PATTERNS:
            for match in regex.finditer(text[:self.config.max_scan_chars]):
                word = " ".join(match.group(0).lower().split())
                if word not in seen:
                    seen.append(word)
        return tuple(seen)
