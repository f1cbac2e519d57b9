"""
catalog.py: Signal Catalog
==========================

Static, precompiled pattern data shared by the classifier, extractor and
safety filter:

- Weighted fraud-category patterns (11 categories, urgency-boost tagged)
- High / medium risk keyword lists
- Manipulation, pressure and institutional-phrasing patterns
- Urgency level ladder
- Entity patterns with context keywords and validators
- Forbidden-content patterns for outgoing replies

Everything here is built once at import time into tuples and frozen
dataclasses. Quantifiers are bounded and never nested over overlapping
character classes, so every scan is linear in the (capped) input length.
"""

import re
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Callable, Optional, Pattern, Tuple


_FLAGS = re.IGNORECASE


# ============================================================
# Enumerations
# ============================================================

class SignalCategory(str, Enum):
    URGENCY = "urgency"
    AUTHORITY = "authority"
    FINANCIAL = "financial"
    VERIFICATION = "verification"
    CREDENTIAL = "credential"
    THREAT = "threat"
    PRIZE = "prize"
    EMPLOYMENT = "employment"
    LOAN = "loan"
    ROMANCE = "romance"
    CONTACT = "contact"


class FraudType(str, Enum):
    BANK_FRAUD = "bank_fraud"
    CREDENTIAL_THEFT = "otp_fraud"
    KYC_VERIFICATION = "kyc_scam"
    LOTTERY = "lottery_scam"
    ROMANCE = "romance_scam"
    JOB = "job_scam"
    IMPERSONATION = "impersonation_scam"
    URGENCY = "urgent_scam"
    THREAT = "threat_scam"
    LOAN = "loan_scam"
    PHISHING = "phishing_scam"


class UrgencyLevel(IntEnum):
    NORMAL = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    @property
    def label(self) -> str:
        return self.name.lower()


class EntityType(str, Enum):
    PAYMENT_HANDLE = "payment_handle"
    PAYMENT_LINK = "payment_link"
    PHONE = "phone"
    BANK_ACCOUNT = "bank_account"
    ROUTING_CODE = "routing_code"
    URL = "url"
    CRYPTO_WALLET = "crypto_wallet"
    TAX_ID = "tax_id"
    BIOMETRIC_ID = "biometric_id"
    NAME = "name"
    ORGANIZATION = "organization"


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"


CATEGORY_FRAUD_TYPES = {
    SignalCategory.FINANCIAL: FraudType.BANK_FRAUD,
    SignalCategory.CREDENTIAL: FraudType.CREDENTIAL_THEFT,
    SignalCategory.VERIFICATION: FraudType.KYC_VERIFICATION,
    SignalCategory.PRIZE: FraudType.LOTTERY,
    SignalCategory.ROMANCE: FraudType.ROMANCE,
    SignalCategory.EMPLOYMENT: FraudType.JOB,
    SignalCategory.AUTHORITY: FraudType.IMPERSONATION,
    SignalCategory.URGENCY: FraudType.URGENCY,
    SignalCategory.THREAT: FraudType.THREAT,
    SignalCategory.LOAN: FraudType.LOAN,
    SignalCategory.CONTACT: FraudType.PHISHING,
}


# ============================================================
# Pattern records
# ============================================================

@dataclass(frozen=True)
class SignalPattern:
    category: SignalCategory
    regex: Pattern
    weight: float
    urgency_boost: bool


@dataclass(frozen=True)
class PhrasePattern:
    """A named phrase family; each family counts once per message."""
    name: str
    regex: Pattern


@dataclass(frozen=True)
class EntityPattern:
    entity_type: EntityType
    name: str
    regex: Pattern
    base_confidence: float
    context_keywords: Tuple[str, ...] = ()
    validator: Optional[Callable[[str, str], bool]] = None


@dataclass(frozen=True)
class ForbiddenPattern:
    pattern_id: str
    severity: Severity
    regex: Pattern
    replacement: str = ""


def _signals(category: SignalCategory, rows) -> Tuple[SignalPattern, ...]:
    return tuple(
        SignalPattern(category, re.compile(rx, _FLAGS), weight, boost)
        for rx, weight, boost in rows
    )


def _phrases(rows) -> Tuple[PhrasePattern, ...]:
    return tuple(PhrasePattern(name, re.compile(rx, _FLAGS)) for name, rx in rows)


def _words(words) -> Tuple[str, ...]:
    return tuple(w.lower() for w in words)


# ============================================================
# CATEGORY PATTERNS: (regex, weight, urgency_boost)
# ============================================================

SIGNAL_PATTERNS: Tuple[SignalPattern, ...] = (
    _signals(SignalCategory.URGENCY, [
        (r"\b(?:urgent(?:ly)?|immediately|right now|within \d{1,3} (?:hours?|minutes?|mins?))\b", 0.18, True),
        (r"\b(?:act now|don'?t delay|time (?:is|was) running out|last chance)\b",                0.15, True),
        (r"\b(?:final (?:warning|notice)|action required|expir(?:e|es|ed|ing))\b",              0.16, True),
        (r"\b(?:today only|limited time|hurry|asap)\b",                                         0.14, True),
        (r"\b(?:today|tonight)\b",                                                              0.10, True),
    ])
    + _signals(SignalCategory.AUTHORITY, [
        (r"\b(?:bank (?:manager|official|officer|executive)|rbi|reserve bank)\b",               0.22, False),
        (r"\b(?:government|police|court|income tax|it department)\b",                           0.20, False),
        (r"\byour (?:account|number|email|pan|aadhaar|card|kyc) (?:is|has been|will be)\b",     0.18, True),
        (r"\b(?:sbi|hdfc|icici|axis|kotak|pnb|canara)\b",                                       0.12, False),
        (r"\b(?:customer (?:care|support|service)|helpline|toll.?free)\b",                      0.14, False),
    ])
    + _signals(SignalCategory.FINANCIAL, [
        (r"\bsend (?:money|payment|amount|funds|rs\.?|rupees|inr)",                             0.25, True),
        (r"\b(?:transfer (?:to|into|money)|wire|remittance)\b",                                 0.22, False),
        (r"(?:upi://|@(?:upi|paytm|gpay|phonepe|ybl|okaxis|oksbi|okicici|okhdfcbank)\b)",       0.20, False),
        (r"\b(?:pay (?:to|now|immediately|using)|payment link)\b",                              0.18, True),
        (r"\b(?:processing|activation|registration|advance) (?:fee|charges?)\b",               0.20, True),
    ])
    + _signals(SignalCategory.VERIFICATION, [
        (r"\bkyc (?:update|verify|verification|pending|expired|required)\b",                    0.22, True),
        (r"\bverify your (?:account|identity|details|kyc|pan|aadhaar)\b",                       0.20, True),
        (r"\bverify (?:immediately|now|urgently|today)\b",                                      0.20, True),
        (r"\bpan (?:card|number|verification|update|link)\b",                                   0.18, True),
        (r"\baadhaa?r (?:card|number|verification|update|link)\b",                             0.18, True),
        (r"\b(?:update (?:your )?details|complete (?:the )?verification)\b",                    0.15, True),
    ])
    + _signals(SignalCategory.CREDENTIAL, [
        (r"\b(?:otps?|one.?time.?passwords?|verification codes?)\b",                          0.25, True),
        (r"\bshare (?:your |the )?(?:otps?|passwords?|pins?|cvv|card numbers?)\b",          0.28, True),
        (r"\b(?:enter|confirm) (?:the |your )?(?:otps?|passwords?|pins?)\b",              0.22, True),
        (r"\bcard (?:number|details|cvv|expiry)\b",                                             0.20, True),
        (r"\b(?:netbanking|internet banking|mobile banking)\b",                                 0.12, False),
    ])
    + _signals(SignalCategory.THREAT, [
        (r"\b(?:account|card|number|sim|wallet)\b[^.!?\n]{0,30}\b(?:blocked|suspended|frozen|closed|deactivated)\b", 0.22, True),
        (r"\bwill be (?:blocked|suspended|frozen|closed|deactivated)\b",                        0.20, True),
        (r"\bunauthori[sz]ed (?:access|transaction|activity)\b",                                0.18, True),
        (r"\bsuspicious (?:activity|transaction|login)\b",                                      0.16, True),
        (r"\bsecurity (?:alert|warning|issue|breach)\b",                                        0.15, True),
    ])
    + _signals(SignalCategory.PRIZE, [
        (r"\b(?:winner|won|prize|lottery|jackpot|lucky draw)\b",                                0.20, True),
        (r"\b(?:claim (?:your|now)|congratulations|you(?:'ve| have) been (?:selected|chosen))\b", 0.18, True),
        (r"\byou(?:'ve| have)? won\b",                                                          0.16, True),
        (r"\b(?:reward|cashback|bonus|gift|voucher|coupon)\b",                                  0.12, False),
    ])
    + _signals(SignalCategory.EMPLOYMENT, [
        (r"\b(?:work from home|home based job|part.?time job)\b",                               0.16, True),
        (r"\b(?:easy money|quick money|earn (?:daily|weekly|monthly))\b",                       0.18, True),
        (r"\b(?:no experience|no investment|guaranteed income)\b",                              0.15, True),
        (r"\b(?:data entry|typing job|online job|freelance)\b",                                 0.10, False),
    ])
    + _signals(SignalCategory.LOAN, [
        (r"\b(?:instant loan|easy loan|pre.?approved loan)\b",                                  0.18, True),
        (r"\b(?:loan (?:approved|sanctioned)|credit (?:limit|card) (?:approved|ready))\b",      0.16, True),
        (r"\b(?:low interest|no documentation|instant approval)\b",                             0.14, False),
    ])
    + _signals(SignalCategory.ROMANCE, [
        (r"\b(?:love|miss you|heart|feelings|relationship)\b",                                  0.08, False),
        (r"\b(?:dating|marry|life partner|soul ?mate)\b",                                       0.10, False),
    ])
    + _signals(SignalCategory.CONTACT, [
        (r"\b(?:new number|changed (?:my )?number|whatsapp me)\b",                              0.10, False),
        (r"\b(?:call (?:me|this number)|contact (?:me|us))\b",                                  0.08, False),
    ])
)


# ============================================================
# RISK KEYWORDS: case-insensitive substrings
# ============================================================

HIGH_RISK_KEYWORDS = _words([
    "otp", "cvv", "upi pin", "atm pin", "share otp", "card details",
    "account blocked", "account suspended", "will be blocked", "will be suspended",
    "verify immediately", "kyc expired", "kyc update", "processing fee",
    "you won", "lottery", "send money", "password", "anydesk", "teamviewer",
    "remote access",
])

MEDIUM_RISK_KEYWORDS = _words([
    "verify", "update", "urgent", "immediately", "bank", "account", "prize",
    "congratulations", "offer", "reward", "cashback", "refund", "click", "link",
    "kyc", "suspend", "blocked", "expire", "claim", "winner", "loan",
])

# Vocabulary for the rapid-escalation heuristic over recent history
FINANCIAL_TOPIC_KEYWORDS = _words([
    "money", "payment", "transfer", "send", "bank", "upi", "otp", "verify",
])


# ============================================================
# BEHAVIOURAL / CONTEXT PHRASES: one hit per family
# ============================================================

MANIPULATION_PHRASES = _phrases([
    ("help_plea",    r"\bi need your help\b"),
    ("trust_claim",  r"\b(?:trust me|believe me)\b"),
    ("secrecy",      r"\b(?:between you and me|our (?:little )?secret|don'?t tell anyone|keep (?:this|it) (?:confidential|secret))\b"),
    ("exclusivity",  r"\b(?:only for you|special offer|exclusive)\b"),
])

PRESSURE_PHRASES = _phrases([
    ("last_chance",  r"\b(?:last chance|final warning)\b"),
    ("no_option",    r"\b(?:no other option|only way)\b"),
    ("must_act",     r"\bmust (?:do|act|respond|pay|reply|complete)\b"),
    ("act_now",      r"\b(?:act now|do it now|right away)\b"),
])

SCAM_CONTEXT_PHRASES = _phrases([
    ("formal_greeting",  r"\bdear (?:customer|user|member|sir|madam|account holder)\b"),
    ("notice",           r"\bthis is to inform you\b"),
    ("institutional_we", r"\bwe (?:regret|noticed?|observed?)\b"),
    ("guidelines",       r"\bas per (?:rbi|bank|government) (?:guidelines|rules|regulations)\b"),
    ("compliance",       r"\bfailure to (?:comply|respond|verify|update)\b"),
    ("deadline",         r"\bwithin (?:24|48|72) hours\b"),
    ("click_link",       r"\bclick (?:on )?(?:the|this|below)(?: link)?\b"),
    ("download_app",     r"\bdownload (?:the|this) app\b"),
])


# ============================================================
# URGENCY LADDER: first match wins, highest first
# ============================================================

URGENCY_LEVELS: Tuple[Tuple[UrgencyLevel, Pattern], ...] = tuple(
    (level, re.compile(rx, _FLAGS)) for level, rx in [
        (UrgencyLevel.CRITICAL, r"\b(?:urgent(?:ly)?|immediately|asap|right now|this moment)\b"),
        (UrgencyLevel.HIGH,     r"\b(?:within \d{1,3} (?:minutes?|mins?|hours?)|today|tonight)\b"),
        (UrgencyLevel.MEDIUM,   r"\b(?:soon|this week|within \d{1,3} days?)\b"),
        (UrgencyLevel.LOW,      r"\b(?:when(?:ever)? possible|at your convenience)\b"),
    ]
)


# ============================================================
# MESSAGE-LEVEL FLAGS
# ============================================================

FINANCIAL_CONTEXT_PATTERNS: Tuple[Pattern, ...] = tuple(re.compile(rx, _FLAGS) for rx in [
    r"\b(?:bank|account|a/c|upi|payment|transfer|money|rupees|amount|fee|refund|loan|card|wallet|cash)\b",
    r"\b(?:rs\.?|inr)\s?\d",
    r"₹\s?\d",
])

DIRECT_REQUEST_PATTERNS: Tuple[Pattern, ...] = tuple(re.compile(rx, _FLAGS) for rx in [
    r"\b(?:send|share|give|tell|provide) (?:me |us )?(?:your |the )?(?:otp|pin|password|cvv|details|number|money|amount|code)\b",
    r"\b(?:pay|transfer|deposit|send)\b[^.!?\n]{0,20}\b(?:rs\.?|inr|rupees|amount|money|fee|now)",
    r"\bclick (?:on )?(?:the |this )?(?:link|here)\b",
    r"\b(?:download|install) (?:the |this )?app\b",
    r"\bverify (?:your|now|immediately)\b",
])

SUSPICIOUS_KEYWORD_PATTERNS: Tuple[Pattern, ...] = tuple(re.compile(rx, _FLAGS) for rx in [
    r"\burgent(?:ly)?\b",
    r"\bimmediately\b",
    r"\bverify (?:now|immediately|your account)\b",
    r"\baccount (?:blocked|suspended)\b",
    r"\bwill be (?:blocked|suspended)\b",
    r"\bkyc\b",
    r"\botp\b",
    r"\bcvv\b",
    r"\blottery\b",
    r"\bprize\b",
    r"\bwinner\b",
    r"\bcongratulations\b",
    r"\bprocessing fee\b",
    r"\blast chance\b",
    r"\blegal action\b",
    r"\bclick (?:on )?(?:the|this) link\b",
    r"\bcustomer care\b",
    r"\brefund\b",
    r"\bcashback\b",
])


# ============================================================
# ENTITY PATTERNS
# ============================================================

UPI_PROVIDERS = frozenset({
    "upi", "paytm", "ybl", "ibl", "axl", "apl", "okaxis", "oksbi", "okicici",
    "okhdfcbank", "gpay", "phonepe", "axisbank", "hdfcbank", "icici", "sbi",
    "kotak", "pnb", "boi", "barodampay", "yesbank", "rbl", "idfcbank", "fbl",
    "freecharge", "airtel", "jio", "amazonpay", "mobikwik", "slice", "jupiter",
})

EMAIL_DOMAINS = frozenset({
    "gmail", "yahoo", "hotmail", "outlook", "live", "rediffmail", "protonmail",
    "aol", "icloud", "zoho", "yandex", "mail", "msn",
})

BANKING_TERMS = ("account", "bank", "a/c", "transfer", "deposit", "saving", "current", "ifsc", "beneficiary")

_PROVIDER_ALT = "|".join(sorted(UPI_PROVIDERS, key=len, reverse=True))
_EMAIL_ALT = "|".join(sorted(EMAIL_DOMAINS, key=len, reverse=True))
_HANDLE_LOCAL = r"(?<![\w.\-])[\w.\-]{2,64}@"


def _digits(value: str) -> str:
    return re.sub(r"\D", "", value)


def _not_email_domain(raw: str, message: str) -> bool:
    domain = raw.rsplit("@", 1)[-1].lower()
    return not any(domain.startswith(d) for d in EMAIL_DOMAINS)


def _valid_phone(raw: str, message: str) -> bool:
    return len(_digits(raw)) in (10, 12)


def _valid_bank_account(raw: str, message: str) -> bool:
    digits = _digits(raw)
    # Bare mobile numbers are phones, not accounts
    if len(digits) == 10 and digits[0] in "6789":
        return False
    if len(digits) == 12 and digits.startswith("91") and digits[2] in "6789":
        return False
    lowered = message.lower()
    return any(term in lowered for term in BANKING_TERMS)


def _valid_biometric_id(raw: str, message: str) -> bool:
    digits = _digits(raw)
    # A +91 mobile written without separators is also twelve digits
    return not (digits.startswith("91") and digits[2] in "6789")


def _valid_routing_code(raw: str, message: str) -> bool:
    return any(ch.isdigit() for ch in raw[5:])


def _valid_btc(raw: str, message: str) -> bool:
    return any(ch.isdigit() for ch in raw) and any(ch.isalpha() for ch in raw)


def _entity(entity_type, name, rx, confidence, keywords=(), validator=None, flags=_FLAGS) -> EntityPattern:
    return EntityPattern(entity_type, name, re.compile(rx, flags), confidence, tuple(keywords), validator)


ENTITY_PATTERNS: Tuple[EntityPattern, ...] = (
    # Payment handles
    _entity(EntityType.PAYMENT_HANDLE, "upi_known_provider",
            _HANDLE_LOCAL + r"(?:" + _PROVIDER_ALT + r")\b(?![.\-]\w)", 0.92),
    _entity(EntityType.PAYMENT_LINK, "upi_deep_link",
            r"upi://pay\?[^\s<>\"']{1,512}", 0.95),
    _entity(EntityType.PAYMENT_HANDLE, "generic_handle",
            _HANDLE_LOCAL + r"(?!(?:" + _EMAIL_ALT + r")\b)[A-Za-z][A-Za-z0-9]{1,30}\b(?![.\-]\w)",
            0.75, validator=_not_email_domain),

    # Phones
    _entity(EntityType.PHONE, "mobile",
            r"(?<![\d+])(?:\+?91[\s\-]?)?[6-9]\d{9}(?!\d)", 0.88, validator=_valid_phone),
    _entity(EntityType.PHONE, "mobile_spaced",
            r"(?<![\d+])(?:\+?91[\s\-]?)?[6-9]\d{4}[\s.\-]\d{5}(?!\d)", 0.85, validator=_valid_phone),

    # Banking
    _entity(EntityType.BANK_ACCOUNT, "account_number",
            r"(?<!\d)\d{9,18}(?!\d)", 0.65,
            keywords=("account", "bank", "number", "a/c", "ac no", "acc", "saving", "current", "transfer to"),
            validator=_valid_bank_account),
    _entity(EntityType.ROUTING_CODE, "ifsc",
            r"\b[A-Za-z]{4}0[A-Za-z0-9]{6}\b", 0.95, validator=_valid_routing_code),

    # Links
    _entity(EntityType.URL, "http_url",
            r"https?://[^\s<>\"'{}|\\^`\[\]]{2,2048}", 0.80),
    _entity(EntityType.URL, "short_url",
            r"\b(?:bit\.ly|tinyurl\.com|goo\.gl|t\.co|rb\.gy|is\.gd|cutt\.ly|ow\.ly|tiny\.cc|shorturl\.at)/[\w\-]{1,64}",
            0.90),
    _entity(EntityType.URL, "suspicious_tld",
            r"\b(?:https?://)?(?:[a-z0-9][a-z0-9\-]{0,62}\.){1,4}(?:tk|ml|ga|cf|gq|xyz|top|work|click|link|info)\b(?:/[^\s]{0,256})?",
            0.85),

    # Crypto
    _entity(EntityType.CRYPTO_WALLET, "btc",
            r"\b(?:bc1[a-z0-9]{25,59}|[13][a-km-zA-HJ-NP-Z1-9]{25,34})\b", 0.92,
            validator=_valid_btc, flags=0),
    _entity(EntityType.CRYPTO_WALLET, "eth",
            r"\b0x[a-fA-F0-9]{40}\b", 0.92),

    # Identity documents
    _entity(EntityType.TAX_ID, "pan",
            r"\b[A-Za-z]{5}\d{4}[A-Za-z]\b", 0.90),
    _entity(EntityType.BIOMETRIC_ID, "aadhaar",
            r"(?<!\d)[2-9]\d{3}[\s\-]?\d{4}[\s\-]?\d{4}(?!\d)", 0.70,
            keywords=("aadhaar", "aadhar", "uid", "verify", "link"),
            validator=_valid_biometric_id),
)

# Introductory phrases are case-insensitive; the captured name must be capitalised.
NAME_PATTERNS: Tuple[Pattern, ...] = tuple(re.compile(rx) for rx in [
    r"(?i:\bmy name is|\bthis is|\bi am|\bi'm)\s+([A-Z][a-z]{1,20}(?: [A-Z][a-z]{1,20}){0,2})",
])

ORGANIZATION_PATTERNS: Tuple[Pattern, ...] = tuple(re.compile(rx) for rx in [
    r"(?i:\b(?:from|with|at|of))\s+((?:[A-Z][A-Za-z&]{0,30} ){1,4}(?i:bank|ltd|limited|pvt|inc|llc|corp|company|insurance|finance|services|department))\b",
    r"\b((?:[A-Z][A-Za-z&]{1,30} ){1,3})(?:Customer Care|Support|Helpline)\b",
])

HONORIFICS = frozenset({
    "sir", "madam", "customer", "user", "member", "dear", "mr", "mrs", "ms",
    "miss", "officer", "the", "your", "my", "our", "this", "hello", "hi",
})

# A captured name containing any of these is boilerplate, not a person
NAME_STOPWORDS = frozenset({
    "final", "notice", "alert", "warning", "reminder", "important", "urgent",
    "official", "security", "fraud", "verification", "update", "message",
    "bank", "department", "customer", "care", "support", "helpline", "team",
    "service", "services", "office", "branch", "head", "government", "police",
    "income", "tax", "reserve", "state", "national", "india", "limited", "ltd",
})


# ============================================================
# FORBIDDEN CONTENT: outgoing replies
# ============================================================

FORBIDDEN_PATTERNS: Tuple[ForbiddenPattern, ...] = tuple(
    ForbiddenPattern(pid, severity, re.compile(rx, _FLAGS), replacement)
    for pid, severity, rx, replacement in [
        ("automation_reveal", Severity.CRITICAL,
         r"\b(?:i'?m an ai|i am an ai|i'?m a bot|i am a bot|i'?m not human|ai model|language model|"
         r"as an ai|i was designed|my programming|system prompt|i'?m not allowed|i cannot)\b", ""),
        ("accusation", Severity.CRITICAL,
         r"\b(?:scammer|fraud|fake|con artist|thief|i know you'?re|i can tell|you'?re a|you scammed)\b", ""),
        ("law_enforcement", Severity.CRITICAL,
         r"\b(?:police|investigation|arrest(?:ed)?|jail|legal action|report(?:ed|ing)?|cyber ?cell|fir)\b", ""),
        ("scam_term", Severity.HIGH, r"\bscam(?:s|med)?\b", "deal"),
        ("fraud_adjective", Severity.HIGH, r"\b(?:fraudulent|suspicious)\b", "unusual"),
        ("legal_office", Severity.HIGH, r"\b(?:fbi|cia|court|lawyer|attorney)\b", "office"),
        ("verification_echo", Severity.MEDIUM, r"\b(?:verify|confirm|check) (?:your|that)\b", ""),
    ]
)
