"""
The Agent - our fake victim persona that keeps scammers talking.

We never block and never accuse. The persona (Priya, a 28-year-old school
teacher from Mumbai) is polite, a little anxious, and asks a lot of
questions. Every question is aimed at the one identifier we still lack for
the kind of scheme in front of us: who the caller is, which branch, which
UPI ID, which account.

Reply selection, highest priority first:
- GREETING: first turn opens with a greeting
- FAREWELL: counterpart is leaving (one last ask if the session is flagged)
- SMALL TALK: clearly legitimate chat from an unflagged counterpart
- FRAUD: playbook per fraud type, biased toward the best missing target
- AMBIGUOUS: cautious clarification
- UNIVERSAL: anything else

All randomness comes from the injected ``random.Random`` so a seeded run
is fully reproducible.
"""

import logging
import random
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from honeypot.catalog import EntityType, FraudType
from honeypot.config import StrategyConfig
from honeypot.detector import ClassificationResult
from honeypot.extractor import ExtractionResult
from honeypot.state import Phase

logger = logging.getLogger(__name__)


class Mood(str, Enum):
    NEUTRAL = "neutral"
    HAPPY = "happy"
    CONFUSED = "confused"
    WORRIED = "worried"
    SUSPICIOUS = "suspicious"
    ANNOYED = "annoyed"


class Tone(str, Enum):
    POLITE = "polite"
    URGENT = "urgent"
    UPSET = "upset"
    AGGRESSIVE = "aggressive"
    GRATEFUL = "grateful"
    NEUTRAL = "neutral"


class Cue(str, Enum):
    URGENCY = "urgency"
    FEAR = "fear"
    GREED = "greed"
    AUTHORITY = "authority"
    RAPPORT = "rapport"


class Branch(str, Enum):
    GREETING = "greeting"
    FAREWELL = "farewell"
    SMALL_TALK = "small_talk"
    FRAUD = "fraud_engagement"
    AMBIGUOUS = "ambiguous"
    UNIVERSAL = "universal"
    CLOSING = "closing"


@dataclass(frozen=True)
class Persona:
    name: str = "Priya Sharma"
    age: int = 28
    city: str = "Mumbai"
    occupation: str = "school teacher"
    bank: str = "HDFC"


PERSONA = Persona()


@dataclass
class PersonaState:
    """Mutable per-session mood and trust."""
    mood: Mood = Mood.NEUTRAL
    trust: float = 0.5


@dataclass(frozen=True)
class ToneAnalysis:
    tone: Tone = Tone.NEUTRAL
    cues: FrozenSet[Cue] = frozenset()
    pressure: float = 0.0
    is_question: bool = False
    is_greeting: bool = False
    is_goodbye: bool = False


@dataclass(frozen=True)
class Reply:
    text: str
    branch: Branch
    target: Optional[EntityType] = None


@dataclass(frozen=True)
class Playbook:
    targets: Tuple[EntityType, ...]
    openers: Tuple[str, ...]
    # Replaces the shared NAME asks when set
    identity_asks: Tuple[str, ...] = ()


class StrategyEngine:
    """
    Chooses and shapes the persona's reply.

    Stateless across sessions: mood, trust and the recent-reply cache live
    on the session object handed to ``respond``.
    """

    # =========================================================================
    # TONE ANALYSIS
    # =========================================================================

    TONE_PATTERNS: Tuple[Tuple[Tone, re.Pattern], ...] = tuple(
        (tone, re.compile(rx, re.IGNORECASE)) for tone, rx in [
            (Tone.AGGRESSIVE, r"\b(?:idiot|stupid|fool|shut up|damn|useless)\b|!{3,}"),
            (Tone.UPSET, r"\b(?:angry|upset|annoyed|disappointed|why (?:aren'?t|don'?t) you)\b"),
            (Tone.URGENT, r"\b(?:urgent(?:ly)?|immediately|asap|right now|hurry)\b"),
            (Tone.GRATEFUL, r"\b(?:thanks?|thank you|grateful|appreciate)\b"),
            (Tone.POLITE, r"\b(?:please|kindly|sir|madam|regards)\b"),
        ]
    )

    CUE_PATTERNS: Dict[Cue, re.Pattern] = {
        Cue.URGENCY: re.compile(r"\b(?:urgent|immediately|now|hurry|quick(?:ly)?|asap|today)\b", re.IGNORECASE),
        Cue.FEAR: re.compile(r"\b(?:block(?:ed)?|suspend(?:ed)?|freeze|frozen|penalty|legal|lose|danger|arrest)\b", re.IGNORECASE),
        Cue.GREED: re.compile(r"\b(?:won|prize|reward|cashback|bonus|lottery|free|offer|profit|earn)\b", re.IGNORECASE),
        Cue.AUTHORITY: re.compile(r"\b(?:bank|rbi|police|government|officer|manager|department|official)\b", re.IGNORECASE),
        Cue.RAPPORT: re.compile(r"\b(?:dear|friend|trust|beta|brother|sister|help you)\b", re.IGNORECASE),
    }

    PRESSURE_WEIGHTS: Tuple[Tuple[re.Pattern, float], ...] = tuple(
        (re.compile(rx, re.IGNORECASE), weight) for rx, weight in [
            (r"\burgent", 0.20),
            (r"\b(?:within \d{1,3}|\d{1,3} (?:minutes?|hours?))\b", 0.30),
            (r"\b(?:block|suspend|freez)", 0.25),
            (r"!!", 0.10),
            (r"\blast chance\b", 0.20),
            (r"\bmust\b", 0.15),
        ]
    )

    # Pure greetings only; "hey, want to grab coffee?" is small talk
    GREETING_RE = re.compile(
        r"^\s*(?:hi+|hello|hey|namaste|good (?:morning|afternoon|evening))"
        r"(?: (?:there|sir|madam|ji|dear))?[\s!.,?]*(?:how are you[\s!.,?]*)?$",
        re.IGNORECASE,
    )
    GOODBYE_RE = re.compile(r"\b(?:bye|goodbye|see you|talk (?:to you )?later|take care|good night)\b", re.IGNORECASE)
    QUESTION_RE = re.compile(r"\?|^\s*(?:who|what|when|where|why|how|can|could|will|would|do|did|are|is)\b", re.IGNORECASE)

    STALLING_PATTERNS: Tuple[re.Pattern, ...] = tuple(re.compile(rx, re.IGNORECASE) for rx in [
        r"\bsorry\b[^.!?]{0,20}\bbusy\b",
        r"\blet me (?:check|think|ask)\b",
        r"\bneed to (?:talk|discuss|ask)\b",
        r"\b(?:later|tomorrow)\b",
        r"\bwork\b[^.!?]{0,20}\bcrazy\b",
        r"\bmeeting soon\b",
    ])

    LEGIT_TOPICS: Tuple[Tuple[str, re.Pattern], ...] = tuple(
        (topic, re.compile(rx, re.IGNORECASE)) for topic, rx in [
            ("food", r"\b(?:coffee|tea|chai|lunch|dinner|breakfast|food|restaurant|eat)\b"),
            ("weather", r"\b(?:weather|rain|raining|sunny|hot|monsoon)\b"),
            ("cricket", r"\b(?:cricket|match|ipl|score|team)\b"),
            ("movies", r"\b(?:movie|film|cinema|series|netflix)\b"),
            ("family", r"\b(?:family|mom|mother|dad|father|kids|wedding)\b"),
            ("travel", r"\b(?:trip|travel|vacation|holiday|flight)\b"),
            ("health", r"\b(?:health|doctor|sick|fever|gym)\b"),
            ("work", r"\b(?:office|job|school|class|students)\b"),
            ("plans", r"\b(?:weekend|plans?|free|meet(?: up)?)\b"),
        ]
    )

    # =========================================================================
    # RESPONSE POOLS
    # =========================================================================

    GREETINGS = [
        "Hello! Who is this? I don't think I have this number saved.",
        "Hi, yes? Sorry, who am I speaking with?",
        "Hello ji. I don't recognise this number, who is this please?",
        "Hi! Do I know you? My phone shows only the number.",
    ]

    FAREWELLS = [
        "Okay, bye! Take care and have a nice day.",
        "Alright, talk soon. Bye bye!",
        "Okay then, good night! Take care.",
    ]

    CLOSING = [
        "Sorry, I have to go now, my mother is calling me for dinner. Bye.",
        "My phone battery is almost dead, I need to go now. Bye.",
        "Okay, I need to leave for my class now. We will talk some other time.",
        "Someone is at the door, I have to go. Bye for now.",
    ]

    SMALL_TALK: Dict[str, List[str]] = {
        "food": [
            "Haha, I love a good coffee! But sorry, I don't think I know you. Who is this?",
            "Food plans sound nice! But tell me first, how do you know me?",
        ],
        "weather": [
            "Yes, this {city} weather is too much these days! By the way, who is this?",
            "Don't ask about the weather, I got fully wet today. Anyway, what's up?",
        ],
        "cricket": [
            "Cricket! My whole family watches every match. But who are you, sorry?",
        ],
        "movies": [
            "I haven't watched anything new in ages! What made you message me though?",
        ],
        "family": [
            "Family is everything, na? So tell me, how did you get my number?",
        ],
        "travel": [
            "A trip sounds lovely, I need a break from school. But who is this exactly?",
        ],
        "health": [
            "Take care of your health! So, what did you want to talk about?",
        ],
        "work": [
            "Work is busy for me too, exams are coming. Anyway, what is this about?",
        ],
        "plans": [
            "Weekend plans sound nice! But sorry, remind me how we know each other?",
            "I might be free this weekend. But first tell me, who is this?",
        ],
        "default": [
            "That's nice! So what made you message me today?",
            "Haha okay. Sorry, do we know each other?",
        ],
    }

    AMBIGUOUS = [
        "Sorry, I didn't fully understand. What is this about exactly?",
        "Can you explain a little more? I am not sure what you mean.",
        "Hmm, I am confused. Who are you and what do you need from me?",
        "Okay... but what is this regarding?",
    ]

    UNIVERSAL = [
        "Sorry, can you say that again? I didn't get it.",
        "Hmm? I think your message got cut off.",
        "I didn't understand that, can you type it again?",
    ]

    RECOVERY = [
        "Sorry sorry, I'm back now and fully here.",
        "Okay, I am free now, let's finish this properly.",
        "Sorry for the delay, I am ready now.",
    ]

    KEEP_ALIVE = [
        "Okay, I am opening the app now, it is very slow today.",
        "Wait, the page is loading. Stay on the line please.",
        "Okay, I have noted everything down. What should I do next?",
    ]

    ASKS: Dict[EntityType, List[str]] = {
        EntityType.NAME: [
            "Before I do anything, can you tell me your full name and employee ID?",
            "What is your good name, sir? I want to note it down properly.",
            "Who exactly am I talking to? Please tell me your name.",
        ],
        EntityType.ORGANIZATION: [
            "Which bank branch are you calling from exactly?",
            "Which department is this? I want to know who is handling my case.",
            "Which company is this officially? I should know before I share anything.",
        ],
        EntityType.PHONE: [
            "Give me a number I can call you back on, in case the chat disconnects.",
            "What is your direct number? My network keeps dropping.",
            "Can I call you instead? Send me your phone number.",
        ],
        EntityType.URL: [
            "Where do I do this exactly? Send me the website link.",
            "Is there a link I should open? Please send it here.",
        ],
        EntityType.PAYMENT_HANDLE: [
            "Which UPI ID should I send it to? Type it slowly please.",
            "Okay, give me the UPI ID. I use GPay, will that work?",
        ],
        EntityType.BANK_ACCOUNT: [
            "What account number should it go to? I will do a bank transfer.",
            "Send me the account number, my UPI limit is finished for today.",
        ],
        EntityType.ROUTING_CODE: [
            "And what is the IFSC code for that account?",
            "The app is asking for IFSC also. What is it?",
        ],
    }

    GENERIC_PLAYBOOK = Playbook(
        targets=(EntityType.NAME, EntityType.ORGANIZATION, EntityType.PHONE),
        openers=(
            "I am a bit confused about what you need from me.",
            "Okay, I am listening.",
            "This is all new to me, so please be patient with me.",
        ),
        identity_asks=(
            "Before I do anything, can you tell me your full name and employee ID?",
            "Please tell me your name and employee ID first, I will write it down.",
            "Who am I speaking with? Your name and employee ID, please.",
        ),
    )

    PLAYBOOKS: Dict[FraudType, Playbook] = {
        FraudType.CREDENTIAL_THEFT: Playbook(
            targets=(EntityType.ORGANIZATION, EntityType.NAME, EntityType.PHONE, EntityType.URL),
            openers=(
                "I got some message with numbers, but I am not sure which one you mean.",
                "My bank always says never to share the code, that is why I am asking.",
                "Okay, I have the message open on my phone.",
                "Let me check my SMS, one second.",
            ),
        ),
        FraudType.KYC_VERIFICATION: Playbook(
            targets=(EntityType.ORGANIZATION, EntityType.NAME, EntityType.URL, EntityType.PHONE),
            openers=(
                "I did my KYC at the branch only last year, why again?",
                "I have my PAN card right here, but I am confused what to update.",
                "Okay, I want to finish this KYC thing quickly.",
            ),
        ),
        FraudType.LOTTERY: Playbook(
            targets=(EntityType.NAME, EntityType.PAYMENT_HANDLE, EntityType.BANK_ACCOUNT, EntityType.PHONE),
            openers=(
                "Really? I never win anything!",
                "Wow, this is such big news for me.",
                "Okay, I am ready to pay the fee, I just want the details right.",
                "Let me think, this is a lot of money for me.",
            ),
        ),
        FraudType.THREAT: Playbook(
            targets=(EntityType.NAME, EntityType.ORGANIZATION, EntityType.PHONE, EntityType.URL),
            openers=(
                "Oh no, please don't block it, my salary comes into that account.",
                "I am getting very worried now.",
                "Okay okay, I will do whatever is needed.",
            ),
        ),
        FraudType.BANK_FRAUD: Playbook(
            targets=(EntityType.BANK_ACCOUNT, EntityType.ROUTING_CODE, EntityType.PAYMENT_HANDLE, EntityType.NAME),
            openers=(
                "I can do the transfer from my {bank} app.",
                "Okay, I want to sort this out today itself.",
                "Fine, I will send it, just guide me step by step.",
            ),
        ),
        FraudType.JOB: Playbook(
            targets=(EntityType.ORGANIZATION, EntityType.URL, EntityType.PAYMENT_HANDLE, EntityType.PHONE),
            openers=(
                "Work from home sounds perfect for me, teaching pays so little.",
                "I am very interested! How much can I earn in a month?",
            ),
        ),
        FraudType.LOAN: Playbook(
            targets=(EntityType.ORGANIZATION, EntityType.URL, EntityType.BANK_ACCOUNT, EntityType.PHONE),
            openers=(
                "I actually do need a loan for my sister's wedding.",
                "Low interest? That would really help me.",
            ),
        ),
        FraudType.ROMANCE: Playbook(
            targets=(EntityType.NAME, EntityType.PHONE, EntityType.PAYMENT_HANDLE, EntityType.URL),
            openers=(
                "That is very sweet of you to say.",
                "You are making me blush, haha.",
            ),
        ),
        FraudType.PHISHING: Playbook(
            targets=(EntityType.URL, EntityType.NAME, EntityType.PHONE, EntityType.ORGANIZATION),
            openers=(
                "The link is not opening on my phone.",
                "Okay, I want to do this, but the page shows some error.",
            ),
        ),
    }

    # Authority and urgency schemes play out like threats
    PLAYBOOKS[FraudType.IMPERSONATION] = PLAYBOOKS[FraudType.THREAT]
    PLAYBOOKS[FraudType.URGENCY] = PLAYBOOKS[FraudType.THREAT]

    ECHOES: Dict[EntityType, str] = {
        EntityType.PAYMENT_HANDLE: "So it is {value}, right?",
        EntityType.PHONE: "Okay, {value}, noted.",
        EntityType.BANK_ACCOUNT: "Account {value}, I wrote it down.",
    }

    FILLERS: Dict[Mood, List[str]] = {
        Mood.NEUTRAL: ["Umm, ", "Okay so, "],
        Mood.HAPPY: ["Haha, ", "Oh nice, "],
        Mood.CONFUSED: ["Wait, ", "Sorry, "],
        Mood.WORRIED: ["Oh god, ", "Arey, "],
        Mood.SUSPICIOUS: ["Hmm, ", "Acha, "],
        Mood.ANNOYED: ["Ugh, ", "Listen, "],
    }

    TAGS = [" na?", ", okay?", ", haan?"]
    CAUTIOUS_TAGS = [", I just want to be careful.", ", please understand."]

    REPEAT_PREFIXES = ["Sorry, again: ", "Like I said, ", "Just to be clear, "]
    REPEAT_SUFFIXES = [" Please reply.", " I am waiting.", " Hello?"]

    def __init__(self, config: Optional[StrategyConfig] = None, rng: Optional[random.Random] = None,
                 persona: Persona = PERSONA) -> None:
        self.config = config or StrategyConfig()
        self.rng = rng or random.Random()
        self.persona = persona

    def new_persona_state(self) -> PersonaState:
        return PersonaState(mood=Mood.NEUTRAL, trust=self.config.initial_trust)

    # =========================================================================
    # (a) TONE
    # =========================================================================

    def analyze_tone(self, text: str) -> ToneAnalysis:
        """Pure text analysis of the incoming message."""
        if not text:
            return ToneAnalysis()

        tone = Tone.NEUTRAL
        for candidate, regex in self.TONE_PATTERNS:
            if regex.search(text):
                tone = candidate
                break

        cues = frozenset(cue for cue, regex in self.CUE_PATTERNS.items() if regex.search(text))
        pressure = min(1.0, sum(w for regex, w in self.PRESSURE_WEIGHTS if regex.search(text)))

        return ToneAnalysis(
            tone=tone,
            cues=cues,
            pressure=round(pressure, 4),
            is_question=bool(self.QUESTION_RE.search(text)),
            is_greeting=bool(self.GREETING_RE.search(text)),
            is_goodbye=bool(self.GOODBYE_RE.search(text)),
        )

    # =========================================================================
    # (b) MOOD / TRUST
    # =========================================================================

    def update_persona(self, state: PersonaState, classification: ClassificationResult,
                       tone: ToneAnalysis) -> PersonaState:
        cfg = self.config
        if classification.is_scam and classification.confidence > cfg.scam_mood_confidence:
            if Cue.FEAR in tone.cues:
                state.mood = Mood.WORRIED
            elif Cue.URGENCY in tone.cues:
                state.mood = Mood.CONFUSED
            else:
                state.mood = Mood.SUSPICIOUS
            state.trust = max(0.0, state.trust - cfg.trust_decrement)
        elif not classification.is_scam:
            state.mood = Mood.HAPPY if tone.is_greeting or tone.tone is Tone.GRATEFUL else Mood.NEUTRAL
            state.trust = min(1.0, state.trust + cfg.trust_increment)

        if tone.tone is Tone.AGGRESSIVE:
            state.mood = Mood.ANNOYED
        state.trust = round(state.trust, 4)
        return state

    # =========================================================================
    # (c) SELECTION
    # =========================================================================

    def respond(self, session, text: str, classification: ClassificationResult,
                extraction: ExtractionResult, phase: Phase) -> Reply:
        """Pick, shape and de-duplicate the next reply. Mutates session persona and recent replies."""
        tone = self.analyze_tone(text)
        self.update_persona(session.persona, classification, tone)

        reply = self._select(session, text, tone, classification, extraction, phase)
        styled = self._stylize(reply.text, session.persona)
        final = self._avoid_repeat(styled, session.recent_replies)
        session.recent_replies.append(final)

        logger.info(
            f"[{session.session_id[:8]}] STRATEGY branch={reply.branch.value} "
            f"target={reply.target.value if reply.target else '-'} mood={session.persona.mood.value} "
            f"trust={session.persona.trust:.2f}"
        )
        return Reply(final, reply.branch, reply.target)

    def farewell_text(self) -> str:
        return self._pick(self.CLOSING)

    def closing_reply(self, session) -> Reply:
        text = self._avoid_repeat(self.farewell_text(), session.recent_replies)
        session.recent_replies.append(text)
        return Reply(text, Branch.CLOSING)

    def is_stalling(self, text: str) -> bool:
        return any(regex.search(text) for regex in self.STALLING_PATTERNS)

    def _select(self, session, text, tone, classification, extraction, phase) -> Reply:
        cfg = self.config
        engaged = classification.is_scam or (
            session.scam_detected and classification.confidence >= cfg.engage_confidence
        )

        if tone.is_greeting and session.turn_count <= 1:
            return Reply(self._pick(self.GREETINGS), Branch.GREETING)

        if tone.is_goodbye:
            if session.scam_detected:
                playbook = self._playbook(session, classification)
                target = self._missing_target(session, playbook.targets)
                if target is not None:
                    ask = self._ask(playbook, target)
                    return Reply(f"Wait, before you go! {ask}", Branch.FAREWELL, target)
            return Reply(self._pick(self.FAREWELLS), Branch.FAREWELL)

        # A flagged counterpart never gets stranger small talk, even on a quiet message
        if not engaged and not session.scam_detected and classification.confidence < cfg.small_talk_ceiling:
            return Reply(self._small_talk(text), Branch.SMALL_TALK)

        if engaged:
            return self._fraud_reply(session, classification, extraction, phase)

        if re.search(r"[A-Za-z]", text):
            return Reply(self._pick(self.AMBIGUOUS), Branch.AMBIGUOUS)

        return Reply(self._pick(self.UNIVERSAL), Branch.UNIVERSAL)

    def _small_talk(self, text: str) -> str:
        for topic, regex in self.LEGIT_TOPICS:
            if regex.search(text):
                return self._pick(self.SMALL_TALK[topic])
        return self._pick(self.SMALL_TALK["default"])

    def _fraud_reply(self, session, classification, extraction, phase) -> Reply:
        playbook = self._playbook(session, classification)
        target = self._missing_target(session, playbook.targets)

        parts = [self._echo(extraction)]
        if phase is Phase.SUSPICIOUS:
            parts.append(self._pick(self.RECOVERY))
        else:
            parts.append(self._pick(list(playbook.openers)))

        if target is not None:
            parts.append(self._ask(playbook, target))
        else:
            parts.append(self._pick(self.KEEP_ALIVE))

        return Reply(" ".join(p for p in parts if p), Branch.FRAUD, target)

    def _playbook(self, session, classification) -> Playbook:
        fraud_type = classification.fraud_type or getattr(session, "fraud_type", None)
        return self.PLAYBOOKS.get(fraud_type, self.GENERIC_PLAYBOOK)

    def _ask(self, playbook: Playbook, target: EntityType) -> str:
        if target is EntityType.NAME and playbook.identity_asks:
            return self._pick(playbook.identity_asks)
        return self._pick(self.ASKS[target])

    @staticmethod
    def _missing_target(session, targets: Sequence[EntityType]) -> Optional[EntityType]:
        for target in targets:
            if not session.intelligence.has(target):
                return target
        return None

    def _echo(self, extraction: ExtractionResult) -> str:
        for entity_type, template in self.ECHOES.items():
            items = extraction.of_type(entity_type)
            if items:
                return template.format(value=items[0].value)
        return ""

    # =========================================================================
    # STYLE
    # =========================================================================

    def _pick(self, pool: Sequence[str]) -> str:
        return self.rng.choice(pool).format(
            name=self.persona.name, city=self.persona.city, bank=self.persona.bank,
        )

    def _stylize(self, text: str, state: PersonaState) -> str:
        cfg = self.config
        if self.rng.random() < cfg.filler_probability:
            filler = self.rng.choice(self.FILLERS[state.mood])
            head = text[:1] if text[:2] in ("I ", "I'") else text[:1].lower()
            text = filler + head + text[1:]

        if self.rng.random() < cfg.tag_probability and text.endswith("."):
            pool = self.CAUTIOUS_TAGS if state.trust < cfg.low_trust else self.TAGS
            text = text[:-1] + self.rng.choice(pool)
        return text

    def _avoid_repeat(self, text: str, recent: Sequence[str]) -> str:
        if text not in recent:
            return text
        prefixes = list(self.REPEAT_PREFIXES)
        suffixes = list(self.REPEAT_SUFFIXES)
        self.rng.shuffle(prefixes)
        self.rng.shuffle(suffixes)
        candidates = [p + text for p in prefixes] + [text + s for s in suffixes]
        candidates += [p + text + s for p in prefixes for s in suffixes]
        for candidate in candidates:
            if candidate not in recent:
                return candidate
        return text
