"""Wire shapes: the POST /honeypot exchange and the closing session report."""

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Lenient(BaseModel):
    # Unknown keys from the caller are dropped, never rejected
    model_config = ConfigDict(extra="ignore")


class Message(_Lenient):
    sender: Optional[str] = "scammer"
    text: str
    timestamp: Optional[Union[str, int, float]] = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _epoch_to_str(cls, value):
        """Numeric epochs (seconds or millis) become strings; the pipeline parses both."""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(int(value))
        return value


class Metadata(_Lenient):
    channel: Optional[str] = None
    language: Optional[str] = None
    locale: Optional[str] = None


class HoneypotRequest(_Lenient):
    sessionId: str
    message: Message
    conversationHistory: List[Message] = Field(default_factory=list)
    metadata: Optional[Metadata] = None


class HoneypotResponse(BaseModel):
    status: str
    reply: str


# ==================== Closing report ====================

class ExtractedIntelligence(BaseModel):
    """Report groups; payment handles and deep links both land in ``upiIds``."""
    bankAccounts: List[str] = Field(default_factory=list)
    upiIds: List[str] = Field(default_factory=list)
    phishingLinks: List[str] = Field(default_factory=list)
    phoneNumbers: List[str] = Field(default_factory=list)
    suspiciousKeywords: List[str] = Field(default_factory=list)


class FinalOutput(BaseModel):
    sessionId: str
    scamDetected: bool = False
    scamType: str = "unknown"
    confidenceLevel: float = Field(default=0.0, ge=0.0, le=1.0)
    totalMessagesExchanged: int = Field(default=0, ge=0)
    extractedIntelligence: ExtractedIntelligence = Field(default_factory=ExtractedIntelligence)
    agentNotes: str = ""
