"""Exceptions raised across the pipeline boundary.

Only invalid invocation propagates to the caller. Low confidence, empty
extraction and blocked replies are normal outcomes, not exceptions.
"""


class HoneypotError(Exception):
    """Base class for pipeline errors."""


class InputError(HoneypotError):
    """Session id or message text missing or malformed."""


class TurnFailure(HoneypotError):
    """An internal fault aborted the turn; session state was left unchanged."""


class ReportDeliveryFailure(HoneypotError):
    """Terminal report could not be delivered after all retries."""
