"""Error types shared by the crash and momentum engines."""

from typing import Optional


class SignalError(Exception):
    """Base class for all signal pipeline errors"""


class DataAlignmentError(SignalError, ValueError):
    """Input series cannot be aligned or are too short to use"""


class ConfigurationError(SignalError, ValueError):
    """Invalid lookback, thresholds or symbol list"""


class InsufficientHistoryError(SignalError):
    """Window is shorter than the configured lookback"""

    def __init__(self, available: int, required: int):
        self.available = available
        self.required = required
        super().__init__(f"Insufficient history: {available} < {required}")


class FitFailure(SignalError, RuntimeError):
    """A single model fit did not produce a usable estimate"""

    def __init__(self, model: str, reason: str, context: Optional[str] = None):
        self.model = model
        self.reason = reason
        self.context = context
        message = f"{model} fit failed: {reason}"
        if context:
            message = f"{message} ({context})"
        super().__init__(message)
