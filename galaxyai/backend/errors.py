"""Provider error taxonomy and user-facing error analysis.

Every backend failure is classified into a ``ProviderErrorKind``.  Each
kind has one stable, non-technical message for users; the raw technical
text is kept on the exception for logs.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

logger = logging.getLogger("galaxyai.errors")


class ProviderErrorKind(str, Enum):
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


USER_MESSAGES = {
    ProviderErrorKind.CONFIGURATION_ERROR:
        "AI provider is not properly configured. Please check your settings.",
    ProviderErrorKind.NETWORK_ERROR:
        "Network connection failed. Please check your internet connection.",
    ProviderErrorKind.AUTHENTICATION_ERROR:
        "Authentication failed. Please check your API key or credentials.",
    ProviderErrorKind.RATE_LIMIT_ERROR:
        "Rate limit exceeded. Please wait before trying again.",
    ProviderErrorKind.INVALID_RESPONSE:
        "AI provider returned an invalid response. Please try again.",
    ProviderErrorKind.SERVICE_UNAVAILABLE:
        "AI service is currently unavailable. Please try again later.",
    ProviderErrorKind.TIMEOUT_ERROR:
        "Request timed out. Please try again.",
    ProviderErrorKind.UNKNOWN_ERROR:
        "An unknown error occurred. Please try again or contact support.",
}

RECOVERY_SUGGESTIONS = {
    ProviderErrorKind.CONFIGURATION_ERROR: [
        "Check your AI provider settings in the Settings menu",
        "Ensure your API key is correctly entered",
        "Verify the server URL is correct (for Ollama)",
    ],
    ProviderErrorKind.NETWORK_ERROR: [
        "Check your internet connection",
        "Verify firewall settings allow the connection",
        "Make sure the Ollama server is running (for local models)",
    ],
    ProviderErrorKind.AUTHENTICATION_ERROR: [
        "Verify your API key is valid and has not expired",
        "Check that your account has access to the selected model",
        "Generate a new API key if the problem persists",
    ],
    ProviderErrorKind.RATE_LIMIT_ERROR: [
        "Wait a minute before sending another command",
        "Switch to a different AI provider",
        "Check your plan's usage limits",
    ],
    ProviderErrorKind.INVALID_RESPONSE: [
        "Try rephrasing your command",
        "Use simpler, more specific commands",
        "Try a different AI model",
    ],
    ProviderErrorKind.SERVICE_UNAVAILABLE: [
        "Try again in a few minutes",
        "Switch to a different AI provider",
        "Enable fallback providers in the settings",
    ],
    ProviderErrorKind.TIMEOUT_ERROR: [
        "Try again with a shorter command",
        "Check your internet connection speed",
        "Increase the request timeout in the settings",
    ],
    ProviderErrorKind.UNKNOWN_ERROR: [
        "Try the command again",
        "Restart the application if the problem persists",
        "Check the log file for details",
    ],
}


class ProviderError(Exception):
    """Classified failure raised by a provider or the orchestrator.

    Args:
        kind: Error classification.
        message: Technical description, for logs.
        provider: Name of the provider that failed, if any.
    """

    def __init__(self, kind: ProviderErrorKind, message: str, provider: Optional[str] = None) -> None:
        super().__init__(message)
        self.kind = ProviderErrorKind(kind)
        self.message = message
        self.provider = provider

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.kind]

    def __str__(self) -> str:
        prefix = f"[{self.provider}] " if self.provider else ""
        return f"{prefix}{self.kind.value}: {self.message}"

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.user_message,
            "detail": self.message,
            "provider": self.provider,
        }


# ── Classification helpers ──────────────────────────────────

_STATUS_KINDS = {
    400: ProviderErrorKind.CONFIGURATION_ERROR,
    401: ProviderErrorKind.AUTHENTICATION_ERROR,
    403: ProviderErrorKind.AUTHENTICATION_ERROR,
    404: ProviderErrorKind.CONFIGURATION_ERROR,
    408: ProviderErrorKind.TIMEOUT_ERROR,
    429: ProviderErrorKind.RATE_LIMIT_ERROR,
    500: ProviderErrorKind.SERVICE_UNAVAILABLE,
    502: ProviderErrorKind.SERVICE_UNAVAILABLE,
    503: ProviderErrorKind.SERVICE_UNAVAILABLE,
    529: ProviderErrorKind.SERVICE_UNAVAILABLE,
}

_MESSAGE_PATTERNS = [
    (re.compile(r"(?i)authenticat|permission|unauthori[sz]ed|invalid.{0,10}api.?key"),
     ProviderErrorKind.AUTHENTICATION_ERROR),
    (re.compile(r"(?i)rate.?limit|too many requests|quota"), ProviderErrorKind.RATE_LIMIT_ERROR),
    (re.compile(r"(?i)timed?.?out|timeout"), ProviderErrorKind.TIMEOUT_ERROR),
    (re.compile(r"(?i)overloaded|unavailable|api_error"), ProviderErrorKind.SERVICE_UNAVAILABLE),
    (re.compile(r"(?i)invalid_request|not configured"), ProviderErrorKind.CONFIGURATION_ERROR),
    (re.compile(r"(?i)connect(?:ion)?\s*(?:refused|reset|error|failed)|name resolution|unreachable"),
     ProviderErrorKind.NETWORK_ERROR),
]


def kind_for_status(status_code: int) -> ProviderErrorKind:
    """Map an HTTP status code to an error kind (unknown codes count as network errors)."""
    return _STATUS_KINDS.get(status_code, ProviderErrorKind.NETWORK_ERROR)


def classify_message(text: str) -> ProviderErrorKind:
    """Best-effort classification of free-form error text."""
    for pattern, kind in _MESSAGE_PATTERNS:
        if pattern.search(text or ""):
            return kind
    return ProviderErrorKind.UNKNOWN_ERROR


def as_provider_error(exc: BaseException, provider: Optional[str] = None) -> ProviderError:
    """Return *exc* if already classified, else wrap it as UNKNOWN_ERROR."""
    if isinstance(exc, ProviderError):
        return exc
    wrapped = ProviderError(
        ProviderErrorKind.UNKNOWN_ERROR, f"{type(exc).__name__}: {exc}", provider
    )
    wrapped.__cause__ = exc
    return wrapped


# ── Analysis ────────────────────────────────────────────────

@dataclass
class ErrorAnalysis:
    kind: ProviderErrorKind
    user_message: str
    detail: str
    suggestions: list[str] = field(default_factory=list)
    retryable: bool = False

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.user_message,
            "detail": self.detail,
            "suggestions": list(self.suggestions),
            "retryable": self.retryable,
        }


_RETRYABLE = {
    ProviderErrorKind.NETWORK_ERROR,
    ProviderErrorKind.RATE_LIMIT_ERROR,
    ProviderErrorKind.SERVICE_UNAVAILABLE,
    ProviderErrorKind.TIMEOUT_ERROR,
    ProviderErrorKind.INVALID_RESPONSE,
}


def analyze(error: BaseException) -> ErrorAnalysis:
    """Turn an exception into a user-presentable analysis.

    Unclassified exceptions are classified from their message text.
    """
    if isinstance(error, ProviderError):
        kind, detail = error.kind, error.message
    else:
        detail = f"{type(error).__name__}: {error}"
        kind = classify_message(str(error))

    analysis = ErrorAnalysis(
        kind=kind,
        user_message=USER_MESSAGES[kind],
        detail=detail,
        suggestions=list(RECOVERY_SUGGESTIONS[kind]),
        retryable=kind in _RETRYABLE,
    )
    logger.info("Error analysis: %s; %s", kind.value, detail)
    return analysis


def command_suggestions(command: str) -> list[str]:
    """Return phrasing tips for a command that could not be processed."""
    lower = (command or "").lower()
    tips = []
    if "move" in lower:
        tips.append("Try: 'move the goomba 100 units up' or 'move coin1 to position 0, 200, 0'")
    if "rotate" in lower:
        tips.append("Try: 'rotate the platform 90 degrees'")
    if "scale" in lower or "size" in lower:
        tips.append("Try: 'scale the coin by 2x'")
    if "color" in lower or "colour" in lower:
        tips.append("Color changes are made through object properties: 'set the color of the block to red'")
    tips.append("Use 'the' before object names: 'move the goomba'")
    tips.append("Use 'all' for multiple objects: 'all coins'")
    return tips
