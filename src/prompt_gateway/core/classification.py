"""
Error classification shared by all provider adapters.

Adapters declare substring rules for their vendor-specific error codes.
Anything those rules do not match falls through to the generic matcher
below, which looks at the exception type, the HTTP status and finally
status-like substrings in the message.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .errors import ErrorKind, GatewayError, GatewayRequestError


@dataclass(frozen=True)
class ErrorRule:
    """Maps a vendor error substring to an error kind and a user message."""
    pattern: str
    kind: ErrorKind
    message: str
    case_sensitive: bool = True

    def matches(self, text: str) -> bool:
        if self.case_sensitive:
            return self.pattern in text
        return self.pattern.lower() in text.lower()


GENERIC_MESSAGES = {
    ErrorKind.AUTHENTICATION: "Invalid API key",
    ErrorKind.AUTHORIZATION: "Access denied - check the API key permissions",
    ErrorKind.RATE_LIMIT: "Rate limit exceeded - try again later",
    ErrorKind.TIMEOUT: "Request timed out - check your internet connection",
    ErrorKind.NETWORK: "Network error - check your internet connection",
    ErrorKind.BILLING: "Insufficient balance on the provider account",
    ErrorKind.MODEL_UNAVAILABLE: "The requested model is not available",
}

STATUS_KINDS = {
    401: ErrorKind.AUTHENTICATION,
    402: ErrorKind.BILLING,
    403: ErrorKind.AUTHORIZATION,
    404: ErrorKind.MODEL_UNAVAILABLE,
    408: ErrorKind.TIMEOUT,
    429: ErrorKind.RATE_LIMIT,
}

# Order matters: "401" must win over the looser network keywords.
SUBSTRING_KINDS: Tuple[Tuple[str, ErrorKind], ...] = (
    ("401", ErrorKind.AUTHENTICATION),
    ("403", ErrorKind.AUTHORIZATION),
    ("429", ErrorKind.RATE_LIMIT),
    ("timeout", ErrorKind.TIMEOUT),
    ("timed out", ErrorKind.TIMEOUT),
    ("network", ErrorKind.NETWORK),
    ("connect", ErrorKind.NETWORK),
    ("fetch", ErrorKind.NETWORK),
)


def classify_generic(error: GatewayError) -> Tuple[ErrorKind, str]:
    """
    Classify an error without any vendor knowledge.

    Returns:
        Tuple of (error kind, message suitable for the UI)
    """
    if error.kind is ErrorKind.VALIDATION:
        return error.kind, error.message

    if error.kind is not ErrorKind.UNKNOWN:
        return error.kind, GENERIC_MESSAGES.get(error.kind, error.message)

    status = error.status_code if isinstance(error, GatewayRequestError) else None
    if status in STATUS_KINDS:
        kind = STATUS_KINDS[status]
        return kind, GENERIC_MESSAGES[kind]

    text = error.message.lower()
    for needle, kind in SUBSTRING_KINDS:
        if needle in text:
            return kind, GENERIC_MESSAGES[kind]

    return ErrorKind.UNKNOWN, error.message or "Unknown API error"


def classify_error(
    error: GatewayError,
    rules: Optional[Sequence[ErrorRule]] = None,
) -> Tuple[ErrorKind, str]:
    """
    Classify an error using provider rules first, then the generic matcher.

    Args:
        error: Error raised while talking to a provider
        rules: Provider-specific substring rules

    Returns:
        Tuple of (error kind, message suitable for the UI)
    """
    # Locally detected problems never reached the vendor.
    if error.kind is ErrorKind.VALIDATION:
        return error.kind, error.message

    for rule in rules or ():
        if rule.matches(error.message):
            return rule.kind, rule.message

    return classify_generic(error)
