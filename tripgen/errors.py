"""Error taxonomy for trip generation and the user-facing messages mapped to it."""
from typing import List, NamedTuple, Optional

import httpx


class TripGenError(Exception):
    """Base class for all trip generation errors."""


class ModelCallError(TripGenError):
    """A single Gemini model call failed."""

    def __init__(self, model: str, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.model = model
        self.status_code = status_code
        self.body = body


class ModelExhaustedError(TripGenError):
    """Every candidate model failed or returned degenerate output."""

    def __init__(self, attempts: List[str], last_error: Optional[BaseException]):
        if last_error is not None:
            reason = str(last_error)
        else:
            reason = "unknown failure" if attempts else "no candidate models configured"
        super().__init__(f"All Gemini models failed ({', '.join(attempts) or 'none'}): {reason}")
        self.attempts = attempts
        self.last_error = last_error


class MalformedResponseError(TripGenError):
    """Model output could not be turned into valid JSON, even after repair."""

    def __init__(self, message: str, head: str = "", tail: str = ""):
        detail = message
        if head or tail:
            detail = f"{message} | start: {head!r} | end: {tail!r}"
        super().__init__(detail)
        self.head = head
        self.tail = tail


class ItineraryValidationError(MalformedResponseError):
    """Parsed JSON does not match the itinerary schema."""


class EnrichmentLookupError(TripGenError):
    """A single photo lookup failed. Never escapes the enrichment fan-out."""


class StoreWriteError(TripGenError):
    """A document store write failed."""


class TripNotFoundError(TripGenError):
    """No trip document exists for the given id."""


class FailureMessage(NamedTuple):
    category: str
    message: str


FAILURE_MESSAGES = {
    "quota": "API quota exceeded. Please try again later or contact support for a new API key.",
    "auth": "Invalid API key. Please check your Gemini API configuration.",
    "network": "Failed to generate trip. Please check your internet connection and try again.",
    "malformed": "Received invalid response from AI. Please try again.",
    "unavailable": "The AI model is temporarily unavailable. Please try again in a few minutes.",
    "unknown": "Failed to generate trip. Please try again.",
}


def _root_cause(exc: BaseException) -> BaseException:
    while isinstance(exc, ModelExhaustedError) and exc.last_error is not None:
        exc = exc.last_error
    return exc


def describe_failure(exc: BaseException) -> FailureMessage:
    """Map a phase-1 failure to a category and its guidance text."""
    cause = _root_cause(exc)

    if isinstance(cause, MalformedResponseError):
        category = "malformed"
    elif isinstance(cause, ModelCallError):
        text = f"{cause} {cause.body}".lower()
        if cause.status_code == 429 or "quota" in text or "resource_exhausted" in text:
            category = "quota"
        elif cause.status_code in (401, 403) or "api key" in text or "api_key" in text:
            category = "auth"
        elif cause.status_code == 404 or (cause.status_code or 0) >= 500:
            category = "unavailable"
        else:
            category = "unknown"
    elif isinstance(cause, (httpx.TransportError, TimeoutError, ConnectionError)):
        category = "network"
    else:
        category = "unknown"

    return FailureMessage(category, FAILURE_MESSAGES[category])
