import httpx
import pytest

from tripgen.errors import (
    FAILURE_MESSAGES,
    ItineraryValidationError,
    MalformedResponseError,
    ModelCallError,
    ModelExhaustedError,
    describe_failure,
)


def exhausted(error):
    return ModelExhaustedError(["gemini-2.5-flash-lite", "gemini-2.5-flash", "gemini-2.5-pro"], error)


@pytest.mark.parametrize(
    "error, category",
    [
        (ModelCallError("m", "API Error: 429", status_code=429), "quota"),
        (ModelCallError("m", "API Error: 400", status_code=400, body="RESOURCE_EXHAUSTED quota"), "quota"),
        (ModelCallError("m", "API Error: 403", status_code=403), "auth"),
        (ModelCallError("m", "Gemini API key not found. Please set GEMINI_API_KEY"), "auth"),
        (ModelCallError("m", "API Error: 503", status_code=503), "unavailable"),
        (ModelCallError("m", "API Error: 404", status_code=404), "unavailable"),
        (httpx.ConnectError("connection refused"), "network"),
        (TimeoutError(), "network"),
        (MalformedResponseError("JSON parsing failed"), "malformed"),
        (ItineraryValidationError("Skeleton itinerary is missing day3"), "malformed"),
        (ValueError("something else"), "unknown"),
    ],
)
def test_failures_are_categorized_through_exhaustion(error, category):
    failure = describe_failure(exhausted(error))
    assert failure.category == category
    assert failure.message == FAILURE_MESSAGES[category]


def test_direct_errors_are_categorized():
    assert describe_failure(MalformedResponseError("bad")).category == "malformed"


def test_exhaustion_without_cause_is_unknown():
    error = ModelExhaustedError([], None)
    assert "no candidate models configured" in str(error)
    assert describe_failure(error).category == "unknown"


def test_malformed_error_carries_snippets():
    error = MalformedResponseError("JSON parsing failed", head="Sure!", tail="...")
    assert error.head == "Sure!"
    assert "Sure!" in str(error)


def test_messages_are_distinct():
    assert len(set(FAILURE_MESSAGES.values())) == len(FAILURE_MESSAGES)
