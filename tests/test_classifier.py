"""Tests for error classification."""

import pytest

from rebound.errors import CircuitOpenError, ErrorClassifier, MutationTimeoutError, get_user_friendly_message
from rebound.models import ErrorCategory
from rebound.models.recovery import RecoveryStrategy


@pytest.mark.parametrize(
    "message, expected",
    [
        ("Failed to fetch", ErrorCategory.NETWORK),
        ("connection refused", ErrorCategory.NETWORK),
        ("request timeout", ErrorCategory.NETWORK),
        ("device is offline", ErrorCategory.NETWORK),
        ("429 Too Many Requests", ErrorCategory.RATE_LIMITED),
        ("Rate limit exceeded", ErrorCategory.RATE_LIMITED),
        ("401 Unauthorized", ErrorCategory.AUTH),
        ("403", ErrorCategory.AUTH),
        ("Forbidden", ErrorCategory.AUTH),
        ("400 Bad Request", ErrorCategory.VALIDATION),
        ("invalid email address", ErrorCategory.VALIDATION),
        ("502 Bad Gateway", ErrorCategory.SERVER),
        ("Internal Server Error", ErrorCategory.SERVER),
        ("Some random error", ErrorCategory.UNKNOWN),
    ],
)
def test_categorize(message, expected):
    assert ErrorClassifier.categorize(message) == expected


def test_network_types_win_regardless_of_message():
    assert ErrorClassifier.classify(ConnectionError("401")).category == ErrorCategory.NETWORK
    assert ErrorClassifier.classify(TimeoutError()).category == ErrorCategory.NETWORK


def test_type_name_is_matched():
    class NetworkError(Exception):
        pass

    assert ErrorClassifier.classify(NetworkError("boom")).is_network_error


def test_network_checked_before_validation():
    """First match wins: a slow malformed request is a network problem."""
    assert ErrorClassifier.categorize("400 after timeout") == ErrorCategory.NETWORK


def test_status_codes_match_whole_numbers():
    assert ErrorClassifier.categorize("waited 4000 ms") == ErrorCategory.UNKNOWN
    assert ErrorClassifier.categorize("order 15001 rejected") == ErrorCategory.UNKNOWN


def test_policy_per_category():
    network = ErrorClassifier.classify(ConnectionError("reset"))
    assert network.recoverable
    assert network.suggested_retry_delay == 2.0

    rate = ErrorClassifier.classify(Exception("too many requests"))
    assert rate.recoverable and rate.is_rate_limited
    assert rate.suggested_retry_delay == 60.0

    auth = ErrorClassifier.classify(Exception("401"))
    assert not auth.recoverable
    assert auth.strategy == RecoveryStrategy.REDIRECT

    validation = ErrorClassifier.classify(ValueError("invalid"))
    assert not validation.recoverable
    assert validation.strategy == RecoveryStrategy.MANUAL

    server = ErrorClassifier.classify(Exception("503 unavailable"))
    assert server.recoverable
    assert server.suggested_retry_delay == 5.0

    unknown = ErrorClassifier.classify(RuntimeError("boom"))
    assert not unknown.recoverable
    assert unknown.strategy == RecoveryStrategy.FALLBACK
    assert unknown.suggested_retry_delay == 3.0


def test_classification_is_deterministic():
    error = Exception("403 Forbidden")
    first = ErrorClassifier.classify(error)
    for _ in range(5):
        again = ErrorClassifier.classify(Exception("403 Forbidden"))
        assert again == first
        assert again.recoverable is False


def test_synthetic_errors():
    assert not ErrorClassifier.is_retryable(CircuitOpenError(3.0))
    assert ErrorClassifier.is_retryable(MutationTimeoutError(0.5))


def test_user_friendly_message():
    message, suggestion = get_user_friendly_message(ErrorClassifier.classify(Exception("unauthorized")))
    assert message == "Session expired"
    assert "sign in" in suggestion

    message, _ = get_user_friendly_message(ErrorClassifier.classify(Exception("500")))
    assert message == "Something went wrong"


def test_fetch_alone_is_not_a_network_error():
    assert ErrorClassifier.categorize("could not fetch: 401 unauthorized") == ErrorCategory.AUTH
    assert ErrorClassifier.categorize("fetch returned invalid payload") == ErrorCategory.VALIDATION


def test_fetch_type_name_is_network():
    class FetchError(Exception):
        pass

    assert ErrorClassifier.classify(FetchError("401")).category == ErrorCategory.NETWORK
