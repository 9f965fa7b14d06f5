"""Error classification for intelligent recovery."""

import asyncio
import re
from typing import Optional

from rebound.models.recovery import (
    ErrorCategory,
    ErrorClassification,
    ErrorSeverity,
    RecoveryStrategy,
)


class ErrorClassifier:
    """Classify errors to determine recovery strategy."""

    # Network error patterns
    NETWORK_PATTERNS = [
        r"network",
        r"failed to fetch",
        r"connection",
        r"timeout",
        r"timed out",
        r"offline",
        r"unable to connect",
        r"could not resolve host",
    ]

    # Rate limit patterns
    RATE_LIMIT_PATTERNS = [
        r"rate limit",
        r"too many requests",
        r"\b429\b",
    ]

    # Authentication patterns
    AUTH_PATTERNS = [
        r"unauthorized",
        r"unauthenticated",
        r"forbidden",
        r"\b401\b",
        r"\b403\b",
    ]

    # Validation patterns
    VALIDATION_PATTERNS = [
        r"validation",
        r"invalid",
        r"\b400\b",
    ]

    # Server error patterns
    SERVER_PATTERNS = [
        r"\b50[0234]\b",
        r"server error",
    ]

    # Exception type name patterns
    NETWORK_TYPE_PATTERNS = [
        r"network",
        r"fetch",
    ]

    # Builtin exception types that always mean a transport problem
    NETWORK_TYPES = (ConnectionError, TimeoutError, asyncio.TimeoutError)

    _CLASSIFICATIONS = {
        ErrorCategory.NETWORK: dict(
            severity=ErrorSeverity.WARNING,
            recoverable=True,
            strategy=RecoveryStrategy.RETRY,
            is_network_error=True,
            suggested_retry_delay=2.0,
        ),
        ErrorCategory.RATE_LIMITED: dict(
            severity=ErrorSeverity.WARNING,
            recoverable=True,
            strategy=RecoveryStrategy.RETRY,
            is_rate_limited=True,
            suggested_retry_delay=60.0,
        ),
        ErrorCategory.AUTH: dict(
            severity=ErrorSeverity.ERROR,
            recoverable=False,
            strategy=RecoveryStrategy.REDIRECT,
            is_auth_error=True,
            suggested_retry_delay=0.0,
        ),
        ErrorCategory.VALIDATION: dict(
            severity=ErrorSeverity.WARNING,
            recoverable=False,
            strategy=RecoveryStrategy.MANUAL,
            is_validation_error=True,
            suggested_retry_delay=0.0,
        ),
        ErrorCategory.SERVER: dict(
            severity=ErrorSeverity.ERROR,
            recoverable=True,
            strategy=RecoveryStrategy.RETRY,
            suggested_retry_delay=5.0,
        ),
        ErrorCategory.UNKNOWN: dict(
            severity=ErrorSeverity.ERROR,
            recoverable=False,
            strategy=RecoveryStrategy.FALLBACK,
            suggested_retry_delay=3.0,
        ),
    }

    _MESSAGES = {
        ErrorCategory.NETWORK: (
            "Connection issue detected",
            "Please check your internet connection. We'll retry automatically.",
        ),
        ErrorCategory.RATE_LIMITED: (
            "Too many requests",
            "Please wait a moment. The system will retry automatically.",
        ),
        ErrorCategory.AUTH: (
            "Session expired",
            "Please sign in again to continue.",
        ),
        ErrorCategory.VALIDATION: (
            "Invalid input",
            "Please check your input and try again.",
        ),
    }

    _DEFAULT_MESSAGE = (
        "Something went wrong",
        "We're working on it. Please try again shortly.",
    )

    @classmethod
    def categorize(cls, error_message: str, error_type: Optional[type] = None) -> ErrorCategory:
        """Map an error message and optional type to a category.

        Args:
            error_message: Error message text
            error_type: Optional exception type

        Returns:
            ErrorCategory, first match wins
        """
        message = (error_message or "").lower()
        type_name = error_type.__name__.lower() if error_type else ""

        if error_type and issubclass(error_type, cls.NETWORK_TYPES):
            return ErrorCategory.NETWORK
        if cls._matches_patterns(type_name, cls.NETWORK_TYPE_PATTERNS) or cls._matches_patterns(
            message, cls.NETWORK_PATTERNS
        ):
            return ErrorCategory.NETWORK

        if cls._matches_patterns(message, cls.RATE_LIMIT_PATTERNS):
            return ErrorCategory.RATE_LIMITED

        if cls._matches_patterns(message, cls.AUTH_PATTERNS):
            return ErrorCategory.AUTH

        if cls._matches_patterns(message, cls.VALIDATION_PATTERNS):
            return ErrorCategory.VALIDATION

        if cls._matches_patterns(message, cls.SERVER_PATTERNS):
            return ErrorCategory.SERVER

        return ErrorCategory.UNKNOWN

    @classmethod
    def classify(cls, error: BaseException) -> ErrorClassification:
        """Classify an exception.

        Args:
            error: Exception to classify

        Returns:
            ErrorClassification with the recommended policy
        """
        category = cls.categorize(str(error), type(error))
        return cls.classification_for(category)

    @classmethod
    def classification_for(cls, category: ErrorCategory) -> ErrorClassification:
        """Build the policy record for a category."""
        return ErrorClassification(category=category, **cls._CLASSIFICATIONS[category])

    @classmethod
    def _matches_patterns(cls, text: str, patterns: list[str]) -> bool:
        """Check if text matches any of the given patterns.

        Args:
            text: Text to check
            patterns: List of regex patterns

        Returns:
            True if any pattern matches
        """
        if not text:
            return False
        for pattern in patterns:
            if re.search(pattern, text, re.IGNORECASE):
                return True
        return False

    @classmethod
    def is_retryable(cls, error: BaseException) -> bool:
        """Determine if an error should be retried."""
        return cls.classify(error).recoverable


def get_user_friendly_message(classification: ErrorClassification) -> tuple[str, str]:
    """Get a user-facing ``(message, suggestion)`` pair for a classification.

    The flags are checked rather than the category so that classifications
    produced by a custom classifier are described consistently.
    """
    flags = [
        (classification.is_network_error, ErrorCategory.NETWORK),
        (classification.is_rate_limited, ErrorCategory.RATE_LIMITED),
        (classification.is_auth_error, ErrorCategory.AUTH),
        (classification.is_validation_error, ErrorCategory.VALIDATION),
    ]
    for flag, category in flags:
        if flag:
            return ErrorClassifier._MESSAGES[category]
    return ErrorClassifier._DEFAULT_MESSAGE
