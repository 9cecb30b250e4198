"""Unit tests for error categorization, recovery strategies, and backoff."""

import pytest

from quiver.contexts.pipeline.errors import (
    AnalysisTimeout,
    AuthenticationError,
    ErrorCategory,
    FileFormatError,
    NetworkError,
    ParsingFailure,
    StageValidationError,
    backoff_delay,
    categorize_error,
    get_strategy,
)


@pytest.mark.unit
@pytest.mark.parametrize(
    "error, expected",
    [
        (ParsingFailure("empty"), ErrorCategory.PARSING_FAILURE),
        (AuthenticationError("denied"), ErrorCategory.AUTHENTICATION_ERROR),
        (FileFormatError("rtf"), ErrorCategory.FILE_FORMAT_ERROR),
        (NetworkError("scorer unreachable"), ErrorCategory.NETWORK_ERROR),
        (AnalysisTimeout("slow scorer"), ErrorCategory.ANALYSIS_TIMEOUT),
        (StageValidationError("bad input"), ErrorCategory.VALIDATION_ERROR),
        (TimeoutError("read"), ErrorCategory.ANALYSIS_TIMEOUT),
        (ConnectionError("reset"), ErrorCategory.NETWORK_ERROR),
    ],
)
def test_typed_errors_map_to_their_category(error, expected):
    assert categorize_error(error) is expected


@pytest.mark.unit
@pytest.mark.parametrize(
    "message, expected",
    [
        ("Invalid API key", ErrorCategory.AUTHENTICATION_ERROR),
        ("Unsupported file format: .rtf", ErrorCategory.FILE_FORMAT_ERROR),
        ("Failed to parse resume", ErrorCategory.PARSING_FAILURE),
        ("OCR produced no text", ErrorCategory.PARSING_FAILURE),
        ("Request timed out", ErrorCategory.ANALYSIS_TIMEOUT),
        ("Network unreachable", ErrorCategory.NETWORK_ERROR),
        ("Missing required field: email", ErrorCategory.VALIDATION_ERROR),
        ("Failed to parse: invalid file format", ErrorCategory.PARSING_FAILURE),
        ("Slow connection to scorer", ErrorCategory.ANALYSIS_TIMEOUT),
        ("Authentication service connection reset", ErrorCategory.NETWORK_ERROR),
        ("Invalid file upload", ErrorCategory.FILE_FORMAT_ERROR),
        ("boom", ErrorCategory.NETWORK_ERROR),
    ],
)
def test_untyped_errors_fall_back_to_keywords(message, expected):
    assert categorize_error(RuntimeError(message)) is expected


@pytest.mark.unit
def test_typed_category_wins_over_message():
    assert categorize_error(ParsingFailure("network hiccup")) is ErrorCategory.PARSING_FAILURE


@pytest.mark.unit
def test_every_category_has_a_strategy():
    for category in ErrorCategory:
        strategy = get_strategy(category)
        assert strategy.category is category
        assert strategy.fallback_options
        assert strategy.user_notification


@pytest.mark.unit
def test_strategy_retry_budgets():
    assert get_strategy(ErrorCategory.PARSING_FAILURE).retry_attempts == 3
    assert get_strategy(ErrorCategory.NETWORK_ERROR).retry_attempts == 3
    assert get_strategy(ErrorCategory.ANALYSIS_TIMEOUT).retry_attempts == 2
    assert get_strategy(ErrorCategory.AUTHENTICATION_ERROR).retry_attempts == 1
    assert get_strategy(ErrorCategory.VALIDATION_ERROR).fallback_options == (
        "user_correction",
        "skip_validation",
    )


@pytest.mark.unit
@pytest.mark.parametrize(
    "retry_count, expected",
    [(0, 1.0), (1, 1.0), (2, 2.0), (3, 4.0), (4, 8.0), (5, 10.0), (12, 10.0)],
)
def test_backoff_delay(retry_count, expected):
    assert backoff_delay(retry_count) == pytest.approx(expected)


@pytest.mark.unit
def test_stage_validation_error_carries_field_errors():
    error = StageValidationError("Invalid input", ["email is required"])
    assert error.errors == ["email is required"]
    assert str(error) == "Invalid input"
