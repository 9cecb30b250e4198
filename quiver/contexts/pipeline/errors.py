"""
Error taxonomy and recovery strategies for pipeline stages.

Every stage failure is mapped to one ErrorCategory, and each category has a
RecoveryStrategy (retry budget, fallbacks, user notice). Ports raise the typed
PipelineError subclasses so categorization does not depend on message text;
untyped errors fall back to keyword matching on the message.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from quiver.utils.config import get_pipeline_config


class ErrorCategory(str, Enum):
    AUTHENTICATION_ERROR = "authentication_error"
    FILE_FORMAT_ERROR = "file_format_error"
    PARSING_FAILURE = "parsing_failure"
    ANALYSIS_TIMEOUT = "analysis_timeout"
    NETWORK_ERROR = "network_error"
    VALIDATION_ERROR = "validation_error"


# =============================================================================
# EXCEPTIONS
# =============================================================================


class PipelineError(Exception):
    """Base class for stage errors that know their category."""

    category: Optional[ErrorCategory] = None


class AuthenticationError(PipelineError):
    category = ErrorCategory.AUTHENTICATION_ERROR


class FileFormatError(PipelineError):
    category = ErrorCategory.FILE_FORMAT_ERROR


class ParsingFailure(PipelineError):
    category = ErrorCategory.PARSING_FAILURE


class AnalysisTimeout(PipelineError):
    category = ErrorCategory.ANALYSIS_TIMEOUT


class NetworkError(PipelineError):
    category = ErrorCategory.NETWORK_ERROR


class StageValidationError(PipelineError):
    """Invalid stage input or missing upstream results."""

    category = ErrorCategory.VALIDATION_ERROR

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = list(errors or [])


class StageInFlightError(RuntimeError):
    """Raised when a stage is executed on a session that is already executing one."""


# =============================================================================
# CATEGORIZATION
# =============================================================================

# Checked in order; first match wins. Auth and file format run before the broad "invalid" match
CATEGORY_KEYWORDS = [
    (ErrorCategory.PARSING_FAILURE, ("parse", "ocr", "extract", "no text", "placeholder")),
    (ErrorCategory.ANALYSIS_TIMEOUT, ("timeout", "timed out", "slow")),
    (ErrorCategory.NETWORK_ERROR, ("network", "connection")),
    (ErrorCategory.AUTHENTICATION_ERROR, ("api key", "authentication", "unauthorized")),
    (ErrorCategory.FILE_FORMAT_ERROR, ("file format", "invalid file", "unsupported")),
    (
        ErrorCategory.VALIDATION_ERROR,
        ("validation", "invalid", "missing", "no resume data", "no analysis results"),
    ),
]

DEFAULT_CATEGORY = ErrorCategory.NETWORK_ERROR


def categorize_error(error: BaseException) -> ErrorCategory:
    """
    Map an exception to an ErrorCategory.

    Typed PipelineErrors win, then builtin TimeoutError and ConnectionError,
    then keyword matching on the lowercased message. Anything unmatched is a
    network error.

    Examples:
        categorize_error(ParsingFailure("empty document"))   # PARSING_FAILURE
        categorize_error(ValueError("Invalid API key"))      # AUTHENTICATION_ERROR
        categorize_error(RuntimeError("boom"))               # NETWORK_ERROR
    """
    category = getattr(error, "category", None)
    if isinstance(category, ErrorCategory):
        return category

    if isinstance(error, TimeoutError):
        return ErrorCategory.ANALYSIS_TIMEOUT
    if isinstance(error, ConnectionError):
        return ErrorCategory.NETWORK_ERROR

    message = str(error).lower()
    for candidate, keywords in CATEGORY_KEYWORDS:
        if any(keyword in message for keyword in keywords):
            return candidate

    return DEFAULT_CATEGORY


# =============================================================================
# RECOVERY
# =============================================================================


@dataclass(frozen=True)
class RecoveryStrategy:
    category: ErrorCategory
    retry_attempts: int
    fallback_options: tuple
    user_notification: str
    preserve_progress: bool = True


def _load_strategies() -> Dict[ErrorCategory, RecoveryStrategy]:
    configured = get_pipeline_config()["recovery_strategies"]
    strategies = {}
    for category in ErrorCategory:
        entry = configured[category.value]
        strategies[category] = RecoveryStrategy(
            category=category,
            retry_attempts=int(entry["retry_attempts"]),
            fallback_options=tuple(entry["fallback_options"]),
            user_notification=entry["user_notification"],
            preserve_progress=bool(entry.get("preserve_progress", True)),
        )
    return strategies


RECOVERY_STRATEGIES = _load_strategies()


def get_strategy(category: ErrorCategory) -> RecoveryStrategy:
    return RECOVERY_STRATEGIES.get(category, RECOVERY_STRATEGIES[DEFAULT_CATEGORY])


_BACKOFF = get_pipeline_config()["backoff"]
BASE_DELAY_S = float(_BACKOFF["base_delay_s"])
MAX_DELAY_S = float(_BACKOFF["max_delay_s"])


def backoff_delay(retry_count: int) -> float:
    """
    Seconds to wait before a retry.

    retry_count is the number of failed attempts so far (1 before the first
    retry), giving 1s, 2s, 4s, ... capped at MAX_DELAY_S.
    """
    exponent = max(retry_count - 1, 0)
    return min(BASE_DELAY_S * (2**exponent), MAX_DELAY_S)


@dataclass
class RecoveryOutcome:
    """
    What handle_step_failure did with a failed stage.

    Attributes:
        category: Category the error was mapped to
        retried: True when the stage was re-invoked
        retry_result: StepResult of the re-invocation (when retried)
        fallback_options: Options offered once retries are exhausted
        user_notification: Notice for the user once retries are exhausted
        progress_preserved: Whether document versions were kept
        delay_s: Backoff slept before the re-invocation
    """

    category: ErrorCategory
    retried: bool
    retry_result: Optional[object] = None
    fallback_options: List[str] = field(default_factory=list)
    user_notification: Optional[str] = None
    progress_preserved: bool = True
    delay_s: float = 0.0

    @property
    def exhausted(self) -> bool:
        return not self.retried
