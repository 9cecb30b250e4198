"""
Validation context logger.

Provides logging interface for the validation context with automatic [validate] prefix.
All validation modules should import from this module, not from utils.logger directly.
"""

from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

from quiver.utils.logger import setup_logger as _setup_logger

load_dotenv()

CONTEXT_PREFIX = "[validate]"


def setup_validation_logger(log_dir: Path, provider_name: str = None) -> Path:
    """
    Setup logger for validation context.

    Args:
        log_dir: Directory for this validation session
        provider_name: Similarity provider recorded in the provenance header

    Returns:
        Path to log file
    """
    return _setup_logger(
        context_name="validate",
        log_dir=log_dir,
        extra_provenance={"Similarity provider": provider_name or "unspecified"},
    )


# Wrapper functions with automatic [validate] prefix


def _log_info(message: str) -> None:
    """Log info message with [validate] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_success(message: str) -> None:
    """Log success message with [validate] prefix."""
    logger.success(f"{CONTEXT_PREFIX} {message}")


def _log_error(message: str) -> None:
    """Log error message with [validate] prefix."""
    logger.error(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [validate] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [validate] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


# High-level validation-specific logging helpers


def _preview(text: str, limit: int = 60) -> str:
    return text if len(text) <= limit else f"{text[:limit]}..."


def log_verdict(original: str, verdict) -> None:
    """
    Log a single validation verdict.

    Args:
        original: Original span the rewrite was judged against
        verdict: ValidationVerdict from RewriteValidator.validate()
    """
    summary = (
        f"{verdict.verdict.value}: sim={verdict.semantic_similarity:.2f} "
        f"(threshold {verdict.threshold:.2f}) \"{_preview(original)}\""
    )
    _log_debug(summary)
    if not verdict.is_accepted:
        _log_debug(f"  Reason: {verdict.reason}")


def log_similarity_failure(error: Exception) -> None:
    """Log a similarity provider failure that forced a reject verdict."""
    _log_error(f"Similarity provider failed, rejecting rewrite: {error}")


def log_retry_attempt(attempt: int, max_attempts: int, reason: str) -> None:
    """Log that a corrective prompt is being sent."""
    _log_info(f"Retry {attempt}/{max_attempts}: {reason}")


def log_retry_result(result) -> None:
    """
    Log the outcome of a retry loop.

    Args:
        result: RetryResult from validate_with_retry()
    """
    if result.success:
        _log_success(f"Rewrite accepted after {result.attempts} validation(s)")
    else:
        _log_warning(f"Rewrite not accepted after {result.attempts} validation(s): {result.reason}")
