"""
Pipeline context logger.

Provides logging interface for pipeline context with automatic [pipeline] prefix.
All pipeline modules should import from this module, not from utils.logger directly.
"""

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from loguru import logger

from quiver.utils.logger import setup_logger as _setup_logger

load_dotenv()

CONTEXT_PREFIX = "[pipeline]"


def setup_pipeline_logger(log_dir: Path, session_id: Optional[str] = None) -> Path:
    """
    Setup logger for pipeline context.

    Args:
        log_dir: Directory for this pipeline run
        session_id: Session identifier recorded in the provenance header

    Returns:
        Path to log file
    """
    extra = {"Session": session_id} if session_id else None
    return _setup_logger(
        context_name="pipeline",
        log_dir=log_dir,
        extra_provenance=extra,
        level_colors={"SUCCESS": "<green>"},
    )


# Wrapper functions with automatic [pipeline] prefix


def _log_info(message: str) -> None:
    """Log info message with [pipeline] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_success(message: str) -> None:
    """Log success message with [pipeline] prefix."""
    logger.success(f"{CONTEXT_PREFIX} {message}")


def _log_error(message: str) -> None:
    """Log error message with [pipeline] prefix."""
    logger.error(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [pipeline] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [pipeline] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


# High-level pipeline-specific logging helpers


def log_stage_start(stage_number: int, stage_name: str, retry_count: int = 0) -> None:
    """Log the start of a stage attempt."""
    suffix = f" (retry {retry_count})" if retry_count else ""
    _log_info(f"Stage {stage_number}: {stage_name}{suffix}")


def log_stage_completed(stage_number: int, stage_name: str, skipped: bool = False) -> None:
    if skipped:
        _log_success(f"Stage {stage_number} skipped: {stage_name} (nothing to do)")
    else:
        _log_success(f"Stage {stage_number} completed: {stage_name}")


def log_stage_paused(stage_number: int, action: str) -> None:
    _log_info(f"Stage {stage_number} waiting for user input: {action}")


def log_stage_failed(stage_number: int, category: str, message: str) -> None:
    """
    Log a stage failure.

    Args:
        stage_number: Stage that failed
        category: Error category used for recovery lookup
        message: Error message
    """
    _log_error(f"Stage {stage_number} failed [{category}]: {message}")


def log_retry_scheduled(stage_number: int, attempt: int, max_attempts: int, delay: float) -> None:
    _log_warning(f"Retrying stage {stage_number} ({attempt}/{max_attempts}) in {delay:.0f}s")


def log_recovery_exhausted(stage_number: int, category: str, fallback_options: list) -> None:
    """Log that automatic recovery is exhausted and fallbacks are offered."""
    _log_error(f"Max retries exceeded for stage {stage_number} [{category}]")
    _log_info(f"  Fallback options: {', '.join(fallback_options)}")


def log_rollback(from_stage: int, to_stage: int) -> None:
    _log_warning(f"Rolled back from stage {from_stage} to stage {to_stage}")


def log_version_saved(version_number: int, stage_number: int, changes) -> None:
    _log_debug(f"Saved document version {version_number} at stage {stage_number}")
    for change in changes:
        _log_debug(f"  - {change}")


def log_validation_warnings(warnings: list) -> None:
    """Log non-fatal problems found in parsed document data."""
    _log_warning(f"Parsed document has {len(warnings)} warning(s)")
    for warning in warnings:
        _log_warning(f"  - {warning}")


def log_analysis_result(analysis_type: str, overall: float, missing_keywords: int) -> None:
    _log_info(f"Analysis ({analysis_type}): {overall}% overall, {missing_keywords} missing keyword(s)")


def log_listener_error(kind: str, error: Exception) -> None:
    """Log an observer that raised during notification."""
    _log_error(f"Error in {kind} listener: {error}")
