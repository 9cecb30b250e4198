"""
Rewriting context logger.

Provides logging interface for rewriting context with automatic [rewrite] prefix.
All rewriting modules should import from this module, not from utils.logger directly.
"""

from dotenv import load_dotenv
from loguru import logger

load_dotenv()

CONTEXT_PREFIX = "[rewrite]"


# Wrapper functions with automatic [rewrite] prefix


def _log_info(message: str) -> None:
    """Log info message with [rewrite] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_success(message: str) -> None:
    """Log success message with [rewrite] prefix."""
    logger.success(f"{CONTEXT_PREFIX} {message}")


def _log_error(message: str) -> None:
    """Log error message with [rewrite] prefix."""
    logger.error(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [rewrite] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [rewrite] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


# High-level rewriting-specific logging helpers


def log_section_start(section: str, heading: str, bullet_count: int) -> None:
    """Log start of rewriting for one experience entry or project."""
    _log_info(f"Rewriting {bullet_count} {section} bullet(s): {heading}")


def log_bullet_outcome(outcome) -> None:
    """
    Log the outcome of rewriting one bullet.

    Args:
        outcome: BulletOutcome from BulletRewriter
    """
    if outcome.skipped:
        _log_debug(f"  Kept as-is (already well formed): {outcome.original[:60]}")
    elif outcome.accepted:
        _log_debug(f"  Accepted after {outcome.attempts} attempt(s)")
    else:
        _log_warning(f"  Not accepted after {outcome.attempts} attempt(s): {outcome.reason}")


def log_rewrite_summary(changed: int, salvaged: int, total: int, compliance_score: int) -> None:
    """Log totals for a whole-document rewrite run."""
    _log_success(f"Rewrote {changed}/{total} bullets ({salvaged} kept unvalidated)")
    _log_info(f"Formatting compliance: {compliance_score}%")
