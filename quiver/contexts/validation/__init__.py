"""
Validation Context

Responsibilities:
- Extracts metrics and technical terms from text spans
- Builds the allowed vocabulary for a rewrite run
- Judges generated rewrites (semantic drift, fabrication, metric loss)
- Drives the bounded generate/validate retry loop

Owns: Rewrite verdicts, corrective prompts, similarity port
Never: Generates text itself, mutates documents or sessions
"""

from quiver.contexts.validation.extraction import build_allowed_vocabulary, extract_metrics
from quiver.contexts.validation.retry import RetryResult, validate_with_retry
from quiver.contexts.validation.similarity import HashingSimilarityProvider, SimilarityProvider
from quiver.contexts.validation.validator import RewriteValidator, ValidationVerdict, Verdict

__all__ = [
    "build_allowed_vocabulary",
    "extract_metrics",
    "HashingSimilarityProvider",
    "RetryResult",
    "RewriteValidator",
    "SimilarityProvider",
    "validate_with_retry",
    "ValidationVerdict",
    "Verdict",
]
