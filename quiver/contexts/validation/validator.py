"""
Rewrite validation.

Decides whether a machine-generated rewrite of a text span may replace the
original. Three checks feed one decision:

1. Semantic similarity (via a SimilarityProvider) against a threshold
2. Metric preservation (every quantitative claim of the original survives)
3. Fabrication (no technical term that cannot be traced to the allowed vocabulary)

The decision rule only ever yields accept or retry. A reject verdict is
produced solely when the similarity provider fails.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from quiver.contexts.validation.extraction import (
    extract_technical_terms,
    find_missing_metrics,
)
from quiver.contexts.validation.logger import log_similarity_failure, log_verdict
from quiver.contexts.validation.patterns import COMMON_TECHNICAL_TERMS, MIN_TERM_LENGTH
from quiver.contexts.validation.similarity import SimilarityProvider
from quiver.utils.config import get_pipeline_config

_VALIDATION_CONFIG = get_pipeline_config()["validation"]

DEFAULT_THRESHOLD = _VALIDATION_CONFIG["default_threshold"]
STRICT_THRESHOLD = _VALIDATION_CONFIG["strict_threshold"]


class Verdict(str, Enum):
    """Outcome of validating one rewrite."""

    ACCEPT = "accept"
    RETRY = "retry"
    REJECT = "reject"


@dataclass
class ValidationVerdict:
    """
    Result of validating one rewrite against its original span.

    Attributes:
        is_accepted: True only when verdict is ACCEPT
        semantic_similarity: Similarity score between original and rewrite
        has_fabricated_terms: Whether untraceable technical terms were found
        fabricated_terms: The untraceable terms, in order of appearance
        metrics_preserved: Whether every original metric has a match in the rewrite
        missing_metrics: Original metrics without a match (surface form)
        verdict: accept, retry, or reject
        reason: Human-readable explanation (None when accepted)
        threshold: Similarity threshold this verdict was judged against
        retry_attempt: Position in a retry loop (0 = initial candidate)
        retry_prompt: Corrective prompt generated from this verdict, if any
    """

    is_accepted: bool
    semantic_similarity: float
    has_fabricated_terms: bool
    fabricated_terms: List[str]
    metrics_preserved: bool
    missing_metrics: List[str]
    verdict: Verdict
    reason: Optional[str] = None
    threshold: float = DEFAULT_THRESHOLD
    retry_attempt: Optional[int] = None
    retry_prompt: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "is_accepted": self.is_accepted,
            "semantic_similarity": round(self.semantic_similarity, 4),
            "has_fabricated_terms": self.has_fabricated_terms,
            "fabricated_terms": list(self.fabricated_terms),
            "metrics_preserved": self.metrics_preserved,
            "missing_metrics": list(self.missing_metrics),
            "verdict": self.verdict.value,
            "reason": self.reason,
            "threshold": self.threshold,
            "retry_attempt": self.retry_attempt,
        }


@dataclass
class VerdictSummary:
    """Aggregate statistics over a batch of verdicts."""

    total: int = 0
    accepted: int = 0
    needs_retry: int = 0
    rejected: int = 0
    average_similarity: float = 0.0
    metrics_preserved_count: int = 0
    fabrication_count: int = 0


def detect_fabrication(text: str, allowed_vocabulary: Iterable[str]) -> List[str]:
    """
    Find technical terms in text that cannot be traced to the allowed vocabulary.

    A term is traceable when it is in the vocabulary (case-insensitive), when it
    contains or is contained in a vocabulary entry of three or more characters,
    or when it is one of the curated generic abbreviations.

    Args:
        text: Rewritten span
        allowed_vocabulary: Lowercase vocabulary from build_allowed_vocabulary()

    Returns:
        Fabricated terms in order of appearance (empty if none)
    """
    vocabulary = {entry.lower() for entry in allowed_vocabulary}
    substring_candidates = [entry for entry in vocabulary if len(entry) >= MIN_TERM_LENGTH]

    fabricated = []
    for term in extract_technical_terms(text):
        term_lower = term.lower()
        if term_lower in vocabulary or term_lower in COMMON_TECHNICAL_TERMS:
            continue
        if any(entry in term_lower or term_lower in entry for entry in substring_candidates):
            continue
        fabricated.append(term)
    return fabricated


class RewriteValidator:
    """
    Accept/retry/reject gate for generated rewrites.

    Example:
        validator = RewriteValidator(HashingSimilarityProvider())
        vocabulary = build_allowed_vocabulary(document_text, job_description)
        verdict = validator.validate(original, candidate, vocabulary)
        if verdict.is_accepted:
            ...
    """

    def __init__(self, provider: SimilarityProvider, default_threshold: float = DEFAULT_THRESHOLD):
        self.provider = provider
        self.default_threshold = default_threshold

    def validate(
        self,
        original: str,
        rewritten: str,
        allowed_vocabulary: Iterable[str],
        threshold: Optional[float] = None,
    ) -> ValidationVerdict:
        """
        Validate one rewrite.

        Args:
            original: Original span
            rewritten: Candidate replacement
            allowed_vocabulary: Vocabulary shared by the whole rewrite run
            threshold: Similarity threshold override (default: 0.70)

        Returns:
            ValidationVerdict
        """
        threshold = self.default_threshold if threshold is None else threshold

        try:
            similarity = self.provider.similarity(
                self.provider.embed(original), self.provider.embed(rewritten)
            )
        except Exception as e:
            log_similarity_failure(e)
            verdict = ValidationVerdict(
                is_accepted=False,
                semantic_similarity=0.0,
                has_fabricated_terms=False,
                fabricated_terms=[],
                metrics_preserved=False,
                missing_metrics=[],
                verdict=Verdict.REJECT,
                reason="Validation error occurred",
                threshold=threshold,
            )
            log_verdict(original, verdict)
            return verdict

        missing_metrics = find_missing_metrics(original, rewritten)
        fabricated_terms = detect_fabrication(rewritten, allowed_vocabulary)

        outcome, reason = self._decide(similarity, threshold, missing_metrics, fabricated_terms)

        verdict = ValidationVerdict(
            is_accepted=outcome is Verdict.ACCEPT,
            semantic_similarity=similarity,
            has_fabricated_terms=bool(fabricated_terms),
            fabricated_terms=fabricated_terms,
            metrics_preserved=not missing_metrics,
            missing_metrics=missing_metrics,
            verdict=outcome,
            reason=reason,
            threshold=threshold,
        )
        log_verdict(original, verdict)
        return verdict

    @staticmethod
    def _decide(
        similarity: float,
        threshold: float,
        missing_metrics: List[str],
        fabricated_terms: List[str],
    ) -> Tuple[Verdict, Optional[str]]:
        """Apply the decision rule in priority order."""
        low_similarity = similarity < threshold

        if fabricated_terms:
            return Verdict.RETRY, f"Fabricated terms detected: {', '.join(fabricated_terms)}"
        if low_similarity and missing_metrics:
            return Verdict.RETRY, (
                f"Low semantic similarity ({similarity:.2f}) and missing metrics: "
                f"{', '.join(missing_metrics)}"
            )
        if low_similarity:
            return Verdict.RETRY, f"Semantic similarity too low: {similarity:.2f} < {threshold}"
        if missing_metrics:
            return Verdict.RETRY, f"Missing metrics: {', '.join(missing_metrics)}"
        return Verdict.ACCEPT, None

    def validate_batch(
        self,
        pairs: Iterable[Tuple[str, str]],
        allowed_vocabulary: Iterable[str],
        threshold: Optional[float] = None,
    ) -> Tuple[List[ValidationVerdict], VerdictSummary]:
        """
        Validate (original, rewritten) pairs sequentially.

        Returns:
            (verdicts in input order, aggregate summary)
        """
        vocabulary = frozenset(allowed_vocabulary)
        verdicts = [
            self.validate(original, rewritten, vocabulary, threshold)
            for original, rewritten in pairs
        ]
        return verdicts, summarize_verdicts(verdicts)


def summarize_verdicts(verdicts: List[ValidationVerdict]) -> VerdictSummary:
    """Aggregate counts and mean similarity over a list of verdicts."""
    summary = VerdictSummary(total=len(verdicts))
    if not verdicts:
        return summary

    summary.accepted = sum(1 for v in verdicts if v.verdict is Verdict.ACCEPT)
    summary.needs_retry = sum(1 for v in verdicts if v.verdict is Verdict.RETRY)
    summary.rejected = sum(1 for v in verdicts if v.verdict is Verdict.REJECT)
    summary.average_similarity = sum(v.semantic_similarity for v in verdicts) / len(verdicts)
    summary.metrics_preserved_count = sum(1 for v in verdicts if v.metrics_preserved)
    summary.fabrication_count = sum(1 for v in verdicts if v.has_fabricated_terms)
    return summary
