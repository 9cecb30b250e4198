"""Unit tests for the rewrite validator."""

import numpy as np
import pytest

from quiver.contexts.validation.extraction import build_allowed_vocabulary
from quiver.contexts.validation.similarity import HashingSimilarityProvider
from quiver.contexts.validation.validator import (
    DEFAULT_THRESHOLD,
    STRICT_THRESHOLD,
    RewriteValidator,
    Verdict,
    detect_fabrication,
    summarize_verdicts,
)

LATENCY_BULLET = "Reduced latency by 40% using caching"


@pytest.mark.unit
def test_thresholds_keep_literal_values():
    assert DEFAULT_THRESHOLD == pytest.approx(0.70)
    assert STRICT_THRESHOLD == pytest.approx(0.75)


@pytest.mark.unit
def test_accepts_faithful_rewrite(fakes):
    """Metric kept, no new terms, similarity 0.91 -> accept."""
    validator = RewriteValidator(fakes.FixedSimilarity(0.91))
    vocabulary = build_allowed_vocabulary(LATENCY_BULLET)

    verdict = validator.validate(
        LATENCY_BULLET, "Reduced latency by 40% via caching strategies", vocabulary
    )

    assert verdict.verdict is Verdict.ACCEPT
    assert verdict.is_accepted
    assert verdict.metrics_preserved
    assert not verdict.has_fabricated_terms
    assert verdict.reason is None
    assert verdict.threshold == DEFAULT_THRESHOLD


@pytest.mark.unit
def test_changed_metric_requires_retry(fakes):
    validator = RewriteValidator(fakes.FixedSimilarity(0.91))
    vocabulary = build_allowed_vocabulary(LATENCY_BULLET)

    verdict = validator.validate(LATENCY_BULLET, "Reduced latency by 60% using caching", vocabulary)

    assert verdict.verdict is Verdict.RETRY
    assert not verdict.is_accepted
    assert verdict.missing_metrics == ["40%"]
    assert not verdict.metrics_preserved


@pytest.mark.unit
def test_fabricated_term_requires_retry(fakes):
    validator = RewriteValidator(fakes.FixedSimilarity(0.95))
    vocabulary = build_allowed_vocabulary("Built a REST API")

    verdict = validator.validate("Built a REST API", "Built a Zylonix API", vocabulary)

    assert verdict.has_fabricated_terms
    assert verdict.fabricated_terms == ["Zylonix"]
    assert verdict.verdict is Verdict.RETRY
    assert "Fabricated terms detected" in verdict.reason


@pytest.mark.unit
@pytest.mark.parametrize("similarity", [0.5, 0.8, 0.99, 1.0])
def test_dropped_percentage_never_accepted(fakes, similarity):
    validator = RewriteValidator(fakes.FixedSimilarity(similarity))
    vocabulary = build_allowed_vocabulary(LATENCY_BULLET)

    verdict = validator.validate(LATENCY_BULLET, "Reduced latency using caching", vocabulary)

    assert not verdict.is_accepted
    assert "40%" in verdict.missing_metrics


@pytest.mark.unit
@pytest.mark.parametrize("similarity", [0.5, 0.99])
def test_fabricated_term_never_accepted(fakes, similarity):
    validator = RewriteValidator(fakes.FixedSimilarity(similarity))
    vocabulary = build_allowed_vocabulary(LATENCY_BULLET)

    verdict = validator.validate(
        LATENCY_BULLET, "Reduced latency by 40% using Memcachix caching", vocabulary
    )

    assert not verdict.is_accepted
    assert verdict.fabricated_terms == ["Memcachix"]


@pytest.mark.unit
def test_low_similarity_requires_retry(fakes):
    validator = RewriteValidator(fakes.FixedSimilarity(0.65))
    vocabulary = build_allowed_vocabulary(LATENCY_BULLET)

    verdict = validator.validate(LATENCY_BULLET, "Reduced latency by 40% using caching", vocabulary)

    assert verdict.verdict is Verdict.RETRY
    assert "Semantic similarity too low" in verdict.reason


@pytest.mark.unit
def test_threshold_override(fakes):
    validator = RewriteValidator(fakes.FixedSimilarity(0.72))
    vocabulary = build_allowed_vocabulary(LATENCY_BULLET)

    lenient = validator.validate(LATENCY_BULLET, LATENCY_BULLET, vocabulary)
    strict = validator.validate(LATENCY_BULLET, LATENCY_BULLET, vocabulary, threshold=STRICT_THRESHOLD)

    assert lenient.is_accepted
    assert strict.verdict is Verdict.RETRY


@pytest.mark.unit
def test_similarity_failure_rejects(fakes):
    validator = RewriteValidator(fakes.FailingSimilarity())
    vocabulary = build_allowed_vocabulary(LATENCY_BULLET)

    verdict = validator.validate(LATENCY_BULLET, LATENCY_BULLET, vocabulary)

    assert verdict.verdict is Verdict.REJECT
    assert not verdict.is_accepted
    assert verdict.reason == "Validation error occurred"


@pytest.mark.unit
def test_detect_fabrication_allows_substring_of_vocabulary():
    vocabulary = build_allowed_vocabulary("Deployed services with PostgreSQL")
    assert detect_fabrication("Deployed Postgres replicas", vocabulary) == []


@pytest.mark.unit
def test_hashing_similarity_identical_text():
    provider = HashingSimilarityProvider()
    assert provider.compare(LATENCY_BULLET, LATENCY_BULLET) == pytest.approx(1.0)
    assert provider.compare(LATENCY_BULLET, "Organized the quarterly offsite") < 0.5


@pytest.mark.unit
def test_provider_similarity_is_cosine():
    provider = HashingSimilarityProvider()

    assert provider.similarity(np.array([1.0, 0.0]), np.array([2.0, 0.0])) == pytest.approx(1.0)
    assert provider.similarity(np.array([1.0, 0.0]), np.array([0.0, 3.0])) == pytest.approx(0.0)
    assert provider.similarity(np.array([1.0, 1.0]), np.array([-1.0, -1.0])) == pytest.approx(-1.0)
    # Empty text hashes to an all-zero vector
    assert provider.compare("", LATENCY_BULLET) == 0.0


@pytest.mark.unit
def test_validate_batch_summary(fakes):
    validator = RewriteValidator(fakes.FixedSimilarity(0.9))
    vocabulary = build_allowed_vocabulary(LATENCY_BULLET)

    verdicts, summary = validator.validate_batch(
        [
            (LATENCY_BULLET, "Reduced latency by 40% via caching"),
            (LATENCY_BULLET, "Reduced latency by 60% via caching"),
        ],
        vocabulary,
    )

    assert [v.verdict for v in verdicts] == [Verdict.ACCEPT, Verdict.RETRY]
    assert summary == summarize_verdicts(verdicts)
    assert summary.total == 2
    assert summary.accepted == 1
    assert summary.needs_retry == 1
