"""
Metric and technical-term extraction.

Pure functions over text spans; no state, no I/O. The validator uses these
to decide whether a rewrite kept every quantitative claim of the original and
whether it introduced technical terms that cannot be traced to the source
material.
"""

from typing import Iterable, List

from quiver.contexts.validation.patterns import (
    COMMON_TECHNICAL_TERMS,
    METRIC_PATTERNS,
    MIN_TERM_LENGTH,
    TERM_PATTERNS,
    MetricPatterns,
    TermPatterns,
)


def _unique(items: Iterable[str]) -> List[str]:
    """Deduplicate while keeping first-seen order."""
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


# =============================================================================
# METRICS
# =============================================================================


def extract_metrics(text: str) -> List[str]:
    """
    Extract quantitative claims from a text span.

    Args:
        text: Text span (e.g., a single resume bullet)

    Returns:
        Metrics in surface form, deduplicated, in pattern order

    Example:
        >>> extract_metrics("Cut costs by $2M and latency by 40% in 6 months")
        ['40%', '$2M', '6 months']
    """
    matches = []
    for pattern in METRIC_PATTERNS:
        matches.extend(match.group(0).strip() for match in pattern.finditer(text))
    return _unique(matches)


def normalize_metric(metric: str) -> str:
    """Lowercase, drop separators and whitespace, drop unit-noise words."""
    compact = "".join(metric.lower().replace(",", "").split())
    return MetricPatterns.UNIT_NOISE.sub("", compact)


def metrics_match(first: str, second: str) -> bool:
    """
    Compare two normalized metrics.

    Equal strings match; otherwise the metrics match when their leading
    numeric tokens are identical ("10000+" and "10000" both lead with 10000).
    """
    if first == second:
        return True

    first_number = MetricPatterns.NUMBER.search(first)
    second_number = MetricPatterns.NUMBER.search(second)
    if first_number and second_number:
        return first_number.group(0) == second_number.group(0)

    return False


def find_missing_metrics(original: str, rewritten: str) -> List[str]:
    """
    Metrics of the original span that have no normalized match in the rewrite.

    Returns:
        Missing metrics in their original surface form (empty when all preserved)
    """
    rewritten_normalized = [normalize_metric(m) for m in extract_metrics(rewritten)]

    missing = []
    for metric in extract_metrics(original):
        normalized = normalize_metric(metric)
        if not any(metrics_match(normalized, other) for other in rewritten_normalized):
            missing.append(metric)
    return missing


# =============================================================================
# TECHNICAL TERMS
# =============================================================================


def extract_technical_terms(text: str) -> List[str]:
    """
    Extract candidate technical terms from a text span.

    Candidates are CamelCase tokens, dotted identifiers, version strings,
    alphanumeric codes, and any whitespace-delimited word containing an
    uppercase letter. Candidates shorter than three characters are dropped.
    """
    candidates = []
    for pattern in TERM_PATTERNS:
        candidates.extend(match.group(0) for match in pattern.finditer(text))

    for word in text.split():
        cleaned = TermPatterns.TOKEN_NOISE.sub("", word).strip(".-")
        if TermPatterns.HAS_UPPERCASE.search(cleaned):
            candidates.append(cleaned)

    return _unique(term for term in candidates if len(term) >= MIN_TERM_LENGTH)


def build_allowed_vocabulary(document_text: str, requirements_text: str = "") -> frozenset:
    """
    Build the vocabulary a rewrite may draw technical terms from.

    Built once per rewrite run from the full document text plus the target
    requirements text, so every span in the run is judged against the same set.

    Args:
        document_text: Plain-text rendering of the whole document
        requirements_text: Target job description (may be empty)

    Returns:
        Lowercase tokens and technical terms, plus the curated abbreviations
    """
    combined = f"{document_text}\n{requirements_text}"

    words = TermPatterns.VOCABULARY_NOISE.sub(" ", combined.lower()).split()
    tokens = {word.strip(".-") for word in words}
    terms = {term.lower() for term in extract_technical_terms(combined)}

    vocabulary = {token for token in tokens | terms if len(token) >= MIN_TERM_LENGTH}
    return frozenset(vocabulary | COMMON_TECHNICAL_TERMS)
