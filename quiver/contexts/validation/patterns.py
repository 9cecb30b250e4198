"""
Reusable patterns and constants for rewrite validation.

This module provides the regex patterns used to pull quantitative claims
(metrics) and candidate technical terms out of a text span, plus the curated
allowlist of generic technical abbreviations that never count as fabricated.

Pattern classes follow the package convention:
- Dataclasses with frozen=True for immutability
- Class-level constants for patterns
- Helper functions (extraction.py) that use these patterns
"""

import re
from dataclasses import dataclass

# =============================================================================
# CURATED TERMS
# =============================================================================

# Generic abbreviations and words that appear in nearly every technical
# bullet; a rewrite may introduce these freely
COMMON_TECHNICAL_TERMS = frozenset(
    {
        "api",
        "ui",
        "ux",
        "sql",
        "rest",
        "http",
        "https",
        "json",
        "xml",
        "html",
        "css",
        "git",
        "ci",
        "cd",
        "aws",
        "azure",
        "gcp",
        "ide",
        "cli",
        "sdk",
        "framework",
        "library",
        "database",
        "server",
        "client",
        "frontend",
        "backend",
        "fullstack",
        "devops",
        "agile",
        "scrum",
        "tdd",
        "bdd",
        "mvc",
        "mvvm",
        "orm",
        "crud",
        "jwt",
        "oauth",
        "saas",
        "paas",
        "iaas",
        "ml",
        "ai",
        "nlp",
        "iot",
        "ar",
        "vr",
    }
)

# Noise words stripped from a metric before comparison ("10,000 users" == "10000")
METRIC_UNIT_WORDS = (
    "users?",
    "customers?",
    "clients?",
    "engineers?",
    "developers?",
    "teams?",
    "projects?",
    "features?",
    "applications?",
    "systems?",
)

# Terms shorter than this are ignored by term extraction and vocabulary building
MIN_TERM_LENGTH = 3

# =============================================================================
# METRIC PATTERNS
# =============================================================================


@dataclass(frozen=True)
class MetricPatterns:
    """
    Regex patterns for quantitative claims in resume bullets.

    Order matters only for the order of extracted metrics; every pattern is
    applied to the whole span.
    """

    # 40%, 12.5%
    PERCENT: re.Pattern = re.compile(r"\d+(?:\.\d+)?%")

    # 3x, 10x faster
    MULTIPLIER: re.Pattern = re.compile(
        r"\d+(?:\.\d+)?x\b(?:\s+(?:faster|more|increase))?", re.IGNORECASE
    )

    # $2M, $1,200, $3.5 K
    CURRENCY: re.Pattern = re.compile(
        r"\$\d+(?:,\d{3})*(?:\.\d+)?(?:\s*[KMB]\b)?", re.IGNORECASE
    )

    # 10,000 users, 1,200+ customers (thousands separator required)
    QUALIFIED_COUNT: re.Pattern = re.compile(
        r"\d+(?:,\d{3})+\+?(?:\s+(?:users?|customers?|clients?|engineers?|developers?|teams?)\b)?",
        re.IGNORECASE,
    )

    # 50+ engineers
    PLUS_COUNT: re.Pattern = re.compile(r"\d+\+(?:\s+\w+)?")

    # 6 months, 3 weeks
    DURATION: re.Pattern = re.compile(
        r"\d+\s+(?:hours?|days?|weeks?|months?|years?)\b", re.IGNORECASE
    )

    # 12 projects, 4 systems
    SCOPE_COUNT: re.Pattern = re.compile(
        r"\d+\s+(?:projects?|features?|applications?|systems?)\b", re.IGNORECASE
    )

    # Unit-noise words removed during normalization (whitespace already stripped)
    UNIT_NOISE: re.Pattern = re.compile("|".join(METRIC_UNIT_WORDS), re.IGNORECASE)

    # First numeric token of a normalized metric
    NUMBER: re.Pattern = re.compile(r"\d+(?:\.\d+)?")


# Convenience list for iteration
METRIC_PATTERNS = [
    MetricPatterns.PERCENT,
    MetricPatterns.MULTIPLIER,
    MetricPatterns.CURRENCY,
    MetricPatterns.QUALIFIED_COUNT,
    MetricPatterns.PLUS_COUNT,
    MetricPatterns.DURATION,
    MetricPatterns.SCOPE_COUNT,
]

# =============================================================================
# TECHNICAL TERM PATTERNS
# =============================================================================


@dataclass(frozen=True)
class TermPatterns:
    """
    Regex patterns for technical-looking tokens that must be traceable to the
    original document or the target requirements.
    """

    # PostgreSql, GraphQl, TensorFlow
    CAMEL_CASE: re.Pattern = re.compile(r"\b[A-Z][a-z]+(?:[A-Z][a-z]+)+\b")

    # node.js, scikit.learn, vue.js
    DOTTED: re.Pattern = re.compile(r"\b[a-z]+\.[a-z]+(?:\.[a-z]+)*\b", re.IGNORECASE)

    # v2, version 3.1
    VERSION: re.Pattern = re.compile(r"\b(?:v|version)\s*\d+(?:\.\d+)*\b", re.IGNORECASE)

    # EC2, k8s, python3 (letter and digit both required)
    ALPHANUMERIC: re.Pattern = re.compile(r"\b(?=\w*[A-Za-z])(?=\w*\d)\w{3,}\b")

    # Characters dropped from a whitespace token before the capitalization check
    TOKEN_NOISE: re.Pattern = re.compile(r"[^\w.-]")

    # Characters replaced by spaces when tokenizing vocabulary text
    VOCABULARY_NOISE: re.Pattern = re.compile(r"[^\w\s.-]")

    HAS_UPPERCASE: re.Pattern = re.compile(r"[A-Z]")


TERM_PATTERNS = [
    TermPatterns.CAMEL_CASE,
    TermPatterns.DOTTED,
    TermPatterns.VERSION,
    TermPatterns.ALPHANUMERIC,
]
