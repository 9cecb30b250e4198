"""
Bounded retry loop around text generation.

validate_with_retry() asks a generator for a candidate rewrite, validates it,
and on a retry verdict feeds a corrective prompt back to the generator. The
loop makes at most MAX_GENERATION_CALLS generation calls per span (one initial
candidate plus MAX_RETRIES corrective attempts).

Fallback rules when no candidate is accepted:
- Any reject verdict: the original span is kept
- Retries exhausted on a retry verdict: the last candidate is returned as
  salvageable, with success=False so callers never mistake it for accepted text
"""

from dataclasses import dataclass, field
from typing import Callable, Iterable, List

from quiver.contexts.validation.logger import log_retry_attempt, log_retry_result
from quiver.contexts.validation.validator import (
    DEFAULT_THRESHOLD,
    STRICT_THRESHOLD,
    RewriteValidator,
    ValidationVerdict,
    Verdict,
)

MAX_RETRIES = 2
MAX_GENERATION_CALLS = 1 + MAX_RETRIES

# Similarity below this earns an explicit "stay closer to the original" instruction
MEANING_DRIFT_THRESHOLD = 0.70

# (prompt, attempt) -> candidate text; attempt 0 receives an empty prompt
GenerateFn = Callable[[str, int], str]

RETRY_REQUIREMENTS = (
    "Maintain semantic similarity to original",
    "Preserve ALL numeric metrics exactly",
    "Only use terms from the job description or original resume",
    "Use strong action verbs and STAR format",
    "Keep to 2 sentences maximum",
)


@dataclass
class RetryResult:
    """
    Outcome of a bounded retry loop for one span.

    Attributes:
        success: True only when a candidate was accepted
        final_text: Accepted candidate, salvageable last candidate, or the original
        attempts: Number of validations performed (equals generation calls)
        verdict_history: Every verdict in order
        reason: Explanation of how final_text was chosen
    """

    success: bool
    final_text: str
    attempts: int
    verdict_history: List[ValidationVerdict] = field(default_factory=list)
    reason: str = ""

    @property
    def fell_back_to_original(self) -> bool:
        return not self.success and any(
            v.verdict is Verdict.REJECT for v in self.verdict_history
        )


def build_retry_prompt(verdict: ValidationVerdict, original: str) -> str:
    """
    Build a corrective prompt from a retry verdict.

    Lists terms to remove, metrics that must be reproduced verbatim, and a
    meaning-preservation note when similarity drifted below 0.70.
    """
    issues = []

    if verdict.has_fabricated_terms:
        issues.append(f"Remove fabricated terms: {', '.join(verdict.fabricated_terms)}")

    if not verdict.metrics_preserved and verdict.missing_metrics:
        issues.append(f"MUST preserve these metrics exactly: {', '.join(verdict.missing_metrics)}")

    if verdict.semantic_similarity < MEANING_DRIFT_THRESHOLD:
        issues.append("Stay closer to the original meaning and content")

    numbered = "\n".join(f"{i}. {issue}" for i, issue in enumerate(issues, 1))
    requirements = "\n".join(f"- {line}" for line in RETRY_REQUIREMENTS)

    return (
        f'Original bullet: "{original}"\n\n'
        f"CRITICAL ISSUES TO FIX:\n{numbered}\n\n"
        f"Requirements:\n{requirements}\n\n"
        "Rewrite this bullet addressing the issues above:"
    )


def should_retry(verdict: ValidationVerdict, retries_made: int) -> bool:
    """Whether the loop should request another candidate after this verdict."""
    return verdict.verdict is Verdict.RETRY and retries_made < MAX_RETRIES


def validate_with_retry(
    validator: RewriteValidator,
    original: str,
    generate: GenerateFn,
    allowed_vocabulary: Iterable[str],
) -> RetryResult:
    """
    Generate and validate a rewrite with at most two corrective retries.

    The initial candidate is judged at the default threshold (0.70); retry
    candidates at the strict threshold (0.75). Exceptions raised by generate
    propagate to the caller.

    Args:
        validator: RewriteValidator to judge candidates
        original: Original span
        generate: Generation callable, called as generate(prompt, attempt)
        allowed_vocabulary: Vocabulary shared by the whole rewrite run

    Returns:
        RetryResult

    Example:
        result = validate_with_retry(validator, bullet, generate, vocabulary)
        new_bullet = result.final_text
    """
    vocabulary = frozenset(allowed_vocabulary)
    history: List[ValidationVerdict] = []

    candidate = generate("", 0)
    retries_made = 0

    while True:
        threshold = DEFAULT_THRESHOLD if retries_made == 0 else STRICT_THRESHOLD
        verdict = validator.validate(original, candidate, vocabulary, threshold)
        verdict.retry_attempt = retries_made
        history.append(verdict)

        if verdict.verdict is Verdict.ACCEPT:
            result = RetryResult(
                success=True,
                final_text=candidate,
                attempts=len(history),
                verdict_history=history,
                reason="Validation passed",
            )
            break

        if verdict.verdict is Verdict.REJECT:
            result = RetryResult(
                success=False,
                final_text=original,
                attempts=len(history),
                verdict_history=history,
                reason=verdict.reason or "Validation rejected, using original",
            )
            break

        if not should_retry(verdict, retries_made):
            result = RetryResult(
                success=False,
                final_text=candidate,
                attempts=len(history),
                verdict_history=history,
                reason=f"Failed after {len(history)} attempts, using last attempt",
            )
            break

        retries_made += 1
        verdict.retry_prompt = build_retry_prompt(verdict, original)
        log_retry_attempt(retries_made, MAX_RETRIES, verdict.reason)
        candidate = generate(verdict.retry_prompt, retries_made)

    log_retry_result(result)
    return result
