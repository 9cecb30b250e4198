"""Unit tests for the bounded generate/validate retry loop."""

import pytest

from quiver.contexts.validation.extraction import build_allowed_vocabulary
from quiver.contexts.validation.retry import (
    MAX_GENERATION_CALLS,
    build_retry_prompt,
    should_retry,
    validate_with_retry,
)
from quiver.contexts.validation.validator import RewriteValidator, Verdict

ORIGINAL = "Reduced latency by 40% using caching"


class Candidates:
    """generate(prompt, attempt) that replays candidates and records prompts."""

    def __init__(self, *candidates):
        self.candidates = list(candidates)
        self.prompts = []

    def __call__(self, prompt, attempt):
        self.prompts.append(prompt)
        return self.candidates[min(attempt, len(self.candidates) - 1)]


@pytest.fixture
def vocabulary():
    return build_allowed_vocabulary(ORIGINAL)


@pytest.mark.unit
def test_accepts_first_candidate(fakes, vocabulary):
    generate = Candidates("Reduced latency by 40% via caching strategies")
    result = validate_with_retry(
        RewriteValidator(fakes.FixedSimilarity(0.9)), ORIGINAL, generate, vocabulary
    )

    assert result.success
    assert result.attempts == 1
    assert result.final_text == "Reduced latency by 40% via caching strategies"
    assert generate.prompts == [""]


@pytest.mark.unit
def test_corrective_prompt_names_missing_metric(fakes, vocabulary):
    generate = Candidates(
        "Reduced latency by 60% using caching",
        "Reduced latency by 40% with caching",
    )
    result = validate_with_retry(
        RewriteValidator(fakes.FixedSimilarity(0.9)), ORIGINAL, generate, vocabulary
    )

    assert result.success
    assert result.attempts == 2
    assert result.final_text == "Reduced latency by 40% with caching"
    assert "MUST preserve these metrics exactly: 40%" in generate.prompts[1]
    assert result.verdict_history[0].retry_prompt == generate.prompts[1]
    assert [v.retry_attempt for v in result.verdict_history] == [0, 1]


@pytest.mark.unit
def test_at_most_three_generation_calls(fakes, vocabulary):
    generate = Candidates("Reduced latency using caching")
    result = validate_with_retry(
        RewriteValidator(fakes.FixedSimilarity(0.9)), ORIGINAL, generate, vocabulary
    )

    assert MAX_GENERATION_CALLS == 3
    assert len(generate.prompts) == 3
    assert result.attempts == 3
    assert not result.success
    # Salvaged: last candidate returned, never marked accepted
    assert result.final_text == "Reduced latency using caching"
    assert all(v.verdict is Verdict.RETRY for v in result.verdict_history)


@pytest.mark.unit
def test_retries_use_strict_threshold(fakes, vocabulary):
    """0.72 passes the initial threshold but not the retry threshold."""
    generate = Candidates("Reduced latency by 60% using caching", ORIGINAL)
    result = validate_with_retry(
        RewriteValidator(fakes.FixedSimilarity(0.72)), ORIGINAL, generate, vocabulary
    )

    assert not result.success
    assert result.attempts == 3
    thresholds = [v.threshold for v in result.verdict_history]
    assert thresholds == [pytest.approx(0.70), pytest.approx(0.75), pytest.approx(0.75)]


@pytest.mark.unit
def test_reject_keeps_original(fakes, vocabulary):
    generate = Candidates("Reduced latency by 40% via caching")
    result = validate_with_retry(
        RewriteValidator(fakes.FailingSimilarity()), ORIGINAL, generate, vocabulary
    )

    assert not result.success
    assert result.final_text == ORIGINAL
    assert result.attempts == 1
    assert result.fell_back_to_original


@pytest.mark.unit
def test_generation_errors_propagate(fakes, vocabulary):
    def generate(prompt, attempt):
        raise ConnectionError("generation backend down")

    with pytest.raises(ConnectionError):
        validate_with_retry(RewriteValidator(fakes.FixedSimilarity(0.9)), ORIGINAL, generate, vocabulary)


@pytest.mark.unit
def test_build_retry_prompt_lists_every_issue(fakes, vocabulary):
    verdict = RewriteValidator(fakes.FixedSimilarity(0.5)).validate(
        ORIGINAL, "Reduced latency using Zylonix", vocabulary
    )
    prompt = build_retry_prompt(verdict, ORIGINAL)

    assert f'Original bullet: "{ORIGINAL}"' in prompt
    assert "1. Remove fabricated terms: Zylonix" in prompt
    assert "2. MUST preserve these metrics exactly: 40%" in prompt
    assert "3. Stay closer to the original meaning and content" in prompt


@pytest.mark.unit
def test_should_retry_only_retry_verdicts_within_limit(fakes, vocabulary):
    retry = RewriteValidator(fakes.FixedSimilarity(0.9)).validate(
        ORIGINAL, "Reduced latency using caching", vocabulary
    )
    accept = RewriteValidator(fakes.FixedSimilarity(0.9)).validate(ORIGINAL, ORIGINAL, vocabulary)
    reject = RewriteValidator(fakes.FailingSimilarity()).validate(ORIGINAL, ORIGINAL, vocabulary)

    assert retry.verdict is Verdict.RETRY
    assert should_retry(retry, 0)
    assert should_retry(retry, 1)
    assert not should_retry(retry, 2)
    assert not should_retry(accept, 0)
    assert not should_retry(reject, 0)
