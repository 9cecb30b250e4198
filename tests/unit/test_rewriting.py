"""Unit tests for bullet rewriting, formatting checks, and summary composition."""

import pytest

from quiver.contexts.pipeline.document import resume_data_to_text
from quiver.contexts.rewriting.formatting import (
    check_formatting,
    is_well_formatted_experience_bullet,
    is_well_formatted_project_bullet,
    summarize_improvements,
)
from quiver.contexts.rewriting.generator import clean_candidate, llm_text_generator
from quiver.contexts.rewriting.rewriter import BulletRewriter
from quiver.contexts.rewriting.summary import SUMMARY_WORD_RANGE, compose_summary
from quiver.contexts.validation.extraction import build_allowed_vocabulary
from quiver.contexts.validation.retry import MAX_GENERATION_CALLS
from quiver.contexts.validation.validator import RewriteValidator
from quiver.utils.llm import LLMProvider, LLMResponse

GOOD_EXPERIENCE_BULLET = (
    "Developed a caching layer for the payments API that reduced p99 latency by 40% across services"
)
GOOD_PROJECT_BULLET = "Built a Python service that improved queue throughput for internal analytics teams"


def _rewriter(document, generator, similarity):
    vocabulary = build_allowed_vocabulary(resume_data_to_text(document))
    return BulletRewriter(generator, RewriteValidator(similarity), vocabulary)


# =============================================================================
# FORMATTING
# =============================================================================


@pytest.mark.unit
def test_well_formatted_bullets():
    assert is_well_formatted_experience_bullet(GOOD_EXPERIENCE_BULLET)
    assert is_well_formatted_project_bullet(GOOD_PROJECT_BULLET)
    assert not is_well_formatted_experience_bullet("Worked on the billing service")
    assert not is_well_formatted_project_bullet("Built a dashboard for queue depth in Python")


@pytest.mark.unit
def test_check_formatting_scores_compliance():
    document = {
        "work_experience": [{"bullets": [GOOD_EXPERIENCE_BULLET, "Worked on the billing service"]}],
        "projects": [],
    }
    report = check_formatting(document)

    assert report["compliance_score"] == 50
    assert len(report["issues"]) == 1
    assert report["issues"][0].startswith("Work experience bullet needs improvement")
    assert report["strengths"] == []


@pytest.mark.unit
def test_check_formatting_without_bullets():
    assert check_formatting({})["compliance_score"] == 100


@pytest.mark.unit
def test_summarize_improvements():
    assert summarize_improvements([], 100) == [
        "No bullet point improvements needed - formatting already optimal"
    ]
    summary = summarize_improvements(["Backend Engineer: 2 bullets improved"], 85)
    assert summary == [
        "Improved 1 sections for better ATS optimization",
        "Good formatting compliance achieved (80%+)",
    ]


# =============================================================================
# GENERATION
# =============================================================================


class EchoProvider(LLMProvider):
    _provider_prefix = "fake"
    _retry_message = "retrying"

    def __init__(self):
        self._retryable_exception = TimeoutError
        self.update_model("echo")

    def _call_api(self, system_prompt, user_prompt):
        return LLMResponse(content='"- Improved caching"\n', model=self.model, input_tokens=1, output_tokens=1)


@pytest.mark.unit
def test_llm_text_generator_adapts_provider():
    generate = llm_text_generator(EchoProvider())

    assert generate("system", "user") == '"- Improved caching"\n'
    assert generate.__name__ == "generate[fake/echo]"


@pytest.mark.unit
def test_clean_candidate_strips_markers():
    assert clean_candidate('"- Improved caching"\n') == "Improved caching"
    assert clean_candidate("\n\n• Led migration\nSecond line") == "Led migration"
    assert clean_candidate("") == ""


# =============================================================================
# REWRITER
# =============================================================================


@pytest.mark.unit
def test_well_formed_bullet_is_not_regenerated(make_doc, fakes):
    generator = fakes.ScriptedGenerator()
    rewriter = _rewriter(make_doc(), generator, fakes.FixedSimilarity(0.9))

    outcome = rewriter.rewrite_experience_bullet(GOOD_EXPERIENCE_BULLET, "Backend Engineer")

    assert outcome.skipped
    assert outcome.final_text == GOOD_EXPERIENCE_BULLET
    assert outcome.attempts == 0
    assert generator.calls == []


@pytest.mark.unit
def test_empty_bullet_passes_through(make_doc, fakes):
    generator = fakes.ScriptedGenerator()
    rewriter = _rewriter(make_doc(), generator, fakes.FixedSimilarity(0.9))

    assert rewriter.rewrite_project_bullet("   ", "Queue Monitor").final_text == "   "
    assert generator.calls == []


@pytest.mark.unit
def test_experience_prompt_uses_action_context_result(make_doc, fakes):
    generator = fakes.ScriptedGenerator(transform=lambda b: f"{b} to improve reliability")
    rewriter = _rewriter(make_doc(), generator, fakes.FixedSimilarity(0.9))

    outcome = rewriter.rewrite_experience_bullet("Worked on the billing service", "Backend Engineer")

    assert outcome.accepted
    assert outcome.final_text == "Worked on the billing service to improve reliability"
    system_prompt, user_prompt = generator.calls[0]
    assert "Action + Context + Result" in system_prompt
    assert "Role: Backend Engineer" in user_prompt


@pytest.mark.unit
def test_rewrite_document_folds_accepted_rewrites(make_doc, fakes):
    document = make_doc()
    generator = fakes.ScriptedGenerator(transform=lambda b: f"{b} to improve reliability")
    rewriter = _rewriter(document, generator, fakes.FixedSimilarity(0.9))

    rewrite = rewriter.rewrite_document(document)

    assert rewrite.changed_count == 3
    assert rewrite.salvaged_count == 0
    assert rewrite.section_changes == [
        "Backend Engineer: 2 bullets improved",
        "Queue Monitor: 1 bullets improved",
    ]
    assert rewrite.document["work_experience"][0]["bullets"][1] == (
        "Worked on the billing service to improve reliability"
    )
    # Input document untouched
    assert document["work_experience"][0]["bullets"][1] == "Worked on the billing service"
    assert "compliance_score" in rewrite.formatting


@pytest.mark.unit
def test_unvalidated_rewrites_are_flagged(make_doc, fakes):
    document = make_doc(projects=[])
    generator = fakes.ScriptedGenerator(responses=["Built Zylonix dashboards"])
    rewriter = _rewriter(document, generator, fakes.FixedSimilarity(0.9))

    rewrite = rewriter.rewrite_document(document)

    # Two bullets, three generation calls each
    assert len(generator.calls) == 2 * MAX_GENERATION_CALLS
    assert rewrite.salvaged_count == 2
    assert all(not o.accepted for o in rewrite.outcomes)
    assert rewrite.section_changes == ["Backend Engineer: 2 bullets improved (2 kept unvalidated)"]


# =============================================================================
# SUMMARY
# =============================================================================


@pytest.mark.unit
@pytest.mark.parametrize("requirements_focused", [True, False])
def test_compose_summary_word_range(make_doc, requirements_focused):
    summary, changes = compose_summary(
        make_doc(), target_role="Backend Engineer", requirements_focused=requirements_focused
    )

    low, high = SUMMARY_WORD_RANGE
    assert low <= len(summary.split()) <= high
    assert "Python" in summary
    assert changes == ["Generated optimized professional summary (40-60 words)"]


@pytest.mark.unit
def test_compose_summary_unchanged_reports_no_change(make_doc):
    summary, _ = compose_summary(make_doc())
    _, changes = compose_summary(make_doc(summary=summary))
    assert changes == []
