"""
Stage handlers for the eight pipeline stages.

Each handler takes a StageContext and the stage input, does the stage's work
against the latest document version, and returns a StepResult. Handlers raise
on failure; the controller turns exceptions into failed results, error
records, and recovery decisions.

A handler that needs user input it does not have returns
StepResult(user_input_required=True) without advancing.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from quiver.contexts.pipeline.document import (
    REQUIREMENTS_MIN_LENGTH,
    apply_ats_formatting,
    apply_project_modifications,
    certification_suggestions,
    comprehensive_optimization_gaps,
    document_text,
    empty_document,
    identify_missing_sections,
    integrate_keywords,
    merge_missing_sections,
    missing_sections_changes,
    project_alignment_scores,
    project_modification_changes,
    resume_data_to_text,
    section_counts,
    validate_missing_sections,
    validate_parsed_document,
    validate_project_modifications,
)
from quiver.contexts.pipeline.errors import StageValidationError
from quiver.contexts.pipeline.logger import (
    _log_info,
    log_analysis_result,
    log_validation_warnings,
)
from quiver.contexts.pipeline.ports import PipelinePorts, ScoreReport
from quiver.contexts.pipeline.reports import (
    EXPORT_OPTIONS,
    GENERAL_ANALYSIS,
    REQUIREMENTS_ANALYSIS,
    TARGET_SCORE,
    actionable_recommendations,
    before_after_comparison,
    completion_message,
    detect_project_improvements,
    general_recommendations,
    prioritize_gaps,
    score_improvement,
    updated_recommendations,
    user_action_recommendations,
)
from quiver.contexts.pipeline.session import DocumentVersion, PipelineSession
from quiver.contexts.pipeline.stages import (
    PIPELINE_STAGES,
    STAGE_WEIGHTS,
    PipelineStage,
    next_stage,
)
from quiver.contexts.rewriting.formatting import summarize_improvements
from quiver.contexts.rewriting.rewriter import BulletRewriter
from quiver.contexts.rewriting.summary import compose_summary
from quiver.contexts.validation.extraction import build_allowed_vocabulary
from quiver.contexts.validation.validator import RewriteValidator
from quiver.utils.timestamp import elapsed_seconds, now_exact

# User-supplied input kinds
MISSING_SECTIONS = "missing_sections"
PROJECT_MODIFICATIONS = "project_modifications"

# Stage outputs recorded for later stages
ANALYSIS_RESULTS = "analysis_results"
MISSING_SECTIONS_PROVIDED = "missing_sections_provided"
PROJECT_MODIFICATIONS_APPLIED = "project_modifications_applied"
RE_ANALYSIS_RESULTS = "re_analysis_results"
CONTENT_REWRITING_COMPLETED = "content_rewriting_completed"
FINAL_OPTIMIZATION_COMPLETED = "final_optimization_completed"
PIPELINE_COMPLETED = "pipeline_completed"

USER_INPUT_KINDS = {
    PipelineStage.MISSING_SECTIONS_INPUT: MISSING_SECTIONS,
    PipelineStage.PROJECT_ANALYSIS: PROJECT_MODIFICATIONS,
}

MAX_LISTED_CHANGES = 3


@dataclass
class StepResult:
    """
    Outcome of one execute_step call.

    Attributes:
        success: False when the stage raised
        data: Stage-specific payload (for failures: error_type, original_error)
        error: Error message for failures
        next_stage: Stage to move to (None while paused or on failure)
        progress_update: Percentage reached once this stage completes
        user_input_required: True when the stage paused for user input
    """

    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    next_stage: Optional[PipelineStage] = None
    progress_update: Optional[int] = None
    user_input_required: bool = False

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "data": self.data,
            "error": self.error,
            "next_stage": self.next_stage.name if self.next_stage else None,
            "progress_update": self.progress_update,
            "user_input_required": self.user_input_required,
        }


@dataclass
class StageContext:
    """What a handler may touch: the session, the ports, and version saving."""

    session: PipelineSession
    ports: PipelinePorts
    stage: PipelineStage
    save_version: Callable[[dict, List[str]], DocumentVersion]

    def record(self, input_kind: str, payload: Any) -> None:
        self.session.record_input(self.stage, input_kind, payload)

    def latest_document(self) -> dict:
        version = self.session.latest_version()
        if version is None:
            raise StageValidationError("No resume data available from previous step")
        return version.copy_document()

    def require_output(self, input_kind: str, message: str) -> Any:
        record = self.session.latest_input(input_kind)
        if record is None:
            raise StageValidationError(message)
        return record.payload

    def optional_output(self, input_kind: str) -> Optional[Any]:
        record = self.session.latest_input(input_kind)
        return record.payload if record is not None else None

    def take_user_input(self) -> Optional[Any]:
        """Pending user input for this stage, marked consumed once taken."""
        record = self.session.pending_input(USER_INPUT_KINDS[self.stage])
        if record is None:
            return None
        record.consumed = True
        return record.payload


def cumulative_progress(stage: PipelineStage) -> int:
    """Percentage reached when every stage up to and including this one is done."""
    return sum(STAGE_WEIGHTS[s] for s in PIPELINE_STAGES if s <= stage)


def _completed(stage: PipelineStage, data: dict) -> StepResult:
    return StepResult(
        success=True,
        data=data,
        next_stage=next_stage(stage),
        progress_update=cumulative_progress(stage),
    )


def _paused(data: dict) -> StepResult:
    return StepResult(success=True, data=data, user_input_required=True)


def _listed_changes(headline: List[str], changes: List[str]) -> List[str]:
    listed = list(headline) + changes[:MAX_LISTED_CHANGES]
    if len(changes) > MAX_LISTED_CHANGES:
        listed.append(f"...and {len(changes) - MAX_LISTED_CHANGES} more")
    return listed


def _has_requirements(session: PipelineSession) -> bool:
    return len((session.requirements_text or "").strip()) > REQUIREMENTS_MIN_LENGTH


def _score(ctx: StageContext, document: dict, requirements_analysis: bool) -> ScoreReport:
    """Score through the scorer port; a general analysis ignores keywords."""
    text = document_text(document)
    if requirements_analysis:
        return ctx.ports.scorer.score(document, text, ctx.session.requirements_text)

    report = ctx.ports.scorer.score(document, text, "")
    report.missing_keywords = []
    report.critical_issues = list(report.red_flags)
    return report


# =============================================================================
# STAGE 1: PARSE_RESUME
# =============================================================================


def parse_resume(ctx: StageContext, payload: Optional[dict]) -> StepResult:
    if not payload or not payload.get("file"):
        raise StageValidationError("No resume file provided for parsing")

    source = payload["file"]
    if isinstance(source, str):
        source = Path(source)
    parsed = ctx.ports.parser.parse(source)
    document = dict(parsed.document)
    if parsed.raw_text and not document.get("parsed_text"):
        document["parsed_text"] = parsed.raw_text

    is_valid, warnings = validate_parsed_document(document)
    if warnings:
        log_validation_warnings(warnings)
    if not is_valid:
        ctx.session.log_error(ctx.stage, f"Validation warnings: {', '.join(warnings)}")

    missing = identify_missing_sections(document)
    ctx.save_version(document, ["Initial parsing completed"])

    _log_info(f"Missing sections: {', '.join(missing) if missing else 'None'}")
    return _completed(
        ctx.stage,
        {
            "missing_sections": missing,
            "parsing_confidence": parsed.confidence,
            "section_counts": section_counts(document),
            "warnings": warnings,
        },
    )


# =============================================================================
# STAGE 2: ANALYZE_AGAINST_REQUIREMENTS
# =============================================================================


def analyze_against_requirements(ctx: StageContext, payload: Optional[dict]) -> StepResult:
    document = ctx.latest_document()

    requirements_analysis = _has_requirements(ctx.session)
    analysis_type = REQUIREMENTS_ANALYSIS if requirements_analysis else GENERAL_ANALYSIS
    report = _score(ctx, document, requirements_analysis)
    log_analysis_result(analysis_type, report.overall, len(report.missing_keywords))

    prioritized = prioritize_gaps(report)
    recommendations = actionable_recommendations(report, analysis_type)
    if not requirements_analysis:
        recommendations += [
            r for r in general_recommendations(report) if r not in recommendations
        ]

    results = {
        "score": report.to_dict(),
        "analysis_type": analysis_type,
        "prioritized_gaps": prioritized,
        "recommendations": recommendations,
        "critical_issues": list(report.critical_issues),
        "timestamp": now_exact(),
    }
    ctx.record(ANALYSIS_RESULTS, results)
    ctx.save_version(
        document,
        [
            f"Analysis completed: {report.overall}% overall score",
            f"Found {len(report.missing_keywords)} missing keywords",
            f"Identified {len(prioritized['high'])} high priority issues",
        ],
    )
    return _completed(ctx.stage, results)


# =============================================================================
# STAGE 3: MISSING_SECTIONS_INPUT
# =============================================================================


def missing_sections_input(ctx: StageContext, payload: Optional[dict]) -> StepResult:
    version = ctx.session.latest_version()
    document = version.copy_document() if version is not None else empty_document()

    analysis = ctx.optional_output(ANALYSIS_RESULTS) or {}
    analysis_type = analysis.get("analysis_type")

    missing = identify_missing_sections(document)
    if not missing:
        _log_info("No missing sections found")
        return _completed(
            ctx.stage,
            {"missing_sections": [], "skipped": True, "reason": "No missing sections detected"},
        )

    suggested = certification_suggestions(ctx.session.requirements_text, analysis_type)

    supplied = ctx.take_user_input()
    if supplied is None:
        return _paused(
            {
                "missing_sections": missing,
                "suggested_certifications": suggested,
                "analysis_type": analysis_type,
                "requires_user_input": True,
            }
        )

    errors = validate_missing_sections(supplied, missing)
    if errors:
        raise StageValidationError(
            f"Missing sections validation failed: {', '.join(errors)}", errors=errors
        )

    updated = merge_missing_sections(document, supplied)
    changes = missing_sections_changes(supplied)
    ctx.save_version(updated, changes)
    ctx.record(
        MISSING_SECTIONS_PROVIDED,
        {
            "missing_sections": missing,
            "provided_data": supplied,
            "suggested_certifications": suggested,
            "timestamp": now_exact(),
        },
    )
    return _completed(ctx.stage, {"missing_sections": missing, "changes": changes})


# =============================================================================
# STAGE 4: PROJECT_ANALYSIS
# =============================================================================


def project_analysis(ctx: StageContext, payload: Optional[dict]) -> StepResult:
    document = ctx.latest_document()
    analysis = ctx.optional_output(ANALYSIS_RESULTS) or {}

    report = ctx.ports.project_analyzer.analyze(
        document, ctx.session.requirements_text, ctx.session.target_role
    )
    _log_info(
        f"Projects: {len(report.verdicts) - len(report.unsuitable_titles)} suitable, "
        f"{len(report.unsuitable_titles)} needing replacement, "
        f"{len(report.suggestions)} suggested"
    )

    if report.all_suitable and not report.suggestions:
        return _completed(
            ctx.stage,
            {
                "project_report": report.to_dict(),
                "skipped": True,
                "reason": "All projects already suit the target role",
            },
        )

    modifications = ctx.take_user_input()
    if modifications is None:
        return _paused(
            {
                "project_report": report.to_dict(),
                "analysis_type": analysis.get("analysis_type"),
                "requires_user_input": True,
            }
        )

    errors = validate_project_modifications(modifications)
    if errors:
        raise StageValidationError(
            f"Project modifications validation failed: {', '.join(errors)}", errors=errors
        )

    updated = apply_project_modifications(document, modifications)
    alignment = project_alignment_scores(updated.get("projects") or [], ctx.session.requirements_text)
    changes = project_modification_changes(modifications)
    ctx.save_version(updated, changes)
    ctx.record(
        PROJECT_MODIFICATIONS_APPLIED,
        {
            "modifications": modifications,
            "original_projects": document.get("projects") or [],
            "modified_projects": updated.get("projects") or [],
            "alignment_scores": alignment,
            "project_report": report.to_dict(),
            "timestamp": now_exact(),
        },
    )
    return _completed(
        ctx.stage,
        {"project_report": report.to_dict(), "alignment_scores": alignment, "changes": changes},
    )


# =============================================================================
# STAGE 5: RE_ANALYSIS
# =============================================================================


def re_analysis(ctx: StageContext, payload: Optional[dict]) -> StepResult:
    document = ctx.latest_document()
    analysis = ctx.require_output(ANALYSIS_RESULTS, "No original analysis results available")

    analysis_type = analysis["analysis_type"]
    requirements_analysis = analysis_type == REQUIREMENTS_ANALYSIS and _has_requirements(ctx.session)
    new_report = _score(ctx, document, requirements_analysis)
    original_report = ScoreReport.from_dict(analysis["score"])

    applied = ctx.optional_output(PROJECT_MODIFICATIONS_APPLIED)
    improvement = score_improvement(original_report, new_report)
    project_improvements = detect_project_improvements(
        applied["modifications"] if applied else None, new_report, original_report
    )
    recommendations = updated_recommendations(new_report, improvement, analysis_type)
    log_analysis_result(analysis_type, new_report.overall, len(new_report.missing_keywords))

    results = {
        "new_score": new_report.to_dict(),
        "original_score": original_report.to_dict(),
        "score_improvement": improvement,
        "project_improvements": project_improvements,
        "updated_recommendations": recommendations,
        "has_project_changes": applied is not None,
        "analysis_type": analysis_type,
        "timestamp": now_exact(),
    }
    ctx.record(RE_ANALYSIS_RESULTS, results)

    sign = "+" if improvement["overall"] > 0 else ""
    ctx.save_version(
        document,
        [
            f"Re-analysis completed: {new_report.overall}% overall score",
            f"Score improvement: {sign}{improvement['overall']}%",
            f"Project improvements: {len(project_improvements)} detected",
        ],
    )
    return _completed(ctx.stage, results)


# =============================================================================
# STAGE 6: CONTENT_REWRITING
# =============================================================================


def content_rewriting(ctx: StageContext, payload: Optional[dict]) -> StepResult:
    document = ctx.latest_document()
    re_results = ctx.require_output(
        RE_ANALYSIS_RESULTS, "No re-analysis results available from previous step"
    )
    if ctx.ports.generator is None:
        raise StageValidationError("No text generator configured for content rewriting")

    requirements_text = ctx.session.requirements_text or ""
    vocabulary = build_allowed_vocabulary(resume_data_to_text(document), requirements_text)
    rewriter = BulletRewriter(
        ctx.ports.generator,
        RewriteValidator(ctx.ports.similarity),
        vocabulary,
        requirements_text,
    )
    rewrite = rewriter.rewrite_document(document)
    compliance = rewrite.formatting["compliance_score"]

    ctx.save_version(
        rewrite.document,
        _listed_changes(["Bullet points rewritten for ATS optimization"], rewrite.section_changes),
    )

    results = {
        "bullet_changes": rewrite.section_changes,
        "bullets_total": len(rewrite.outcomes),
        "bullets_changed": rewrite.changed_count,
        "bullets_unvalidated": rewrite.salvaged_count,
        "formatting": rewrite.formatting,
        "analysis_type": re_results.get("analysis_type"),
        "timestamp": now_exact(),
    }
    ctx.record(CONTENT_REWRITING_COMPLETED, results)
    return _completed(
        ctx.stage,
        {
            **results,
            "compliance_score": compliance,
            "improvement_summary": summarize_improvements(rewrite.section_changes, compliance),
        },
    )


# =============================================================================
# STAGE 7: FINAL_OPTIMIZATION
# =============================================================================


def final_optimization(ctx: StageContext, payload: Optional[dict]) -> StepResult:
    document = ctx.latest_document()
    re_results = ctx.require_output(
        RE_ANALYSIS_RESULTS, "No re-analysis results available from previous step"
    )
    analysis_type = re_results["analysis_type"]
    requirements_analysis = analysis_type == REQUIREMENTS_ANALYSIS
    changes: List[str] = []

    if requirements_analysis:
        new_score = ScoreReport.from_dict(re_results["new_score"])
        document, keyword_changes = integrate_keywords(
            document,
            new_score.keywords_in_tier("critical"),
            new_score.keywords_in_tier("important"),
        )
        changes += keyword_changes

    summary, summary_changes = compose_summary(
        document,
        target_role=ctx.session.target_role,
        requirements_focused=requirements_analysis and _has_requirements(ctx.session),
    )
    document["summary"] = summary
    changes += summary_changes

    document, formatting_changes = apply_ats_formatting(document)
    changes += formatting_changes
    changes += comprehensive_optimization_gaps(document)

    scoring_requirements = ctx.session.requirements_text if requirements_analysis else ""
    final_report = ctx.ports.scorer.score(
        document, resume_data_to_text(document), scoring_requirements or ""
    )
    target_achieved = final_report.overall >= TARGET_SCORE
    _log_info(
        f"Final score: {final_report.overall}% "
        f"(target {'achieved' if target_achieved else 'not achieved'})"
    )

    ctx.save_version(
        document,
        _listed_changes(["Final optimization completed", f"Score: {final_report.overall}%"], changes),
    )
    results = {
        "optimization_changes": changes,
        "final_score": final_report.to_dict(),
        "target_achieved": target_achieved,
        "analysis_type": analysis_type,
        "timestamp": now_exact(),
    }
    ctx.record(FINAL_OPTIMIZATION_COMPLETED, results)

    previous = ScoreReport.from_dict(re_results["new_score"])
    return _completed(
        ctx.stage,
        {
            **results,
            "score_improvement": round(final_report.overall - previous.overall, 2),
            "recommendations_below_target": user_action_recommendations(final_report),
        },
    )


# =============================================================================
# STAGE 8: OUTPUT_DOCUMENT
# =============================================================================


def output_document(ctx: StageContext, payload: Optional[dict]) -> StepResult:
    document = ctx.latest_document()
    final = ctx.optional_output(FINAL_OPTIMIZATION_COMPLETED)
    analysis = ctx.optional_output(ANALYSIS_RESULTS)
    if final is None or analysis is None:
        raise StageValidationError("Missing optimization or analysis results from previous steps")

    final_report = ScoreReport.from_dict(final["final_score"])
    comparison = before_after_comparison(ScoreReport.from_dict(analysis["score"]), final_report)
    session = ctx.session
    # This stage's own attempt is still running
    completed = sorted(set(session.completed_stages()) | {ctx.stage})
    summary = {
        "total_stages": len(completed),
        "total_optimizations": len(session.document_versions),
        "user_inputs": sum(1 for r in session.recorded_inputs if r.input_kind in USER_INPUT_KINDS.values()),
        "duration_s": round(elapsed_seconds(session.created_at), 3),
        "stages_completed": [stage.name for stage in completed],
    }

    results = {
        "final_document": document,
        "before_after_comparison": comparison,
        "export_options": [dict(option) for option in EXPORT_OPTIONS],
        "user_action_recommendations": user_action_recommendations(final_report),
        "pipeline_summary": summary,
        "target_achieved": final["target_achieved"],
        "completion_message": completion_message(
            final["target_achieved"], comparison["overall_improvement"]
        ),
    }
    ctx.record(PIPELINE_COMPLETED, {**results, "completed_at": now_exact()})
    return _completed(ctx.stage, results)


STAGE_HANDLERS = {
    PipelineStage.PARSE_RESUME: parse_resume,
    PipelineStage.ANALYZE_AGAINST_REQUIREMENTS: analyze_against_requirements,
    PipelineStage.MISSING_SECTIONS_INPUT: missing_sections_input,
    PipelineStage.PROJECT_ANALYSIS: project_analysis,
    PipelineStage.RE_ANALYSIS: re_analysis,
    PipelineStage.CONTENT_REWRITING: content_rewriting,
    PipelineStage.FINAL_OPTIMIZATION: final_optimization,
    PipelineStage.OUTPUT_DOCUMENT: output_document,
}
