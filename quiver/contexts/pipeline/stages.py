"""
Stage catalogue for the optimization workflow.

Eight fixed stages form a strictly linear chain. COMPLETE is a terminal marker
for current_stage once the last stage succeeds; it is not a stage and carries
no weight.
"""

from enum import IntEnum
from typing import Optional

from quiver.utils.config import get_pipeline_config


class PipelineStage(IntEnum):
    PARSE_RESUME = 1
    ANALYZE_AGAINST_REQUIREMENTS = 2
    MISSING_SECTIONS_INPUT = 3
    PROJECT_ANALYSIS = 4
    RE_ANALYSIS = 5
    CONTENT_REWRITING = 6
    FINAL_OPTIMIZATION = 7
    OUTPUT_DOCUMENT = 8
    COMPLETE = 9


PIPELINE_STAGES = tuple(stage for stage in PipelineStage if stage is not PipelineStage.COMPLETE)
TOTAL_STAGES = len(PIPELINE_STAGES)

STAGE_NAMES = {
    PipelineStage.PARSE_RESUME: "Parse Resume",
    PipelineStage.ANALYZE_AGAINST_REQUIREMENTS: "Analyze Against Job Description",
    PipelineStage.MISSING_SECTIONS_INPUT: "Complete Missing Sections",
    PipelineStage.PROJECT_ANALYSIS: "Analyze Projects",
    PipelineStage.RE_ANALYSIS: "Re-analyze After Changes",
    PipelineStage.CONTENT_REWRITING: "Rewrite Bullet Points",
    PipelineStage.FINAL_OPTIMIZATION: "Final Optimization",
    PipelineStage.OUTPUT_DOCUMENT: "Generate Optimized Resume",
    PipelineStage.COMPLETE: "Complete",
}

STAGE_DESCRIPTIONS = {
    PipelineStage.PARSE_RESUME: "Extracting structured data from the uploaded resume",
    PipelineStage.ANALYZE_AGAINST_REQUIREMENTS: "Scoring the resume against the job description",
    PipelineStage.MISSING_SECTIONS_INPUT: "Collecting sections the resume is missing",
    PipelineStage.PROJECT_ANALYSIS: "Checking project alignment with the target role",
    PipelineStage.RE_ANALYSIS: "Re-scoring the resume after your changes",
    PipelineStage.CONTENT_REWRITING: "Rewriting bullet points with validated AI suggestions",
    PipelineStage.FINAL_OPTIMIZATION: "Integrating keywords, summary, and ATS formatting",
    PipelineStage.OUTPUT_DOCUMENT: "Preparing the optimized resume for export",
    PipelineStage.COMPLETE: "Optimization finished",
}

USER_INPUT_STAGES = frozenset(
    {PipelineStage.MISSING_SECTIONS_INPUT, PipelineStage.PROJECT_ANALYSIS}
)

USER_ACTION_DESCRIPTIONS = {
    PipelineStage.MISSING_SECTIONS_INPUT: "Please provide missing resume sections to continue",
    PipelineStage.PROJECT_ANALYSIS: "Review and modify your projects for better job alignment",
}


def _load_weights() -> dict:
    configured = get_pipeline_config()["stages"]["weights"]
    weights = {stage: int(configured[stage.name]) for stage in PIPELINE_STAGES}
    if sum(weights.values()) != 100:
        raise ValueError(f"Stage weights must sum to 100, got {sum(weights.values())}")
    return weights


STAGE_WEIGHTS = _load_weights()


def next_stage(stage: PipelineStage) -> Optional[PipelineStage]:
    """Stage after this one; COMPLETE after the last stage; None after COMPLETE."""
    if stage is PipelineStage.COMPLETE:
        return None
    return PipelineStage(stage + 1)


def previous_stage(stage: PipelineStage) -> Optional[PipelineStage]:
    """Stage before this one; None at the first stage."""
    if stage is PipelineStage.PARSE_RESUME:
        return None
    return PipelineStage(stage - 1)


def requires_user_input(stage: PipelineStage) -> bool:
    return stage in USER_INPUT_STAGES


def user_action_description(stage: PipelineStage) -> str:
    return USER_ACTION_DESCRIPTIONS.get(stage, "User input required to continue")
