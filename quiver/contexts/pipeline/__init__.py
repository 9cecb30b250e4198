"""
Pipeline Context

Responsibilities:
- Tracks per-user optimization sessions (stage, history, versions, inputs, errors)
- Executes the eight stages in order, pausing for user input where needed
- Categorizes stage failures and applies retry/fallback recovery
- Reports progress and state to observers
- Persists sessions for resumption

Owns: Session state machine, document versions, recovery strategies, ports
Never: Parses documents or computes scores itself (delegated to ports)
"""

from quiver.contexts.pipeline.controller import PipelineController
from quiver.contexts.pipeline.errors import (
    ErrorCategory,
    PipelineError,
    RecoveryOutcome,
    StageInFlightError,
    StageValidationError,
    categorize_error,
)
from quiver.contexts.pipeline.ports import (
    DocumentParser,
    ParsedDocument,
    PipelinePorts,
    ProjectAnalyzer,
    ProjectReport,
    RequirementsScorer,
    ScoreReport,
)
from quiver.contexts.pipeline.session import DocumentVersion, PipelineSession, StepStatus
from quiver.contexts.pipeline.stages import PipelineStage
from quiver.contexts.pipeline.steps import StepResult
from quiver.contexts.pipeline.store import SessionStore

__all__ = [
    "categorize_error",
    "DocumentParser",
    "DocumentVersion",
    "ErrorCategory",
    "ParsedDocument",
    "PipelineController",
    "PipelineError",
    "PipelinePorts",
    "PipelineSession",
    "PipelineStage",
    "ProjectAnalyzer",
    "ProjectReport",
    "RecoveryOutcome",
    "RequirementsScorer",
    "ScoreReport",
    "SessionStore",
    "StageInFlightError",
    "StageValidationError",
    "StepResult",
    "StepStatus",
]
