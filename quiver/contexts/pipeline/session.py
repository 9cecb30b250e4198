"""
Pipeline session state.

A PipelineSession is the per-user execution context of one optimization run:
where the run is (current_stage), what happened (step_history, error_log),
what the document looked like after each change (document_versions), and
what the user or earlier stages supplied (recorded_inputs).

History, versions, and inputs are append-only. The error log is a ring buffer
of the most recent entries. Sessions round-trip through to_dict()/from_dict()
with timestamps as ISO 8601 strings.
"""

import copy
import random
import string
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from quiver.contexts.pipeline.stages import PIPELINE_STAGES, PipelineStage
from quiver.utils.config import get_pipeline_config

_SESSION_CONFIG = get_pipeline_config()["session"]

ERROR_LOG_SIZE = int(_SESSION_CONFIG["error_log_size"])
VISIBLE_ERRORS = int(_SESSION_CONFIG["visible_errors"])

_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_session_id() -> str:
    """Session id of the form pipeline_<epoch ms>_<9 base-36 chars>."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"pipeline_{int(time.time() * 1000)}_{suffix}"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class StepStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    AWAITING_INPUT = "awaiting_input"


@dataclass
class StepAttempt:
    """One execution of one stage."""

    stage: PipelineStage
    start_time: datetime
    status: StepStatus = StepStatus.RUNNING
    retry_count: int = 0
    end_time: Optional[datetime] = None
    result_payload: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None

    @property
    def duration_s(self) -> Optional[float]:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()

    def finish(self, status: StepStatus, payload: Optional[dict] = None, error: Optional[str] = None):
        self.status = status
        self.end_time = datetime.now()
        self.result_payload = payload
        self.error_message = error

    def to_dict(self) -> dict:
        return {
            "stage": self.stage.name,
            "start_time": _iso(self.start_time),
            "end_time": _iso(self.end_time),
            "status": self.status.value,
            "retry_count": self.retry_count,
            "result_payload": self.result_payload,
            "error_message": self.error_message,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StepAttempt":
        return cls(
            stage=PipelineStage[data["stage"]],
            start_time=_parse_iso(data["start_time"]),
            status=StepStatus(data["status"]),
            retry_count=data.get("retry_count", 0),
            end_time=_parse_iso(data.get("end_time")),
            result_payload=data.get("result_payload"),
            error_message=data.get("error_message"),
        )


@dataclass(frozen=True)
class DocumentVersion:
    """
    Immutable snapshot of the document after a stage changed it.

    The stored document is a private deep copy; use copy_document() to get a
    working copy.
    """

    version_number: int
    producing_stage: PipelineStage
    document: dict
    timestamp: datetime
    changes: Tuple[str, ...] = ()

    def copy_document(self) -> dict:
        return copy.deepcopy(self.document)

    def to_dict(self) -> dict:
        return {
            "version_number": self.version_number,
            "producing_stage": self.producing_stage.name,
            "document": copy.deepcopy(self.document),
            "timestamp": _iso(self.timestamp),
            "changes": list(self.changes),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DocumentVersion":
        return cls(
            version_number=data["version_number"],
            producing_stage=PipelineStage[data["producing_stage"]],
            document=copy.deepcopy(data["document"]),
            timestamp=_parse_iso(data["timestamp"]),
            changes=tuple(data.get("changes", [])),
        )


@dataclass
class RecordedInput:
    """
    User-supplied input or a stage output kept for later stages.

    consumed marks a user input that a stage has already applied.
    """

    stage: PipelineStage
    timestamp: datetime
    input_kind: str
    payload: Any
    consumed: bool = False

    def to_dict(self) -> dict:
        return {
            "stage": self.stage.name,
            "timestamp": _iso(self.timestamp),
            "input_kind": self.input_kind,
            "payload": copy.deepcopy(self.payload),
            "consumed": self.consumed,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RecordedInput":
        return cls(
            stage=PipelineStage[data["stage"]],
            timestamp=_parse_iso(data["timestamp"]),
            input_kind=data["input_kind"],
            payload=copy.deepcopy(data["payload"]),
            consumed=data.get("consumed", False),
        )


@dataclass
class ErrorRecord:
    stage: PipelineStage
    timestamp: datetime
    message: str
    trace: Optional[str] = None
    retry_attempt: int = 0
    category: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "stage": self.stage.name,
            "timestamp": _iso(self.timestamp),
            "message": self.message,
            "trace": self.trace,
            "retry_attempt": self.retry_attempt,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ErrorRecord":
        return cls(
            stage=PipelineStage[data["stage"]],
            timestamp=_parse_iso(data["timestamp"]),
            message=data["message"],
            trace=data.get("trace"),
            retry_attempt=data.get("retry_attempt", 0),
            category=data.get("category"),
        )


def _error_log() -> deque:
    return deque(maxlen=ERROR_LOG_SIZE)


@dataclass
class PipelineSession:
    """
    Execution context of one optimization run.

    Example:
        session = PipelineSession(user_id="u-42", requirements_text=job_description)
        session.record_input(PipelineStage.MISSING_SECTIONS_INPUT, "missing_sections", payload)
        latest = session.latest_version()
    """

    user_id: str
    requirements_text: str = ""
    target_role: str = ""
    session_id: str = field(default_factory=generate_session_id)
    created_at: datetime = field(default_factory=datetime.now)
    last_updated: datetime = field(default_factory=datetime.now)
    current_stage: PipelineStage = PipelineStage.PARSE_RESUME
    step_history: List[StepAttempt] = field(default_factory=list)
    document_versions: List[DocumentVersion] = field(default_factory=list)
    recorded_inputs: List[RecordedInput] = field(default_factory=list)
    error_log: deque = field(default_factory=_error_log)
    in_flight: bool = False

    def touch(self) -> None:
        self.last_updated = datetime.now()

    # =========================================================================
    # STEP HISTORY
    # =========================================================================

    def start_attempt(self, stage: PipelineStage) -> StepAttempt:
        attempt = StepAttempt(
            stage=stage, start_time=datetime.now(), retry_count=self.retry_count(stage)
        )
        self.step_history.append(attempt)
        self.touch()
        return attempt

    def attempts_for(self, stage: PipelineStage) -> List[StepAttempt]:
        return [a for a in self.step_history if a.stage == stage]

    def last_attempt(self, stage: PipelineStage) -> Optional[StepAttempt]:
        attempts = self.attempts_for(stage)
        return attempts[-1] if attempts else None

    def retry_count(self, stage: PipelineStage) -> int:
        """Number of failed attempts of a stage so far."""
        return sum(1 for a in self.attempts_for(stage) if a.status == StepStatus.FAILED)

    def stage_status(self, stage: PipelineStage) -> Optional[StepStatus]:
        """Status of the stage's last attempt (None if never attempted)."""
        attempt = self.last_attempt(stage)
        return attempt.status if attempt is not None else None

    def is_completed(self, stage: PipelineStage) -> bool:
        return self.stage_status(stage) == StepStatus.COMPLETED

    def completed_stages(self) -> List[PipelineStage]:
        return [s for s in PIPELINE_STAGES if self.stage_status(s) == StepStatus.COMPLETED]

    def failed_stages(self) -> List[PipelineStage]:
        return [s for s in PIPELINE_STAGES if self.stage_status(s) == StepStatus.FAILED]

    def running_attempts(self) -> List[StepAttempt]:
        return [a for a in self.step_history if a.status == StepStatus.RUNNING]

    def awaiting_input(self) -> bool:
        """True when the current stage's last attempt paused for user input."""
        attempt = self.last_attempt(self.current_stage)
        return attempt is not None and attempt.status == StepStatus.AWAITING_INPUT

    def remove_latest_completed(self, stage: PipelineStage) -> Optional[StepAttempt]:
        for index in range(len(self.step_history) - 1, -1, -1):
            attempt = self.step_history[index]
            if attempt.stage == stage and attempt.status == StepStatus.COMPLETED:
                return self.step_history.pop(index)
        return None

    # =========================================================================
    # DOCUMENT VERSIONS
    # =========================================================================

    def append_version(
        self, document: dict, changes: List[str], stage: Optional[PipelineStage] = None
    ) -> DocumentVersion:
        """Snapshot a deep copy of document as the next version."""
        version = DocumentVersion(
            version_number=len(self.document_versions) + 1,
            producing_stage=stage if stage is not None else self.current_stage,
            document=copy.deepcopy(document),
            timestamp=datetime.now(),
            changes=tuple(changes),
        )
        self.document_versions.append(version)
        self.touch()
        return version

    def latest_version(self) -> Optional[DocumentVersion]:
        return self.document_versions[-1] if self.document_versions else None

    # =========================================================================
    # RECORDED INPUTS
    # =========================================================================

    def record_input(self, stage: PipelineStage, input_kind: str, payload: Any) -> RecordedInput:
        record = RecordedInput(
            stage=stage,
            timestamp=datetime.now(),
            input_kind=input_kind,
            payload=copy.deepcopy(payload),
        )
        self.recorded_inputs.append(record)
        self.touch()
        return record

    def latest_input(self, input_kind: str) -> Optional[RecordedInput]:
        for record in reversed(self.recorded_inputs):
            if record.input_kind == input_kind:
                return record
        return None

    def pending_input(self, input_kind: str) -> Optional[RecordedInput]:
        """Latest input of this kind that no stage has applied yet."""
        record = self.latest_input(input_kind)
        if record is None or record.consumed:
            return None
        return record

    # =========================================================================
    # ERRORS
    # =========================================================================

    def log_error(
        self,
        stage: PipelineStage,
        message: str,
        trace: Optional[str] = None,
        category: Optional[str] = None,
    ) -> ErrorRecord:
        record = ErrorRecord(
            stage=stage,
            timestamp=datetime.now(),
            message=message,
            trace=trace,
            retry_attempt=self.retry_count(stage),
            category=category,
        )
        self.error_log.append(record)
        self.touch()
        return record

    def recent_error_messages(self, limit: int = VISIBLE_ERRORS) -> List[str]:
        return [record.message for record in list(self.error_log)[-limit:]]

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "requirements_text": self.requirements_text,
            "target_role": self.target_role,
            "created_at": _iso(self.created_at),
            "last_updated": _iso(self.last_updated),
            "current_stage": self.current_stage.name,
            "step_history": [a.to_dict() for a in self.step_history],
            "document_versions": [v.to_dict() for v in self.document_versions],
            "recorded_inputs": [r.to_dict() for r in self.recorded_inputs],
            "error_log": [e.to_dict() for e in self.error_log],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PipelineSession":
        """Rebuild a session saved with to_dict(). The in-flight flag is not restored."""
        error_log = _error_log()
        error_log.extend(ErrorRecord.from_dict(e) for e in data.get("error_log", []))
        return cls(
            user_id=data["user_id"],
            requirements_text=data.get("requirements_text", ""),
            target_role=data.get("target_role", ""),
            session_id=data["session_id"],
            created_at=_parse_iso(data["created_at"]),
            last_updated=_parse_iso(data.get("last_updated") or data["created_at"]),
            current_stage=PipelineStage[data["current_stage"]],
            step_history=[StepAttempt.from_dict(a) for a in data.get("step_history", [])],
            document_versions=[
                DocumentVersion.from_dict(v) for v in data.get("document_versions", [])
            ],
            recorded_inputs=[RecordedInput.from_dict(r) for r in data.get("recorded_inputs", [])],
            error_log=error_log,
        )
