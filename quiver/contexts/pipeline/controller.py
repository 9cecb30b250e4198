"""
Pipeline controller: the per-session state machine driving the eight stages.

The controller owns the session's lifecycle. It records a StepAttempt around
every stage execution, converts stage exceptions into failed results and
error records, applies recovery strategies (exponential backoff retry, then
fallback options), moves current_stage, and notifies observers.

Usage:
    from quiver.contexts.pipeline.controller import PipelineController

    controller = PipelineController.create("u-42", ports, requirements_text=job_text)
    result = controller.run_step(input={"file": Path("resume.pdf")})
    ...
    controller.record_user_input(PipelineStage.MISSING_SECTIONS_INPUT, sections)
    result = controller.run_step()
"""

import dataclasses
import math
import time
import traceback
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from quiver.contexts.pipeline.errors import (
    RecoveryOutcome,
    StageInFlightError,
    StageValidationError,
    backoff_delay,
    categorize_error,
    get_strategy,
)
from quiver.contexts.pipeline.logger import (
    log_listener_error,
    log_recovery_exhausted,
    log_retry_scheduled,
    log_rollback,
    log_stage_completed,
    log_stage_failed,
    log_stage_paused,
    log_stage_start,
    log_version_saved,
    setup_pipeline_logger,
)
from quiver.contexts.pipeline.ports import PipelinePorts
from quiver.contexts.pipeline.session import (
    DocumentVersion,
    PipelineSession,
    RecordedInput,
    StepAttempt,
    StepStatus,
)
from quiver.contexts.pipeline.stages import (
    PIPELINE_STAGES,
    STAGE_DESCRIPTIONS,
    STAGE_NAMES,
    STAGE_WEIGHTS,
    TOTAL_STAGES,
    PipelineStage,
    next_stage,
    previous_stage,
    user_action_description,
)
from quiver.contexts.pipeline.steps import (
    STAGE_HANDLERS,
    USER_INPUT_KINDS,
    StageContext,
    StepResult,
)
from quiver.utils.event_logging import log_pipeline_event

EVENT_SOURCE = "pipeline"

StateListener = Callable[[dict], None]
ProgressListener = Callable[[dict], None]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class PipelineController:
    """
    Drives one PipelineSession through the optimization stages.

    Stage errors never escape execute_step; they come back as a failed
    StepResult. Executing re-entrantly on a session that is mid-stage raises
    StageInFlightError.

    Attributes:
        session: The session being driven
        ports: External collaborators used by stage handlers
        last_error: Exception raised by the most recent failed stage, if any
    """

    def __init__(
        self,
        session: PipelineSession,
        ports: PipelinePorts,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session = session
        self.ports = ports
        self.last_error: Optional[BaseException] = None
        self._sleep = sleep
        self._state_listeners: List[StateListener] = []
        self._progress_listeners: List[ProgressListener] = []

    @classmethod
    def create(
        cls,
        user_id: str,
        ports: PipelinePorts,
        requirements_text: str = "",
        target_role: str = "",
        sleep: Callable[[float], None] = time.sleep,
        log_dir: Optional[Path] = None,
    ) -> "PipelineController":
        """
        Start a new session for a user and return its controller.

        When log_dir is given, Tier 1 logging is configured there with the
        new session id in the provenance header.
        """
        session = PipelineSession(
            user_id=user_id, requirements_text=requirements_text or "", target_role=target_role or ""
        )
        if log_dir is not None:
            setup_pipeline_logger(log_dir, session.session_id)
        log_pipeline_event(
            event_type="session_created",
            session_id=session.session_id,
            source=EVENT_SOURCE,
            user_id=user_id,
            requirements_analysis=bool(session.requirements_text.strip()),
        )
        return cls(session, ports, sleep=sleep)

    # =========================================================================
    # OBSERVERS
    # =========================================================================

    def on_state_change(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener. Returns a function that unregisters it."""
        self._state_listeners.append(listener)
        return lambda: self._state_listeners.remove(listener)

    def on_progress_change(self, listener: ProgressListener) -> Callable[[], None]:
        """Register a progress listener. Returns a function that unregisters it."""
        self._progress_listeners.append(listener)
        return lambda: self._progress_listeners.remove(listener)

    def _notify_state(self) -> None:
        state = self.get_state()
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception as e:
                log_listener_error("state", e)

    def _notify_progress(self) -> None:
        progress = self.get_progress()
        for listener in list(self._progress_listeners):
            try:
                listener(progress)
            except Exception as e:
                log_listener_error("progress", e)

    def _notify(self) -> None:
        self._notify_state()
        self._notify_progress()

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_progress(self) -> dict:
        session = self.session
        current = session.current_stage

        total = 0.0
        for stage in PIPELINE_STAGES:
            if session.is_completed(stage):
                total += STAGE_WEIGHTS[stage]
            elif stage == current:
                total += STAGE_WEIGHTS[stage] / 2

        awaiting = session.awaiting_input()
        return {
            "current_stage": int(current),
            "total_stages": TOTAL_STAGES,
            "stage_name": STAGE_NAMES[current],
            "stage_description": STAGE_DESCRIPTIONS[current],
            "percentage_complete": _round_half_up(total),
            "estimated_time_remaining": self._estimate_time_remaining(),
            "user_action_required": awaiting,
            "action_description": user_action_description(current) if awaiting else None,
        }

    def _estimate_time_remaining(self) -> Optional[int]:
        """Mean completed-attempt duration times the stages still to go, in seconds."""
        durations = [
            a.duration_s
            for a in self.session.step_history
            if a.status == StepStatus.COMPLETED and a.duration_s is not None
        ]
        if not durations:
            return None

        completed = len(self.session.completed_stages())
        remaining = max(TOTAL_STAGES - completed, 0)
        return _round_half_up(sum(durations) / len(durations) * remaining)

    def get_state(self) -> dict:
        session = self.session
        running = session.running_attempts()
        return {
            "session_id": session.session_id,
            "user_id": session.user_id,
            "current_stage": int(session.current_stage),
            "completed_stages": [int(s) for s in session.completed_stages()],
            "failed_stages": [int(s) for s in session.failed_stages()],
            "running_stage": int(running[-1].stage) if running else None,
            "user_input_required": session.awaiting_input(),
            "error_messages": session.recent_error_messages(),
            "progress_percentage": self.get_progress()["percentage_complete"],
            "started_at": session.created_at.isoformat(),
            "last_updated": session.last_updated.isoformat(),
        }

    # =========================================================================
    # VERSIONS AND INPUTS
    # =========================================================================

    def _append_version(
        self, document: dict, changes: List[str], stage: Optional[PipelineStage] = None
    ) -> DocumentVersion:
        version = self.session.append_version(document, changes, stage=stage)
        log_version_saved(version.version_number, int(version.producing_stage), version.changes)
        return version

    def save_document_version(
        self, document: dict, changes: List[str], stage: Optional[PipelineStage] = None
    ) -> DocumentVersion:
        """Snapshot a document as the next version (producing stage defaults to current)."""
        version = self._append_version(document, changes, stage=stage)
        self._notify_state()
        return version

    def latest_document_version(self) -> Optional[DocumentVersion]:
        """Latest version, holding its own copy of the document."""
        version = self.session.latest_version()
        if version is None:
            return None
        return dataclasses.replace(version, document=version.copy_document())

    def record_user_input(self, stage: PipelineStage, payload: Any) -> RecordedInput:
        """
        Supply the payload a user-input stage paused for.

        Raises:
            ValueError: If the stage never takes user input
        """
        if stage not in USER_INPUT_KINDS:
            raise ValueError(f"Stage {stage.name} does not take user input")
        record = self.session.record_input(stage, USER_INPUT_KINDS[stage], payload)
        self._notify_state()
        return record

    # =========================================================================
    # EXECUTION
    # =========================================================================

    def execute_step(
        self, stage: Optional[PipelineStage] = None, input: Optional[Any] = None
    ) -> StepResult:
        """
        Execute one stage (the current stage by default).

        For the user-input stages, input is recorded as the stage's pending
        user input before the stage runs; for the others it is handed to the
        stage directly.

        Raises:
            StageInFlightError: If this session is already executing a stage
        """
        session = self.session
        if session.in_flight:
            raise StageInFlightError(
                f"Session {session.session_id} is already executing a stage"
            )
        if stage is None:
            stage = session.current_stage

        session.in_flight = True
        try:
            attempt = session.start_attempt(stage)
            log_stage_start(int(stage), STAGE_NAMES[stage], attempt.retry_count)
            log_pipeline_event(
                event_type="stage_started",
                session_id=session.session_id,
                source=EVENT_SOURCE,
                stage=stage.name,
                retry_count=attempt.retry_count,
            )
            self._notify_state()

            payload = input
            if input is not None and stage in USER_INPUT_KINDS:
                session.record_input(stage, USER_INPUT_KINDS[stage], input)
                payload = None

            try:
                result = self._run_handler(stage, payload)
            except Exception as e:
                result = self._record_failure(stage, attempt, e)
            else:
                self._record_success(stage, attempt, result)
        finally:
            session.in_flight = False

        self._notify()
        return result

    def _run_handler(self, stage: PipelineStage, payload: Optional[Any]) -> StepResult:
        handler = STAGE_HANDLERS.get(stage)
        if handler is None:
            raise StageValidationError(f"Invalid pipeline stage: {stage.name}")

        ctx = StageContext(
            session=self.session,
            ports=self.ports,
            stage=stage,
            save_version=lambda document, changes: self._append_version(document, changes, stage),
        )
        return handler(ctx, payload)

    def _record_success(self, stage: PipelineStage, attempt: StepAttempt, result: StepResult) -> None:
        session = self.session

        if result.user_input_required:
            attempt.finish(StepStatus.AWAITING_INPUT, payload=result.data)
            action = user_action_description(stage)
            log_stage_paused(int(stage), action)
            log_pipeline_event(
                event_type="stage_paused",
                session_id=session.session_id,
                source=EVENT_SOURCE,
                stage=stage.name,
                action=action,
            )
            session.touch()
            return

        attempt.finish(StepStatus.COMPLETED, payload=result.data)
        session.current_stage = result.next_stage
        session.touch()

        skipped = bool(result.data.get("skipped"))
        log_stage_completed(int(stage), STAGE_NAMES[stage], skipped=skipped)
        log_pipeline_event(
            event_type="stage_completed",
            session_id=session.session_id,
            source=EVENT_SOURCE,
            stage=stage.name,
            skipped=skipped,
            duration_s=attempt.duration_s,
            progress=result.progress_update,
        )

    def _record_failure(
        self, stage: PipelineStage, attempt: StepAttempt, error: Exception
    ) -> StepResult:
        session = self.session
        category = categorize_error(error)
        message = str(error) or type(error).__name__

        self.last_error = error
        attempt.finish(StepStatus.FAILED, error=message)
        session.log_error(stage, message, trace=traceback.format_exc(), category=category.value)

        log_stage_failed(int(stage), category.value, message)
        log_pipeline_event(
            event_type="stage_failed",
            session_id=session.session_id,
            source=EVENT_SOURCE,
            stage=stage.name,
            category=category.value,
            error=message,
        )

        data: Dict[str, Any] = {"error_type": category.value, "original_error": message}
        if isinstance(error, StageValidationError) and error.errors:
            data["validation_errors"] = list(error.errors)
        return StepResult(success=False, data=data, error=message)

    # =========================================================================
    # RECOVERY
    # =========================================================================

    def handle_step_failure(
        self, stage: PipelineStage, error: BaseException, input: Optional[Any] = None
    ) -> RecoveryOutcome:
        """
        Apply the recovery strategy for a failed stage.

        Retries (after an exponential backoff sleep) while the stage's failed
        attempt count is below the strategy's retry budget; otherwise returns
        the strategy's fallback options and user notification. Document
        versions are never discarded.

        Args:
            stage: Stage that failed
            error: Exception the stage raised
            input: Input to hand the stage again on retry

        Returns:
            RecoveryOutcome; retry_result holds the retry's StepResult when retried
        """
        session = self.session
        category = categorize_error(error)
        strategy = get_strategy(category)
        retries = session.retry_count(stage)

        if retries < strategy.retry_attempts:
            delay = backoff_delay(retries)
            log_retry_scheduled(int(stage), retries, strategy.retry_attempts, delay)
            log_pipeline_event(
                event_type="stage_retry",
                session_id=session.session_id,
                source=EVENT_SOURCE,
                stage=stage.name,
                category=category.value,
                retry_count=retries,
                delay_s=delay,
            )
            self._sleep(delay)
            result = self.execute_step(stage, input)
            return RecoveryOutcome(
                category=category, retried=True, retry_result=result, delay_s=delay
            )

        fallback_options = list(strategy.fallback_options)
        log_recovery_exhausted(int(stage), category.value, fallback_options)
        log_pipeline_event(
            event_type="recovery_exhausted",
            session_id=session.session_id,
            source=EVENT_SOURCE,
            stage=stage.name,
            category=category.value,
            fallback_options=fallback_options,
        )
        return RecoveryOutcome(
            category=category,
            retried=False,
            fallback_options=fallback_options,
            user_notification=strategy.user_notification,
            progress_preserved=strategy.preserve_progress,
        )

    def run_step(
        self, stage: Optional[PipelineStage] = None, input: Optional[Any] = None
    ) -> StepResult:
        """
        Execute a stage, retrying through handle_step_failure until it
        succeeds, pauses, or recovery is exhausted.

        A user-input payload is recorded once; retries use whatever input is
        still pending. When recovery is exhausted the failed result carries
        fallback_options and user_notification in its data.
        """
        if stage is None:
            stage = self.session.current_stage
        retry_input = None if stage in USER_INPUT_KINDS else input

        result = self.execute_step(stage, input)
        while not result.success:
            outcome = self.handle_step_failure(stage, self.last_error, retry_input)
            if outcome.exhausted:
                result.data["fallback_options"] = outcome.fallback_options
                result.data["user_notification"] = outcome.user_notification
                result.data["progress_preserved"] = outcome.progress_preserved
                break
            result = outcome.retry_result
        return result

    # =========================================================================
    # NAVIGATION
    # =========================================================================

    def rollback_to_previous_step(self) -> PipelineStage:
        """
        Move back one stage so its decision can be redone.

        Removes the most recent completed attempt of the stage returned to;
        document versions are kept. A no-op at the first stage.

        Returns:
            The current stage after the rollback
        """
        session = self.session
        current = session.current_stage
        if current == PipelineStage.COMPLETE:
            target = PipelineStage.OUTPUT_DOCUMENT
        else:
            target = previous_stage(current)
        if target is None:
            return current

        session.remove_latest_completed(target)
        session.current_stage = target
        session.touch()

        log_rollback(int(current), int(target))
        log_pipeline_event(
            event_type="rollback",
            session_id=session.session_id,
            source=EVENT_SOURCE,
            from_stage=current.name,
            to_stage=target.name,
        )
        self._notify()
        return target

    def proceed_to_next_step(self) -> PipelineStage:
        """
        Skip the current stage without running its handler. A no-op once COMPLETE.

        The skip is recorded as a completed attempt with a skipped payload, so
        the stage advances like any other successful execution.

        Raises:
            StageInFlightError: If this session is already executing a stage
        """
        session = self.session
        if session.in_flight:
            raise StageInFlightError(
                f"Session {session.session_id} is already executing a stage"
            )
        current = session.current_stage
        target = next_stage(current)
        if target is None:
            return current

        attempt = session.start_attempt(current)
        attempt.finish(StepStatus.COMPLETED, payload={"skipped": True, "proceeded": True})
        session.current_stage = target
        session.touch()

        log_stage_completed(int(current), STAGE_NAMES[current], skipped=True)
        log_pipeline_event(
            event_type="stage_skipped",
            session_id=session.session_id,
            source=EVENT_SOURCE,
            stage=current.name,
        )
        self._notify()
        return target
