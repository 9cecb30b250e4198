"""Unit tests for pipeline session state."""

import re

import pytest

from quiver.contexts.pipeline.session import (
    ERROR_LOG_SIZE,
    PipelineSession,
    StepStatus,
    generate_session_id,
)
from quiver.contexts.pipeline.stages import PipelineStage


@pytest.fixture
def session():
    return PipelineSession(user_id="u-1", requirements_text="Python role")


@pytest.mark.unit
def test_session_id_format():
    assert re.fullmatch(r"pipeline_\d+_[0-9a-z]{9}", generate_session_id())
    assert generate_session_id() != generate_session_id()


@pytest.mark.unit
def test_new_session_defaults(session):
    assert session.current_stage is PipelineStage.PARSE_RESUME
    assert session.step_history == []
    assert session.latest_version() is None
    assert not session.in_flight


@pytest.mark.unit
def test_retry_count_counts_failed_attempts(session):
    first = session.start_attempt(PipelineStage.PARSE_RESUME)
    first.finish(StepStatus.FAILED, error="boom")
    second = session.start_attempt(PipelineStage.PARSE_RESUME)

    assert first.retry_count == 0
    assert second.retry_count == 1
    assert session.retry_count(PipelineStage.PARSE_RESUME) == 1
    # The running retry is now the stage's last attempt
    assert session.failed_stages() == []
    assert session.running_attempts() == [second]


@pytest.mark.unit
def test_last_attempt_decides_stage_status(session):
    session.start_attempt(PipelineStage.PARSE_RESUME).finish(StepStatus.FAILED, error="boom")
    session.start_attempt(PipelineStage.PARSE_RESUME).finish(StepStatus.COMPLETED)
    session.start_attempt(PipelineStage.ANALYZE_AGAINST_REQUIREMENTS).finish(StepStatus.COMPLETED)
    session.start_attempt(PipelineStage.ANALYZE_AGAINST_REQUIREMENTS).finish(StepStatus.FAILED, error="slow")

    assert session.completed_stages() == [PipelineStage.PARSE_RESUME]
    assert session.failed_stages() == [PipelineStage.ANALYZE_AGAINST_REQUIREMENTS]
    assert session.stage_status(PipelineStage.MISSING_SECTIONS_INPUT) is None
    assert not session.is_completed(PipelineStage.ANALYZE_AGAINST_REQUIREMENTS)


@pytest.mark.unit
def test_versions_are_numbered_and_isolated(session):
    document = {"name": "Ada", "skills": []}
    first = session.append_version(document, ["Parsed"], PipelineStage.PARSE_RESUME)
    document["name"] = "Changed"
    second = session.append_version(document, [], PipelineStage.RE_ANALYSIS)

    assert [v.version_number for v in session.document_versions] == [1, 2]
    assert first.document["name"] == "Ada"
    assert second.producing_stage is PipelineStage.RE_ANALYSIS

    working = first.copy_document()
    working["name"] = "Mutated"
    assert session.document_versions[0].document["name"] == "Ada"


@pytest.mark.unit
def test_pending_input_is_consumed_once(session):
    record = session.record_input(PipelineStage.MISSING_SECTIONS_INPUT, "missing_sections", {"a": 1})

    assert session.pending_input("missing_sections") is record
    record.consumed = True
    assert session.pending_input("missing_sections") is None
    assert session.latest_input("missing_sections") is record


@pytest.mark.unit
def test_error_log_keeps_most_recent_entries(session):
    for i in range(ERROR_LOG_SIZE + 10):
        session.log_error(PipelineStage.PARSE_RESUME, f"error {i}")

    assert ERROR_LOG_SIZE == 50
    assert len(session.error_log) == ERROR_LOG_SIZE
    assert session.error_log[0].message == "error 10"
    assert session.recent_error_messages() == [f"error {i}" for i in range(55, 60)]


@pytest.mark.unit
def test_remove_latest_completed(session):
    for _ in range(2):
        session.start_attempt(PipelineStage.PARSE_RESUME).finish(StepStatus.COMPLETED, {"n": 1})

    removed = session.remove_latest_completed(PipelineStage.PARSE_RESUME)

    assert removed is not None
    assert len(session.attempts_for(PipelineStage.PARSE_RESUME)) == 1
    assert session.remove_latest_completed(PipelineStage.RE_ANALYSIS) is None


@pytest.mark.unit
def test_round_trip_through_dict(session):
    session.start_attempt(PipelineStage.PARSE_RESUME).finish(StepStatus.COMPLETED, {"ok": True})
    session.append_version({"name": "Ada"}, ["Parsed"], PipelineStage.PARSE_RESUME)
    session.record_input(PipelineStage.PARSE_RESUME, "analysis_results", {"score": 70})
    session.log_error(PipelineStage.ANALYZE_AGAINST_REQUIREMENTS, "timeout", category="analysis_timeout")
    session.current_stage = PipelineStage.ANALYZE_AGAINST_REQUIREMENTS
    session.in_flight = True

    restored = PipelineSession.from_dict(session.to_dict())

    assert restored.to_dict() == session.to_dict()
    assert restored.current_stage is PipelineStage.ANALYZE_AGAINST_REQUIREMENTS
    assert restored.step_history[0].duration_s is not None
    assert restored.document_versions[0].changes == ("Parsed",)
    assert restored.error_log.maxlen == ERROR_LOG_SIZE
    assert not restored.in_flight
