"""
Pipeline event logging utilities for QUIVER (Tier 2 logging).

Provides uniform interfaces for logging pipeline events to pipeline_events.log.
This is the cross-session audit trail, written as a JSON Lines event log.

For detailed within-context logging (Tier 1), use quiver.utils.logger instead.

Usage:
    from quiver.utils.event_logging import log_pipeline_event, get_recent_events

    log_pipeline_event(
        event_type="stage_completed",
        session_id="pipeline_1740000000000_k3j9x0a1b",
        source="pipeline",
        stage="PARSE_RESUME",
        duration_s=1.2,
    )

    events = get_recent_events(5, event_type="stage_failed")
"""

import json
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from quiver.utils.timestamp import now_exact

load_dotenv()
LOGS_PATH = Path(os.getenv("LOGS_PATH", "outs/logs"))
PIPELINE_EVENTS_FILE = Path(
    os.getenv("PIPELINE_EVENTS_FILE", str(LOGS_PATH / "pipeline_events.log"))
)

# Event types that change where a session sits in the workflow
TRANSITION_EVENTS = {"stage_completed", "rollback", "stage_skipped"}


def log_pipeline_event(event_type: str, session_id: str, source: str, **extra_fields) -> None:
    """
    Log an event to the master pipeline event log.

    Events are appended to the log in JSON Lines format (one JSON object per
    line), so they can be streamed and filtered by event_type, session_id,
    or source.

    Args:
        event_type: Type of event (e.g., "stage_started", "stage_failed", "rollback")
        session_id: Pipeline session identifier
        source: Event source (e.g., "pipeline", "store", "cli")
        **extra_fields: Additional event-specific fields (must be JSON serializable)
    """
    PIPELINE_EVENTS_FILE.parent.mkdir(parents=True, exist_ok=True)

    event = {
        "timestamp": now_exact(),
        "event_type": event_type,
        "session_id": session_id,
        "source": source,
        **extra_fields,
    }

    with open(PIPELINE_EVENTS_FILE, "a", encoding="utf-8") as f:
        f.write(json.dumps(event, default=str) + "\n")


def get_recent_events(
    n: int = 10, session_id: Optional[str] = None, event_type: Optional[str] = None
) -> list[dict]:
    """
    Get the last n events from the pipeline log, optionally filtered.

    Args:
        n: Number of recent events to return (default: 10)
        session_id: Filter to only events for this session (optional)
        event_type: Filter to only events of this type (optional)

    Returns:
        List of event dicts (most recent last)
    """
    if not PIPELINE_EVENTS_FILE.exists():
        return []

    events = []
    with open(PIPELINE_EVENTS_FILE, "r", encoding="utf-8") as f:
        for line in f:
            try:
                events.append(json.loads(line.strip()))
            except json.JSONDecodeError:
                # Skip malformed lines
                continue

    if session_id:
        events = [e for e in events if e.get("session_id") == session_id]

    if event_type:
        events = [e for e in events if e.get("event_type") == event_type]

    return events[-n:] if len(events) > n else events


def get_stage_trail(session_id: str) -> list[str]:
    """
    Rebuild the sequence of stage transitions for one session.

    Returns:
        Stage names in the order they were completed, skipped, or rolled back to
        (rollback entries are prefixed with "<-").
    """
    trail = []
    for event in get_recent_events(n=10**9, session_id=session_id):
        if event.get("event_type") not in TRANSITION_EVENTS:
            continue
        if event["event_type"] == "rollback":
            trail.append(f"<-{event.get('to_stage')}")
        else:
            trail.append(event.get("stage"))
    return trail
