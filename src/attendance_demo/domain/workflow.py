"""Models for the enroll/recognize/result workflow."""

from dataclasses import dataclass
from enum import StrEnum

from attendance_demo.domain.recognition import BoundingBox, TrackedEntity
from attendance_demo.domain.sessions import TimeRemaining


class WorkflowPhase(StrEnum):
    ENROLL = "enroll"
    RECOGNIZING = "recognizing"
    RESULT = "result"


class EnrollState(StrEnum):
    IDLE = "idle"
    PROCESSING = "processing"
    ENROLLED = "enrolled"


class RecognizeState(StrEnum):
    """Sub-state of the recognizing phase; ``error`` only offers a retry."""

    IDLE = "idle"
    CAMERA_STARTING = "camera_starting"
    SCANNING = "scanning"
    MATCHED = "matched"
    ERROR = "error"


@dataclass(frozen=True)
class WorkflowSnapshot:
    """Read-only view of the workflow for hosts and UIs."""

    phase: WorkflowPhase
    enroll_state: EnrollState
    recognize_state: RecognizeState
    error: str | None
    matched_name: str | None
    matched_confidence: float | None
    entities: tuple[TrackedEntity, ...]
    regions: tuple[BoundingBox, ...]
    session_id: str
    time_remaining: TimeRemaining | None
    completed: bool
