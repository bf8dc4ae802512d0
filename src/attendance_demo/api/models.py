"""Pydantic response models for the local workflow API."""

from datetime import datetime

from pydantic import BaseModel

from attendance_demo.domain.recognition import EnrollResult, TrackedEntity
from attendance_demo.domain.sessions import AnonymousSession, TimeRemaining
from attendance_demo.domain.workflow import WorkflowSnapshot


class TimeRemainingView(BaseModel):
    days: int
    hours: int


class EntityView(BaseModel):
    """Tracked entity as shown on the live overlay."""

    id: str
    name: str
    type: str
    confidence: float | None
    bbox: list[float]
    attendance_status: str


class WorkflowView(BaseModel):
    """Snapshot of the workflow for UI polling."""

    phase: str
    enroll_state: str
    recognize_state: str
    error: str | None
    matched_name: str | None
    matched_confidence: float | None
    faces: list[EntityView]
    scanning_bboxes: list[list[float]]
    session_id: str
    time_remaining: TimeRemainingView | None
    completed: bool


class SessionView(BaseModel):
    session_id: str
    created_at: datetime
    enrolled_at: datetime | None
    expires_at: datetime
    time_remaining: TimeRemainingView | None


class EnrollView(BaseModel):
    success: bool
    code: str | None
    message: str | None
    user_id: str | None
    workflow: WorkflowView


def time_remaining_view(remaining: TimeRemaining | None) -> TimeRemainingView | None:
    if remaining is None:
        return None
    return TimeRemainingView(days=remaining.days, hours=remaining.hours)


def entity_view(entity: TrackedEntity) -> EntityView:
    return EntityView(
        id=entity.id,
        name=entity.display_name,
        type=entity.category.value,
        confidence=entity.confidence,
        bbox=entity.bounding_box.as_list(),
        attendance_status=entity.attendance_state.value,
    )


def workflow_view(snapshot: WorkflowSnapshot) -> WorkflowView:
    return WorkflowView(
        phase=snapshot.phase.value,
        enroll_state=snapshot.enroll_state.value,
        recognize_state=snapshot.recognize_state.value,
        error=snapshot.error,
        matched_name=snapshot.matched_name,
        matched_confidence=snapshot.matched_confidence,
        faces=[entity_view(entity) for entity in snapshot.entities],
        scanning_bboxes=[box.as_list() for box in snapshot.regions],
        session_id=snapshot.session_id,
        time_remaining=time_remaining_view(snapshot.time_remaining),
        completed=snapshot.completed,
    )


def session_view(
    session: AnonymousSession, remaining: TimeRemaining | None
) -> SessionView:
    return SessionView(
        session_id=session.session_id,
        created_at=session.created_at,
        enrolled_at=session.enrolled_at,
        expires_at=session.expires_at,
        time_remaining=time_remaining_view(remaining),
    )


def enroll_view(result: EnrollResult, snapshot: WorkflowSnapshot) -> EnrollView:
    return EnrollView(
        success=result.success,
        code=result.code.value if result.code else None,
        message=result.message,
        user_id=result.user_id,
        workflow=workflow_view(snapshot),
    )
