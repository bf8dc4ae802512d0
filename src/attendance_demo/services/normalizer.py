"""Normalization of recognition replies into tracked entities and regions.

The recognition service answers in one of two shapes:

* current: a single result at the top level, tagged ``type`` ``KNOWN`` (an
  identity with ``user_id``) or ``TEMP`` (a face with only ``temp_user_id``);
* legacy: a ``faces`` list where each entry is either ``recognized`` with a
  ``user_id`` or an unrecognized detection.

Both collapse into a single :data:`RecognitionReading`. Only identities become
tracked entities; everything else contributes to the unidentified overlay.
Entries without a usable bounding box are dropped.
"""

from collections.abc import Sequence
from numbers import Real

from attendance_demo.domain.recognition import (
    AttendanceState,
    BoundingBox,
    EntityCategory,
    FrameObservation,
    NoFacePresent,
    RecognitionReading,
    ServiceRejection,
    TrackedEntity,
)

NO_FACE_CODE = "NO_FACE"
DEFAULT_DISPLAY_NAME = "Member"
_CONFIRMED_LEGACY_STATUSES = {"marked", "already_marked"}


def normalize_recognition(payload: object, seen_at: float) -> RecognitionReading:
    """Parse a raw recognition reply.

    ``seen_at`` becomes ``last_seen_at`` of every entity in the reply.
    """
    if not isinstance(payload, dict):
        return FrameObservation()
    if payload.get("success") is False:
        message = _first_text(payload, "error", "message") or "Recognition failed"
        return ServiceRejection(message=message)
    if payload.get("code") == NO_FACE_CODE:
        return NoFacePresent()

    entities: list[TrackedEntity] = []
    regions: list[BoundingBox] = []
    _collect_current(payload, seen_at, entities, regions)
    _collect_legacy(payload.get("faces"), seen_at, entities, regions)
    return FrameObservation(entities=tuple(entities), regions=tuple(regions))


def parse_box(value: object) -> BoundingBox | None:
    """Return a box from at least four numeric coordinates, else None."""
    if not isinstance(value, Sequence) or isinstance(value, str | bytes):
        return None
    if len(value) < 4:
        return None
    coords = value[:4]
    if not all(_is_number(v) for v in coords):
        return None
    return BoundingBox(*(float(v) for v in coords))


def _collect_current(
    payload: dict[str, object],
    seen_at: float,
    entities: list[TrackedEntity],
    regions: list[BoundingBox],
) -> None:
    kind = payload.get("type")
    box = parse_box(payload.get("bbox"))
    if box is None:
        return
    if kind == "KNOWN" and payload.get("user_id"):
        entities.append(
            TrackedEntity(
                id=str(payload["user_id"]),
                display_name=_first_text(payload, "name") or DEFAULT_DISPLAY_NAME,
                category=EntityCategory.MEMBER,
                confidence=_confidence(payload.get("confidence")),
                bounding_box=box,
                attendance_state=(
                    AttendanceState.CONFIRMED
                    if payload.get("attendance_marked") is True
                    else AttendanceState.DETECTING
                ),
                last_seen_at=seen_at,
            )
        )
    elif kind == "TEMP" and payload.get("temp_user_id"):
        regions.append(box)


def _collect_legacy(
    faces: object,
    seen_at: float,
    entities: list[TrackedEntity],
    regions: list[BoundingBox],
) -> None:
    if not isinstance(faces, list):
        return
    for face in faces:
        if not isinstance(face, dict):
            continue
        box = parse_box(face.get("bbox"))
        if box is None:
            continue
        if face.get("recognized") and face.get("user_id"):
            confirmed = face.get("attendance_status") in _CONFIRMED_LEGACY_STATUSES
            entities.append(
                TrackedEntity(
                    id=str(face["user_id"]),
                    display_name=_first_text(face, "name") or DEFAULT_DISPLAY_NAME,
                    category=(
                        EntityCategory.VISITOR
                        if face.get("type") == EntityCategory.VISITOR.value
                        else EntityCategory.MEMBER
                    ),
                    confidence=_confidence(face.get("confidence")),
                    bounding_box=box,
                    attendance_state=(
                        AttendanceState.CONFIRMED
                        if confirmed
                        else AttendanceState.DETECTING
                    ),
                    last_seen_at=seen_at,
                )
            )
        else:
            regions.append(box)


def _is_number(value: object) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _confidence(value: object) -> float | None:
    if not _is_number(value) or not value:
        return None
    return float(value)


def _first_text(data: dict[str, object], *keys: str) -> str | None:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    return None
