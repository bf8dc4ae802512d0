"""Tests for recognition reply normalization."""

import pytest

from attendance_demo.domain.recognition import (
    AttendanceState,
    BoundingBox,
    EntityCategory,
    FrameObservation,
    NoFacePresent,
    ServiceRejection,
)
from attendance_demo.services.normalizer import normalize_recognition, parse_box
from tests.conftest import known_reply


def _observation(payload: object) -> FrameObservation:
    reading = normalize_recognition(payload, seen_at=42.0)
    assert isinstance(reading, FrameObservation)
    return reading


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ([1, 2, 3, 4], BoundingBox(1.0, 2.0, 3.0, 4.0)),
        ((1.5, 2, 3, 4, 99), BoundingBox(1.5, 2.0, 3.0, 4.0)),
        ([1, 2, 3], None),
        ([1, "2", 3, 4], None),
        ([True, 2, 3, 4], None),
        ("1234", None),
        (None, None),
    ],
)
def test_parse_box(value: object, expected: BoundingBox | None) -> None:
    assert parse_box(value) == expected


def test_known_result_becomes_member_entity() -> None:
    observation = _observation(known_reply(marked=True))

    assert observation.regions == ()
    (entity,) = observation.entities
    assert entity.id == "user-1"
    assert entity.display_name == "Ada"
    assert entity.category is EntityCategory.MEMBER
    assert entity.confidence == pytest.approx(0.93)
    assert entity.bounding_box == BoundingBox(10, 20, 110, 140)
    assert entity.attendance_state is AttendanceState.CONFIRMED
    assert entity.last_seen_at == 42.0


def test_known_result_without_marked_flag_is_detecting() -> None:
    payload = known_reply()
    payload["attendance_marked"] = "yes"

    (entity,) = _observation(payload).entities

    assert entity.attendance_state is AttendanceState.DETECTING
    assert entity.is_confirmed is False


def test_known_result_defaults() -> None:
    payload = known_reply(confidence=0)
    del payload["name"]

    (entity,) = _observation(payload).entities

    assert entity.display_name == "Member"
    assert entity.confidence is None


def test_known_result_without_box_is_dropped() -> None:
    payload = known_reply()
    payload["bbox"] = [1, 2]

    assert _observation(payload) == FrameObservation()


def test_temp_result_becomes_region() -> None:
    observation = _observation(
        {"success": True, "type": "TEMP", "temp_user_id": "t-9", "bbox": [5, 6, 7, 8]}
    )

    assert observation.entities == ()
    assert observation.regions == (BoundingBox(5, 6, 7, 8),)


def test_temp_result_without_temp_id_is_ignored() -> None:
    assert _observation({"type": "TEMP", "bbox": [5, 6, 7, 8]}) == FrameObservation()


def test_legacy_faces_split_into_entities_and_regions() -> None:
    observation = _observation(
        {
            "success": True,
            "faces": [
                {
                    "recognized": True,
                    "user_id": 7,
                    "name": "Grace",
                    "confidence": 0.8,
                    "bbox": [0, 0, 10, 10],
                    "attendance_status": "already_marked",
                },
                {
                    "recognized": True,
                    "user_id": "v-1",
                    "type": "visitor",
                    "bbox": [20, 20, 30, 30],
                },
                {"recognized": False, "bbox": [40, 40, 50, 50]},
                {"recognized": True, "bbox": [60, 60, 70, 70]},
                {"recognized": True, "user_id": "x", "bbox": [1, 2]},
                "garbage",
            ],
        }
    )

    member, visitor = observation.entities
    assert member.id == "7"
    assert member.category is EntityCategory.MEMBER
    assert member.is_confirmed is True
    assert visitor.category is EntityCategory.VISITOR
    assert visitor.display_name == "Member"
    assert visitor.is_confirmed is False
    assert observation.regions == (
        BoundingBox(40, 40, 50, 50),
        BoundingBox(60, 60, 70, 70),
    )


@pytest.mark.parametrize("status", ["marked", "already_marked"])
def test_legacy_confirmed_statuses(status: str) -> None:
    observation = _observation(
        {
            "faces": [
                {
                    "recognized": True,
                    "user_id": "u",
                    "bbox": [0, 0, 1, 1],
                    "attendance_status": status,
                }
            ]
        }
    )

    assert observation.entities[0].is_confirmed is True


def test_current_and_legacy_shapes_combine() -> None:
    payload = known_reply()
    payload["faces"] = [{"recognized": False, "bbox": [1, 1, 2, 2]}]

    observation = _observation(payload)

    assert len(observation.entities) == 1
    assert observation.regions == (BoundingBox(1, 1, 2, 2),)


def test_no_face_code() -> None:
    reading = normalize_recognition({"success": True, "code": "NO_FACE"}, seen_at=0.0)

    assert isinstance(reading, NoFacePresent)


def test_explicit_failure_is_rejection() -> None:
    reading = normalize_recognition(
        {"success": False, "error": "Frame too dark"}, seen_at=0.0
    )

    assert reading == ServiceRejection(message="Frame too dark")


def test_failure_without_message_has_default() -> None:
    reading = normalize_recognition({"success": False}, seen_at=0.0)

    assert reading == ServiceRejection(message="Recognition failed")


@pytest.mark.parametrize("payload", [None, [], "ok", {"success": True}])
def test_unrecognizable_payloads_are_empty(payload: object) -> None:
    assert normalize_recognition(payload, seen_at=0.0) == FrameObservation()
