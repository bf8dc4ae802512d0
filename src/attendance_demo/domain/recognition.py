"""Models for recognition results and tracked entities."""

from dataclasses import dataclass
from enum import StrEnum


class EntityCategory(StrEnum):
    MEMBER = "member"
    VISITOR = "visitor"


class AttendanceState(StrEnum):
    """``confirmed`` means the service recorded attendance, not just a match."""

    DETECTING = "detecting"
    CONFIRMED = "confirmed"


class FailureKind(StrEnum):
    NETWORK = "network"
    HTTP = "http"
    PARSE = "parse"


class EnrollFailureCode(StrEnum):
    UNUSABLE_PHOTO = "unusable_photo"
    DUPLICATE_IDENTITY = "duplicate_identity"
    FAILED = "failed"


@dataclass(frozen=True)
class BoundingBox:
    """Face rectangle as ``(x1, y1, x2, y2)`` in frame coordinates."""

    x1: float
    y1: float
    x2: float
    y2: float

    def as_list(self) -> list[float]:
        return [self.x1, self.y1, self.x2, self.y2]


@dataclass(frozen=True)
class TrackedEntity:
    """A recognized identity believed to be in front of the camera."""

    id: str
    display_name: str
    category: EntityCategory
    confidence: float | None
    bounding_box: BoundingBox
    attendance_state: AttendanceState
    last_seen_at: float

    @property
    def is_confirmed(self) -> bool:
        return self.attendance_state is AttendanceState.CONFIRMED


@dataclass(frozen=True)
class CallFailure:
    """A recognition call that did not produce a usable service reply."""

    kind: FailureKind
    message: str
    status_code: int | None = None


@dataclass(frozen=True)
class EnrollResult:
    """Outcome of a single enrollment call."""

    success: bool
    message: str | None = None
    code: EnrollFailureCode | None = None
    user_id: str | None = None
    failure: CallFailure | None = None

    @property
    def is_transient(self) -> bool:
        return self.failure is not None


@dataclass(frozen=True)
class NoFacePresent:
    """The service saw no face in the frame."""


@dataclass(frozen=True)
class FrameObservation:
    """Recognized entities plus detected-but-unidentified regions."""

    entities: tuple[TrackedEntity, ...] = ()
    regions: tuple[BoundingBox, ...] = ()


@dataclass(frozen=True)
class ServiceRejection:
    """The service answered but reported the frame as not processable."""

    message: str


RecognitionReading = NoFacePresent | FrameObservation | ServiceRejection
