"""Shared test fixtures."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import cv2
import numpy as np
import pytest

from attendance_demo.adapters.recognition_client import RecognitionClient
from attendance_demo.config import Settings
from attendance_demo.containers import AppContainer
from attendance_demo.domain.frames import EncodedFrame
from attendance_demo.domain.recognition import CallFailure, EnrollResult
from attendance_demo.services.camera import (
    CameraAccessError,
    CameraSource,
    CameraStream,
)
from attendance_demo.services.engine import RecognitionSessionEngine
from attendance_demo.services.frame_codec import FrameCodec
from attendance_demo.services.session_store import InMemorySessionBackend, SessionStore
from attendance_demo.services.workflow import WorkflowController, WorkflowTimings


def known_reply(
    user_id: str = "user-1",
    name: str = "Ada",
    *,
    marked: bool = False,
    confidence: float = 0.93,
) -> dict[str, object]:
    """Current-shape reply for a recognized member."""
    return {
        "success": True,
        "type": "KNOWN",
        "user_id": user_id,
        "name": name,
        "confidence": confidence,
        "bbox": [10, 20, 110, 140],
        "attendance_marked": marked,
    }


def temp_reply(temp_user_id: str = "t-1") -> dict[str, object]:
    """Current-shape reply for a detected but unidentified face."""
    return {
        "success": True,
        "type": "TEMP",
        "temp_user_id": temp_user_id,
        "bbox": [1, 2, 3, 4],
    }


def sample_frame() -> EncodedFrame:
    return EncodedFrame(
        payload="ZmFrZQ==", width=4, height=4, source_width=4, source_height=4
    )


def sample_image_bytes(width: int = 64, height: int = 48) -> bytes:
    """Return a small PNG image as uploaded file bytes."""
    image = np.full((height, width, 3), 127, dtype=np.uint8)
    ok, buffer = cv2.imencode(".png", image)
    assert ok
    return buffer.tobytes()


@dataclass
class ManualClock:
    """Monotonic clock controlled by tests."""

    now: float = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class ManualDateClock:
    """Wall clock controlled by tests."""

    now: datetime = field(
        default_factory=lambda: datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
    )

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@dataclass
class FakeRecognitionClient(RecognitionClient):
    """Fake recognition client replaying queued replies.

    When ``replies`` runs out, ``default_reply`` is returned.
    """

    replies: list[dict[str, object] | CallFailure] = field(default_factory=list)
    default_reply: dict[str, object] | CallFailure = field(
        default_factory=lambda: {"success": True, "code": "NO_FACE"}
    )
    enroll_result: EnrollResult = field(
        default_factory=lambda: EnrollResult(success=True, user_id="demo-user")
    )
    gate: asyncio.Event | None = None
    recognize_calls: list[tuple[EncodedFrame, str | None]] = field(
        default_factory=list
    )
    enroll_calls: list[tuple[EncodedFrame, str, str | None]] = field(
        default_factory=list
    )
    healthy: bool = True

    async def enroll(
        self, frame: EncodedFrame, reference: str, name: str | None = None
    ) -> EnrollResult:
        self.enroll_calls.append((frame, reference, name))
        return self.enroll_result

    async def recognize(
        self, frame: EncodedFrame, reference: str | None
    ) -> dict[str, object] | CallFailure:
        self.recognize_calls.append((frame, reference))
        if self.gate is not None:
            await self.gate.wait()
        if self.replies:
            return self.replies.pop(0)
        return self.default_reply

    async def health_check(self) -> bool:
        return self.healthy


@dataclass
class FakeCameraStream(CameraStream):
    """Camera stream returning a fixed gray frame."""

    frame: np.ndarray = field(
        default_factory=lambda: np.full((480, 640, 3), 90, dtype=np.uint8)
    )
    stopped: bool = False

    async def read(self) -> np.ndarray | None:
        if self.stopped:
            return None
        return self.frame

    def stop(self) -> None:
        self.stopped = True


@dataclass
class FakeCameraSource(CameraSource):
    """Camera source that can simulate a denied permission."""

    denied: bool = False
    streams: list[FakeCameraStream] = field(default_factory=list)

    async def open(self) -> CameraStream:
        if self.denied:
            raise CameraAccessError("Permission denied")
        stream = FakeCameraStream()
        self.streams.append(stream)
        return stream

    @property
    def open_streams(self) -> list[FakeCameraStream]:
        return [stream for stream in self.streams if not stream.stopped]


@dataclass
class FakeSleep:
    """Records requested delays and returns control to the loop immediately."""

    delays: list[float] = field(default_factory=list)

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


async def drain(rounds: int = 20) -> None:
    """Let scheduled tasks run for a few loop iterations."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def build_workflow(  # noqa: PLR0913
    *,
    session_store: SessionStore,
    client: FakeRecognitionClient,
    camera: FakeCameraSource | None = None,
    sleep: FakeSleep | None = None,
    clock: ManualClock | None = None,
    on_complete: Callable[[], None] | None = None,
) -> WorkflowController:
    clock = clock or ManualClock()
    engine = RecognitionSessionEngine(client=client, clock=clock)
    return WorkflowController(
        session_store=session_store,
        client=client,
        engine=engine,
        codec=FrameCodec(),
        camera=camera or FakeCameraSource(),
        timings=WorkflowTimings(),
        on_complete=on_complete,
        sleep=sleep or FakeSleep(),
        clock=clock,
    )


@pytest.fixture
def settings(tmp_path) -> Settings:  # type: ignore[no-untyped-def]
    return Settings(
        recognition_api_url="https://recognition.test",
        recognition_api_key="api-key",
        session_file=tmp_path / "session.json",
    )


@pytest.fixture
def date_clock() -> ManualDateClock:
    return ManualDateClock()


@pytest.fixture
def session_store(date_clock: ManualDateClock) -> SessionStore:
    return SessionStore(backend=InMemorySessionBackend(), clock=date_clock)


@pytest.fixture
def recognition_client() -> FakeRecognitionClient:
    return FakeRecognitionClient()


@pytest.fixture
def camera() -> FakeCameraSource:
    return FakeCameraSource()


@pytest.fixture
def container(
    settings: Settings,
    session_store: SessionStore,
    recognition_client: FakeRecognitionClient,
    camera: FakeCameraSource,
) -> AppContainer:
    workflow = build_workflow(
        session_store=session_store,
        client=recognition_client,
        camera=camera,
    )

    async def close_resources() -> None:
        await workflow.close()

    return AppContainer(
        settings=settings,
        session_store=session_store,
        recognition_client=recognition_client,
        engine=workflow.engine,
        workflow=workflow,
        close_resources=close_resources,
    )
