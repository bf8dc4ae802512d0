"""Enroll, recognize and result phases of the trial workflow."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass
from typing import Any

from attendance_demo.adapters.recognition_client import RecognitionClient
from attendance_demo.domain.recognition import EnrollFailureCode, EnrollResult
from attendance_demo.domain.workflow import (
    EnrollState,
    RecognizeState,
    WorkflowPhase,
    WorkflowSnapshot,
)
from attendance_demo.services.camera import (
    CameraAccessError,
    CameraSource,
    CameraStream,
)
from attendance_demo.services.engine import RecognitionSessionEngine, SubmitOutcome
from attendance_demo.services.frame_codec import FrameCodec, FrameDecodeError
from attendance_demo.services.session_store import SessionStore

CAMERA_DENIED_MESSAGE = (
    "Camera access denied. Please allow camera access and try again."
)
GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again."
ENROLL_FAILED_MESSAGE = "Enrollment failed. Please try a clearer photo."
SERVICE_UNAVAILABLE_MESSAGE = (
    "Could not reach the recognition service. Please try again."
)

Sleep = Callable[[float], Awaitable[None]]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkflowTimings:
    """Named delays and cadences, in seconds."""

    poll_interval: float = 2.0
    prune_interval: float = 0.5
    enroll_transition_delay: float = 2.0
    match_transition_delay: float = 3.0


class CaptureScope:
    """A camera stream plus the tasks that feed from it, torn down together."""

    def __init__(self, stream: CameraStream) -> None:
        self.stream = stream
        self.closed = False
        self._tasks: list[asyncio.Task[None]] = []

    def spawn(self, coro: Coroutine[Any, Any, None], name: str) -> None:
        self._tasks.append(asyncio.create_task(coro, name=name))

    def close(self) -> list[asyncio.Task[None]]:
        """Cancel owned tasks and stop the stream; returns the cancelled tasks."""
        if self.closed:
            return []
        self.closed = True
        current = asyncio.current_task()
        cancelled = []
        for task in self._tasks:
            if task is not current and not task.done():
                task.cancel()
                cancelled.append(task)
        self._tasks.clear()
        self.stream.stop()
        return cancelled


class WorkflowController:
    """State machine driving enrollment, live recognition and the result.

    The controller owns the camera for the whole recognizing phase and
    releases it on every way out of that phase.
    """

    def __init__(
        self,
        *,
        session_store: SessionStore,
        client: RecognitionClient,
        engine: RecognitionSessionEngine,
        codec: FrameCodec,
        camera: CameraSource,
        timings: WorkflowTimings | None = None,
        organization_id: str | None = None,
        on_complete: Callable[[], None] | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session_store = session_store
        self.client = client
        self.engine = engine
        self.codec = codec
        self.camera = camera
        self.timings = timings or WorkflowTimings()
        self.organization_id = organization_id
        self.on_complete = on_complete
        self._sleep = sleep
        self._clock = clock

        self._phase = (
            WorkflowPhase.RECOGNIZING
            if session_store.is_enrolled()
            else WorkflowPhase.ENROLL
        )
        self._enroll_state = EnrollState.IDLE
        self._recognize_state = RecognizeState.IDLE
        self._error: str | None = None
        self._matched_name: str | None = None
        self._matched_confidence: float | None = None
        self._completed = False
        self._capture: CaptureScope | None = None
        self._camera_generation = 0
        self._transition_task: asyncio.Task[None] | None = None
        self._retired_tasks: list[asyncio.Task[None]] = []
        self._in_flight: set[asyncio.Future[SubmitOutcome]] = set()

    @property
    def phase(self) -> WorkflowPhase:
        return self._phase

    @property
    def enroll_state(self) -> EnrollState:
        return self._enroll_state

    @property
    def recognize_state(self) -> RecognizeState:
        return self._recognize_state

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def camera_active(self) -> bool:
        return self._capture is not None

    def snapshot(self) -> WorkflowSnapshot:
        """Return a consistent read-only view for the host."""
        session = self.session_store.get_or_create()
        return WorkflowSnapshot(
            phase=self._phase,
            enroll_state=self._enroll_state,
            recognize_state=self._recognize_state,
            error=self._error,
            matched_name=self._matched_name,
            matched_confidence=self._matched_confidence,
            entities=self.engine.entities,
            regions=self.engine.regions,
            session_id=session.session_id,
            time_remaining=self.session_store.time_remaining(),
            completed=self._completed,
        )

    async def enroll(self, image: bytes, name: str | None = None) -> EnrollResult:
        """Enroll an uploaded photo and move on to recognition after a pause."""
        if self._phase is not WorkflowPhase.ENROLL:
            return EnrollResult(
                success=False,
                message="Enrollment is only available before recognition starts.",
                code=EnrollFailureCode.FAILED,
            )
        if self._enroll_state is not EnrollState.IDLE:
            return EnrollResult(
                success=False,
                message="Enrollment is already in progress.",
                code=EnrollFailureCode.FAILED,
            )

        self._error = None
        self._enroll_state = EnrollState.PROCESSING
        try:
            frame = self.codec.encode_upload(image)
        except FrameDecodeError as exc:
            self._error = str(exc)
            self._enroll_state = EnrollState.IDLE
            return EnrollResult(
                success=False, message=str(exc), code=EnrollFailureCode.UNUSABLE_PHOTO
            )

        session = self.session_store.get_or_create()
        try:
            result = await self.client.enroll(frame, session.session_id, name)
        except Exception:
            logger.exception("Enrollment call failed")
            result = EnrollResult(success=False, message=GENERIC_ERROR_MESSAGE)

        if self._phase is not WorkflowPhase.ENROLL:
            return result
        if not result.success:
            if result.is_transient:
                logger.warning("Enrollment unavailable: %s", result.message)
                self._error = SERVICE_UNAVAILABLE_MESSAGE
            else:
                self._error = result.message or ENROLL_FAILED_MESSAGE
            self._enroll_state = EnrollState.IDLE
            return result

        self.session_store.mark_enrolled()
        self._enroll_state = EnrollState.ENROLLED
        logger.info(
            "Session %s enrolled as %s",
            session.session_id,
            result.user_id or session.session_id,
        )
        self._schedule_transition(self._finish_enrollment(), "enroll-transition")
        return result

    async def start_camera(self) -> None:
        """Acquire the camera and begin polling frames for recognition."""
        if self._phase is not WorkflowPhase.RECOGNIZING or self._capture is not None:
            return
        # a confirmed match keeps the camera off until the result is shown
        if self._recognize_state in {
            RecognizeState.CAMERA_STARTING,
            RecognizeState.MATCHED,
        }:
            return

        self._error = None
        self._recognize_state = RecognizeState.CAMERA_STARTING
        self._camera_generation += 1
        generation = self._camera_generation
        try:
            stream = await self.camera.open()
        except CameraAccessError as exc:
            logger.warning("Camera unavailable: %s", exc)
            if generation == self._camera_generation:
                self._error = CAMERA_DENIED_MESSAGE
                self._recognize_state = RecognizeState.ERROR
            return

        if (
            generation != self._camera_generation
            or self._phase is not WorkflowPhase.RECOGNIZING
        ):
            stream.stop()
            return

        scope = CaptureScope(stream)
        self._capture = scope
        self._recognize_state = RecognizeState.SCANNING
        scope.spawn(self._poll_loop(scope), name="recognition-poll")
        scope.spawn(self._prune_loop(scope), name="recognition-prune")
        logger.info("Recognition scanning started")

    def stop_camera(self) -> None:
        """Release the camera and cancel polling without leaving the phase."""
        self._camera_generation += 1
        self._release_capture()
        if self._recognize_state in {
            RecognizeState.CAMERA_STARTING,
            RecognizeState.SCANNING,
        }:
            self._recognize_state = RecognizeState.IDLE

    async def reset(self) -> None:
        """Leave a result (or a failed attempt) and scan again."""
        if self._phase is WorkflowPhase.ENROLL:
            return
        if not self.session_store.is_enrolled():
            logger.info("Session no longer enrolled; returning to enrollment")
            self.re_enroll()
            return
        self._cancel_transition()
        self.stop_camera()
        self.engine.clear()
        self.engine.clear_error()
        self._matched_name = None
        self._matched_confidence = None
        self._error = None
        self._phase = WorkflowPhase.RECOGNIZING
        self._recognize_state = RecognizeState.IDLE
        await self.start_camera()

    def re_enroll(self) -> None:
        """Discard camera and tracked state and return to enrollment."""
        self._cancel_transition()
        self.stop_camera()
        self.engine.clear()
        self.engine.clear_error()
        self._matched_name = None
        self._matched_confidence = None
        self._error = None
        self._phase = WorkflowPhase.ENROLL
        self._enroll_state = EnrollState.IDLE
        self._recognize_state = RecognizeState.IDLE

    def reset_session(self) -> None:
        """Forget the anonymous session entirely and start over."""
        self.session_store.reset()
        self.re_enroll()

    async def close(self) -> None:
        """Tear down timers and the camera when the host goes away."""
        self._cancel_transition()
        self.stop_camera()
        pending = [task for task in self._retired_tasks if not task.done()]
        pending.extend(self._in_flight)
        self._retired_tasks.clear()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _finish_enrollment(self) -> None:
        await self._sleep(self.timings.enroll_transition_delay)
        if (
            self._phase is WorkflowPhase.ENROLL
            and self._enroll_state is EnrollState.ENROLLED
        ):
            self._phase = WorkflowPhase.RECOGNIZING
            self._recognize_state = RecognizeState.IDLE

    async def _finish_match(self) -> None:
        await self._sleep(self.timings.match_transition_delay)
        if (
            self._phase is not WorkflowPhase.RECOGNIZING
            or self._recognize_state is not RecognizeState.MATCHED
        ):
            return
        self._phase = WorkflowPhase.RESULT
        if self._completed:
            return
        self._completed = True
        if self.on_complete is not None:
            try:
                self.on_complete()
            except Exception:
                logger.exception("Completion callback failed")

    async def _poll_loop(self, scope: CaptureScope) -> None:
        try:
            interval = self.timings.poll_interval
            delay = interval
            while not scope.closed:
                await self._sleep(delay)
                started = self._clock()
                if await self._poll_once(scope):
                    return
                # keep a fixed cadence; latency eats into the next wait
                delay = max(0.0, interval - (self._clock() - started))
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Recognition polling crashed")
            if self._is_current(scope):
                self._release_capture()
                self._error = GENERIC_ERROR_MESSAGE
                self._recognize_state = RecognizeState.ERROR

    async def _poll_once(self, scope: CaptureScope) -> bool:
        """Capture and submit one frame; returns True once a match is confirmed."""
        image = await scope.stream.read()
        if image is None or not self._is_current(scope):
            return False
        frame = self.codec.encode(image)
        request = asyncio.ensure_future(
            self.engine.submit_frame(
                frame,
                self._reference(),
                still_relevant=lambda: self._is_current(scope),
            )
        )
        self._in_flight.add(request)
        request.add_done_callback(self._in_flight.discard)
        # cancelling the poll task must not abort the request itself
        outcome = await asyncio.shield(request)
        if outcome.discarded:
            return True
        self._error = outcome.error
        if not outcome.should_pause:
            return False

        confirmed = next(entity for entity in outcome.entities if entity.is_confirmed)
        self._matched_name = confirmed.display_name
        self._matched_confidence = confirmed.confidence
        self._recognize_state = RecognizeState.MATCHED
        self._release_capture()
        self._schedule_transition(self._finish_match(), "match-transition")
        return True

    async def _prune_loop(self, scope: CaptureScope) -> None:
        while not scope.closed:
            await self._sleep(self.timings.prune_interval)
            if self._is_current(scope):
                self.engine.prune_stale()

    def _is_current(self, scope: CaptureScope) -> bool:
        return (
            self._phase is WorkflowPhase.RECOGNIZING
            and self._capture is scope
            and not scope.closed
        )

    def _reference(self) -> str:
        if self.organization_id:
            return self.organization_id
        return self.session_store.get_or_create().session_id

    def _release_capture(self) -> None:
        if self._capture is None:
            return
        scope = self._capture
        self._capture = None
        self._retired_tasks = [task for task in self._retired_tasks if not task.done()]
        self._retired_tasks.extend(scope.close())

    def _schedule_transition(self, coro: Coroutine[Any, Any, None], name: str) -> None:
        self._cancel_transition()
        self._transition_task = asyncio.create_task(coro, name=name)

    def _cancel_transition(self) -> None:
        if self._transition_task is not None and not self._transition_task.done():
            self._transition_task.cancel()
            self._retired_tasks.append(self._transition_task)
        self._transition_task = None
