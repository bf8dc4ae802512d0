"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from attendance_demo.adapters.cv2_camera import Cv2CameraSource
from attendance_demo.adapters.json_session_backend import JsonFileSessionBackend
from attendance_demo.adapters.recognition_client import (
    HttpxRecognitionClient,
    RecognitionClient,
)
from attendance_demo.config import Settings
from attendance_demo.services.engine import RecognitionSessionEngine
from attendance_demo.services.frame_codec import FrameCodec
from attendance_demo.services.session_store import SessionStore
from attendance_demo.services.workflow import WorkflowController, WorkflowTimings


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    session_store: SessionStore
    recognition_client: RecognitionClient
    engine: RecognitionSessionEngine
    workflow: WorkflowController
    close_resources: Callable[[], Awaitable[None]]


def build_container(
    settings: Settings | None = None,
    on_complete: Callable[[], None] | None = None,
) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    session_store = SessionStore(
        backend=JsonFileSessionBackend(resolved_settings.session_file),
        expiry_days=resolved_settings.session_expiry_days,
    )
    recognition_client = HttpxRecognitionClient.create(
        base_url=resolved_settings.recognition_api_url,
        api_key=resolved_settings.recognition_api_key,
        timeout=resolved_settings.request_timeout_seconds,
    )
    engine = RecognitionSessionEngine(
        client=recognition_client,
        staleness_window=resolved_settings.staleness_window,
    )
    workflow = WorkflowController(
        session_store=session_store,
        client=recognition_client,
        engine=engine,
        codec=FrameCodec(
            max_dimension=resolved_settings.max_image_dimension,
            quality=resolved_settings.jpeg_quality,
        ),
        camera=Cv2CameraSource(index=resolved_settings.camera_index),
        timings=WorkflowTimings(
            poll_interval=resolved_settings.poll_interval,
            prune_interval=resolved_settings.prune_interval,
            enroll_transition_delay=resolved_settings.enroll_transition_delay,
            match_transition_delay=resolved_settings.match_transition_delay,
        ),
        organization_id=resolved_settings.organization_id,
        on_complete=on_complete,
    )

    async def close_resources() -> None:
        await workflow.close()
        await recognition_client.close()

    return AppContainer(
        settings=resolved_settings,
        session_store=session_store,
        recognition_client=recognition_client,
        engine=engine,
        workflow=workflow,
        close_resources=close_resources,
    )
