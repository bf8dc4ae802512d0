"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status

from attendance_demo.api.models import (
    EnrollView,
    SessionView,
    WorkflowView,
    enroll_view,
    session_view,
    workflow_view,
)
from attendance_demo.app_logging import configure_logging
from attendance_demo.containers import AppContainer


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "Workflow starting in %s phase", app.state.container.workflow.phase.value
        )
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/health/recognition")
    async def recognition_health(request: Request) -> dict[str, str]:
        """Report whether the recognition service answers."""
        state_container: AppContainer = request.app.state.container
        reachable = await state_container.recognition_client.health_check()
        return {"recognition_service": "connected" if reachable else "unreachable"}

    @app.get("/session")
    async def get_session(request: Request) -> SessionView:
        """Return the anonymous trial session, creating it on first access."""
        store = request.app.state.container.session_store
        return session_view(store.get_or_create(), store.time_remaining())

    @app.post("/session/reset")
    async def reset_session(request: Request) -> WorkflowView:
        """Forget the trial session and return to enrollment."""
        workflow = request.app.state.container.workflow
        workflow.reset_session()
        return workflow_view(workflow.snapshot())

    @app.get("/workflow")
    async def get_workflow(request: Request) -> WorkflowView:
        """Return the current workflow snapshot."""
        return workflow_view(request.app.state.container.workflow.snapshot())

    @app.post("/workflow/enroll")
    async def enroll(request: Request, name: str | None = None) -> EnrollView:
        """Enroll the raw image sent as the request body."""
        image = await request.body()
        if not image:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Request body must contain an image",
            )
        workflow = request.app.state.container.workflow
        result = await workflow.enroll(image, name=name)
        return enroll_view(result, workflow.snapshot())

    @app.post("/workflow/camera/start")
    async def start_camera(request: Request) -> WorkflowView:
        """Acquire the camera and start scanning."""
        workflow = request.app.state.container.workflow
        await workflow.start_camera()
        return workflow_view(workflow.snapshot())

    @app.post("/workflow/camera/stop")
    async def stop_camera(request: Request) -> WorkflowView:
        """Release the camera."""
        workflow = request.app.state.container.workflow
        workflow.stop_camera()
        return workflow_view(workflow.snapshot())

    @app.post("/workflow/reset")
    async def reset_workflow(request: Request) -> WorkflowView:
        """Leave the result and scan again without re-enrolling."""
        workflow = request.app.state.container.workflow
        await workflow.reset()
        return workflow_view(workflow.snapshot())

    @app.post("/workflow/re-enroll")
    async def re_enroll(request: Request) -> WorkflowView:
        """Return to the enrollment phase."""
        workflow = request.app.state.container.workflow
        workflow.re_enroll()
        return workflow_view(workflow.snapshot())

    return app
