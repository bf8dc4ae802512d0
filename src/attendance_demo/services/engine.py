"""Short-lived view of who is currently in front of the camera."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from attendance_demo.adapters.recognition_client import RecognitionClient
from attendance_demo.domain.frames import EncodedFrame
from attendance_demo.domain.recognition import (
    BoundingBox,
    CallFailure,
    NoFacePresent,
    ServiceRejection,
    TrackedEntity,
)
from attendance_demo.services.normalizer import normalize_recognition

STALENESS_WINDOW_SECONDS = 3.0

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmitOutcome:
    """Result of one frame submission as seen by the caller."""

    success: bool
    entities: tuple[TrackedEntity, ...] = ()
    regions: tuple[BoundingBox, ...] = ()
    should_pause: bool = False
    error: str | None = None
    discarded: bool = False


@dataclass
class RecognitionSessionEngine:
    """Owns the tracked-entity set and the unidentified overlay regions.

    Each successful reply replaces both sets; failed calls leave them as they
    were so a transient error never hides someone already confirmed.
    """

    client: RecognitionClient
    staleness_window: float = STALENESS_WINDOW_SECONDS
    clock: Callable[[], float] = time.monotonic
    _entities: tuple[TrackedEntity, ...] = field(default=(), init=False)
    _regions: tuple[BoundingBox, ...] = field(default=(), init=False)
    _error: str | None = field(default=None, init=False)
    _in_flight: int = field(default=0, init=False)

    @property
    def entities(self) -> tuple[TrackedEntity, ...]:
        return self._entities

    @property
    def regions(self) -> tuple[BoundingBox, ...]:
        return self._regions

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def is_processing(self) -> bool:
        return self._in_flight > 0

    async def submit_frame(
        self,
        frame: EncodedFrame,
        reference: str | None,
        *,
        still_relevant: Callable[[], bool] | None = None,
    ) -> SubmitOutcome:
        """Recognize one frame and apply the reply to the tracked state.

        ``still_relevant`` is checked once the reply arrives; when it returns
        False the reply is dropped without touching any state.
        """
        self._in_flight += 1
        try:
            reply = await self.client.recognize(frame, reference)
        finally:
            self._in_flight -= 1

        if still_relevant is not None and not still_relevant():
            logger.debug("Dropping recognition reply that arrived after cancellation")
            return SubmitOutcome(
                success=False,
                entities=self._entities,
                regions=self._regions,
                discarded=True,
            )

        self._error = None
        if isinstance(reply, CallFailure):
            return self._fail(reply.message)

        reading = normalize_recognition(reply, seen_at=self.clock())
        if isinstance(reading, ServiceRejection):
            return self._fail(reading.message)
        if isinstance(reading, NoFacePresent):
            self._entities = ()
            self._regions = ()
            return SubmitOutcome(success=True)

        self._entities = reading.entities
        self._regions = reading.regions
        pause = self.should_pause()
        if pause:
            names = ", ".join(entity.display_name for entity in self._entities)
            logger.info("Attendance confirmed for %s", names)
        return SubmitOutcome(
            success=True,
            entities=self._entities,
            regions=self._regions,
            should_pause=pause,
        )

    def prune_stale(self) -> None:
        """Drop entities not refreshed within the staleness window."""
        now = self.clock()
        fresh = tuple(
            entity
            for entity in self._entities
            if now - entity.last_seen_at < self.staleness_window
        )
        if len(fresh) != len(self._entities):
            logger.debug("Pruned %d stale entities", len(self._entities) - len(fresh))
            self._entities = fresh

    def should_pause(self) -> bool:
        """True iff the service has confirmed attendance for a tracked entity."""
        return any(entity.is_confirmed for entity in self._entities)

    def clear(self) -> None:
        self._entities = ()
        self._regions = ()

    def clear_error(self) -> None:
        self._error = None

    def _fail(self, message: str) -> SubmitOutcome:
        self._error = message
        return SubmitOutcome(
            success=False,
            entities=self._entities,
            regions=self._regions,
            error=message,
        )
