"""OpenCV webcam adapter."""

import asyncio
import logging
from dataclasses import dataclass

import cv2
import numpy as np

from attendance_demo.services.camera import (
    CameraAccessError,
    CameraSource,
    CameraStream,
)

logger = logging.getLogger(__name__)


@dataclass
class Cv2CameraStream(CameraStream):
    """Wraps an opened ``cv2.VideoCapture``."""

    capture: cv2.VideoCapture

    async def read(self) -> np.ndarray | None:
        """Grab a frame off the event loop thread."""
        if not self.capture.isOpened():
            return None
        loop = asyncio.get_running_loop()
        ok, frame = await loop.run_in_executor(None, self.capture.read)
        if not ok or frame is None:
            return None
        return frame

    def stop(self) -> None:
        if self.capture.isOpened():
            self.capture.release()
            logger.info("Camera released")


@dataclass
class Cv2CameraSource(CameraSource):
    """Opens a local webcam by device index."""

    index: int = 0
    width: int = 640
    height: int = 480

    async def open(self) -> CameraStream:
        """Open the device, raising CameraAccessError when unavailable."""
        loop = asyncio.get_running_loop()
        try:
            capture = await loop.run_in_executor(None, cv2.VideoCapture, self.index)
        except cv2.error as exc:
            raise CameraAccessError(
                f"Camera {self.index} failed to open: {exc}"
            ) from exc
        if not capture.isOpened():
            capture.release()
            raise CameraAccessError(f"Camera {self.index} is unavailable")
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        logger.info("Opened camera %d", self.index)
        return Cv2CameraStream(capture=capture)
