"""Camera interfaces used by the recognition workflow."""

from typing import Protocol

import numpy as np


class CameraAccessError(RuntimeError):
    """Raised when the camera cannot be opened (missing or denied)."""


class CameraStream(Protocol):
    """An open camera owned by exactly one capture scope."""

    async def read(self) -> np.ndarray | None:
        """Return the current BGR frame, or None when none is ready yet."""

    def stop(self) -> None:
        """Release the device. Safe to call more than once."""


class CameraSource(Protocol):
    """Factory for camera streams."""

    async def open(self) -> CameraStream:
        """Acquire the camera or raise CameraAccessError."""
