"""Image normalization for enrollment uploads and live camera frames."""

import base64
from dataclasses import dataclass

import cv2
import numpy as np

from attendance_demo.domain.frames import EncodedFrame

MAX_IMAGE_DIMENSION = 800
JPEG_QUALITY = 80


class FrameDecodeError(ValueError):
    """Raised when uploaded bytes are not a readable image."""


def scaled_size(width: int, height: int, max_dimension: int) -> tuple[int, int]:
    """Fit the longer side within ``max_dimension`` without upscaling."""
    if width <= max_dimension and height <= max_dimension:
        return width, height
    if width > height:
        return max_dimension, max(1, int(height / width * max_dimension))
    return max(1, int(width / height * max_dimension)), max_dimension


@dataclass(frozen=True)
class FrameCodec:
    """Encodes BGR images into bounded base64 JPEG payloads."""

    max_dimension: int = MAX_IMAGE_DIMENSION
    quality: int = JPEG_QUALITY

    def encode(self, image: np.ndarray) -> EncodedFrame:
        """Scale and JPEG-encode a BGR (or grayscale) image."""
        if image is None or image.size == 0:
            raise FrameDecodeError("Image is empty")
        source_height, source_width = image.shape[:2]
        width, height = scaled_size(source_width, source_height, self.max_dimension)
        if (width, height) != (source_width, source_height):
            image = cv2.resize(image, (width, height), interpolation=cv2.INTER_AREA)
        params = [cv2.IMWRITE_JPEG_QUALITY, self.quality]
        ok, buffer = cv2.imencode(".jpg", image, params)
        if not ok:
            raise FrameDecodeError("Image could not be encoded as JPEG")
        return EncodedFrame(
            payload=base64.b64encode(buffer.tobytes()).decode("ascii"),
            width=width,
            height=height,
            source_width=source_width,
            source_height=source_height,
        )

    def encode_upload(self, data: bytes) -> EncodedFrame:
        """Decode an uploaded image file and encode it like a camera frame."""
        if not data:
            raise FrameDecodeError("Uploaded file is empty")
        image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
        if image is None:
            raise FrameDecodeError("Uploaded file is not a supported image")
        return self.encode(image)
