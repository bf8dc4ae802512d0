"""Models for encoded camera frames and uploads."""

from dataclasses import dataclass


@dataclass(frozen=True)
class EncodedFrame:
    """Size-bounded JPEG payload ready for network transmission.

    ``payload`` is the base64 body only, without a ``data:`` URL prefix.
    """

    payload: str
    width: int
    height: int
    source_width: int
    source_height: int
