"""Remote face recognition service client."""

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from attendance_demo.domain.frames import EncodedFrame
from attendance_demo.domain.recognition import (
    CallFailure,
    EnrollFailureCode,
    EnrollResult,
    FailureKind,
)

logger = logging.getLogger(__name__)

_UNUSABLE_PHOTO_CODES = {
    "NO_FACE",
    "POOR_QUALITY",
    "LOW_QUALITY",
    "MULTIPLE_FACES",
    "INVALID_IMAGE",
}
_DUPLICATE_CODES = {"DUPLICATE_FACE", "DUPLICATE"}
_SUCCESS_STATUSES = {"success", "SUCCESS"}


class RecognitionClient(Protocol):
    """Interface for the remote enroll/recognize operations."""

    async def enroll(
        self, frame: EncodedFrame, reference: str, name: str | None = None
    ) -> EnrollResult:
        """Register a face for an identity or session reference."""

    async def recognize(
        self, frame: EncodedFrame, reference: str | None
    ) -> dict[str, object] | CallFailure:
        """Return the raw recognition reply for a single frame."""

    async def health_check(self) -> bool:
        """Return True when the service answers its health endpoint."""


@dataclass
class HttpxRecognitionClient(RecognitionClient):
    """HTTPX-backed recognition client. Every call is one round trip."""

    base_url: str
    http_client: httpx.AsyncClient
    api_key: str | None = None
    timeout: float = 15.0

    @classmethod
    def create(
        cls, base_url: str, api_key: str | None = None, timeout: float = 15.0
    ) -> "HttpxRecognitionClient":
        """Create a recognition client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            http_client=httpx.AsyncClient(),
            api_key=api_key,
            timeout=timeout,
        )

    async def enroll(
        self, frame: EncodedFrame, reference: str, name: str | None = None
    ) -> EnrollResult:
        """Submit an enrollment photo."""
        body: dict[str, object] = {"image": frame.payload, "user_id": reference}
        if name:
            body["name"] = name
        reply = await self._post("/api/face/enroll/", body)
        if isinstance(reply, CallFailure):
            return EnrollResult(success=False, message=reply.message, failure=reply)
        return _parse_enroll_reply(reply)

    async def recognize(
        self, frame: EncodedFrame, reference: str | None
    ) -> dict[str, object] | CallFailure:
        """Submit a frame for recognition."""
        body = {
            "frame": frame.payload,
            "mode": "RECOGNIZE",
            "organization_id": reference,
        }
        return await self._post("/api/recognize-frame/", body, accept_rejection=False)

    async def health_check(self) -> bool:
        """Ping the service health endpoint."""
        try:
            response = await self.http_client.get(
                f"{self.base_url}/api/health/",
                headers=self._headers(),
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            logger.warning("Recognition service unreachable: %s", exc)
            return False
        return response.is_success

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _post(
        self, path: str, body: dict[str, object], *, accept_rejection: bool = True
    ) -> dict[str, object] | CallFailure:
        try:
            response = await self.http_client.post(
                f"{self.base_url}{path}",
                json=body,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            logger.warning("Recognition request %s failed: %s", path, exc)
            return CallFailure(
                kind=FailureKind.NETWORK, message=str(exc) or "Network error"
            )

        try:
            data = response.json()
        except ValueError:
            data = None

        if not response.is_success:
            if accept_rejection and response.is_client_error and isinstance(data, dict):
                return data
            message = _error_message(data) or response.text or "Request failed"
            logger.warning(
                "Recognition request %s returned HTTP %d", path, response.status_code
            )
            return CallFailure(
                kind=FailureKind.HTTP,
                message=message,
                status_code=response.status_code,
            )
        if not isinstance(data, dict):
            return CallFailure(
                kind=FailureKind.PARSE,
                message="Recognition service returned an unreadable response",
                status_code=response.status_code,
            )
        return data

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            return {}
        return {"Authorization": f"Bearer {self.api_key}"}


def _error_message(data: object) -> str | None:
    if not isinstance(data, dict):
        return None
    for key in ("detail", "error", "message"):
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _parse_enroll_reply(data: dict[str, object]) -> EnrollResult:
    """Map an enrollment reply onto success or a typed rejection."""
    status = data.get("status")
    succeeded = data.get("success") is True or status in _SUCCESS_STATUSES
    if succeeded:
        user_id = data.get("user_id")
        message = data.get("message")
        return EnrollResult(
            success=True,
            message=message if isinstance(message, str) else None,
            user_id=str(user_id) if user_id else None,
        )

    raw_code = data.get("code") or status
    code_text = str(raw_code).upper() if raw_code else ""
    if code_text in _DUPLICATE_CODES:
        code = EnrollFailureCode.DUPLICATE_IDENTITY
    elif code_text in _UNUSABLE_PHOTO_CODES:
        code = EnrollFailureCode.UNUSABLE_PHOTO
    else:
        code = EnrollFailureCode.FAILED
    message = _error_message(data) or "Enrollment failed. Please try a clearer photo."
    return EnrollResult(success=False, message=message, code=code)
