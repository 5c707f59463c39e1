"""
PushTalk exception hierarchy.

All application-specific exceptions inherit from PushTalkError, so the
recorder and the sink API can surface them with a uniform envelope.
"""

from datetime import UTC, datetime


class PushTalkError(Exception):
    """Base exception for all PushTalk errors."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred",
        code: str = "PUSHTALK_ERROR",
        status_code: int = 500,
    ) -> None:
        self.detail = detail
        self.code = code
        self.status_code = status_code
        self.timestamp = datetime.now(UTC).isoformat()
        super().__init__(detail)


# ---------------------------------------------------------------------------
# Capture
# ---------------------------------------------------------------------------


class CaptureError(PushTalkError):
    """Raised when the input device cannot be acquired or used."""


class PermissionDeniedError(CaptureError):
    """Raised when access to the microphone is refused."""

    def __init__(self, detail: str = "Microphone permission denied") -> None:
        super().__init__(detail=detail, code="PERMISSION_DENIED", status_code=403)


class DeviceUnavailableError(CaptureError):
    """Raised when no usable input device exists or it stopped working."""

    def __init__(self, detail: str = "Audio input device unavailable") -> None:
        super().__init__(detail=detail, code="DEVICE_UNAVAILABLE", status_code=503)


class UnsupportedFormatError(PushTalkError):
    """Raised when no native codec is available and PCM fallback is disabled."""

    def __init__(self, detail: str = "No supported audio format found") -> None:
        super().__init__(detail=detail, code="UNSUPPORTED_FORMAT", status_code=415)


class EmptyRecordingError(PushTalkError):
    """Raised when a recording finished without any audio bytes."""

    def __init__(self) -> None:
        super().__init__(
            detail="Recording is empty",
            code="EMPTY_RECORDING",
            status_code=422,
        )


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------


class DeliveryError(PushTalkError):
    """Base class for failures while handing a clip to the sink."""


class TransportFailureError(DeliveryError):
    """Raised when the sink is unreachable or its reply is unreadable."""

    def __init__(self, detail: str = "Transport error") -> None:
        super().__init__(detail=detail, code="TRANSPORT_FAILURE", status_code=502)


class SinkRejectedError(DeliveryError):
    """Raised when the sink answered but did not accept the clip."""

    def __init__(self, reason: str = "delivery failed") -> None:
        self.reason = reason
        super().__init__(detail=reason, code="SINK_REJECTED", status_code=502)


class ClipAlreadyDeliveredError(DeliveryError):
    """Raised when the same clip is handed to the delivery client twice."""

    def __init__(self, clip_id: str) -> None:
        super().__init__(
            detail=f"Clip already delivered: {clip_id}",
            code="CLIP_ALREADY_DELIVERED",
            status_code=409,
        )


# ---------------------------------------------------------------------------
# Sink
# ---------------------------------------------------------------------------


class InvalidAudioPayloadError(PushTalkError):
    """Raised when an upload request carries a malformed audio data URI."""

    def __init__(self, detail: str = "Invalid audio payload") -> None:
        super().__init__(detail=detail, code="INVALID_AUDIO_PAYLOAD", status_code=400)


class SinkNotConfiguredError(PushTalkError):
    """Raised when the sink has no Slack token or channel configured."""

    def __init__(self, missing: str) -> None:
        super().__init__(
            detail=f"Sink is not configured: missing {missing}",
            code="SINK_NOT_CONFIGURED",
            status_code=500,
        )


class SlackUploadError(PushTalkError):
    """Raised when the Slack file upload flow fails."""

    def __init__(self, detail: str = "Slack upload failed") -> None:
        super().__init__(detail=detail, code="SLACK_UPLOAD_ERROR", status_code=500)
