"""
Domain and API models shared across the recorder and the sink.

Pydantic v2 models describe wire payloads and immutable capability records;
plain dataclasses carry the in-process clip and delivery outcome values.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.core.exceptions import DeliveryError, SinkRejectedError, TransportFailureError

# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str = "ok"
    version: str = "0.1.0"
    timestamp: datetime


# ---------------------------------------------------------------------------
# Capabilities
# ---------------------------------------------------------------------------


class AudioCapability(BaseModel):
    """A container/codec pair the runtime can encode natively."""

    model_config = ConfigDict(frozen=True)

    container_format: str
    codec_tag: str
    mime_string: str
    extension: str


# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------


class RecorderPhase(StrEnum):
    """Lifecycle phases of the push-to-talk state machine."""

    uninitialized = "uninitialized"
    ready = "ready"
    recording = "recording"
    finalizing = "finalizing"
    failed = "failed"


class SessionPhase(StrEnum):
    """Phases of a single capture session's buffers."""

    idle = "idle"
    recording = "recording"
    finalizing = "finalizing"


# ---------------------------------------------------------------------------
# Clip and delivery outcome
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EncodedClip:
    """The finished artifact of one recording."""

    data: bytes
    media_type: str
    filename: str
    clip_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def size(self) -> int:
        return len(self.data)


class FailureKind(StrEnum):
    """Why a delivery did not succeed."""

    transport = "transport"
    rejected = "rejected"


@dataclass(frozen=True)
class DeliverySuccess:
    """The sink accepted the clip; ``receipt`` is its ``result`` object."""

    receipt: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class DeliveryFailure:
    """The clip was not delivered."""

    reason: str
    kind: FailureKind = FailureKind.rejected

    @property
    def ok(self) -> bool:
        return False

    def to_error(self) -> DeliveryError:
        """Return the matching exception for callers that surface errors."""
        if self.kind is FailureKind.transport:
            return TransportFailureError(self.reason)
        return SinkRejectedError(self.reason)


DeliveryOutcome = DeliverySuccess | DeliveryFailure


# ---------------------------------------------------------------------------
# Sink wire format
# ---------------------------------------------------------------------------


class UploadRequest(BaseModel):
    """POST /api/v1/upload request body."""

    audio: str = Field(..., description="base64 data URI of the encoded clip")
    filename: str = "Enregistrement.m4a"


class UploadResponse(BaseModel):
    """Reply envelope understood by the delivery client."""

    success: bool
    result: dict[str, Any] | None = None
    error: str | None = None
