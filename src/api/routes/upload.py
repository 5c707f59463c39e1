"""
Upload endpoint: receives one encoded clip and forwards it to Slack.

The request carries the clip as a base64 data URI; the reply follows the
``{success, result?, error?}`` contract the delivery client interprets.
"""

import logging
import mimetypes

from fastapi import APIRouter

from src.core.config import get_settings
from src.core.exceptions import InvalidAudioPayloadError
from src.core.models import UploadRequest, UploadResponse
from src.core.utils import parse_data_uri
from src.services.audio.wav import WAV_MEDIA_TYPE, read_wav_header
from src.services.slack import SlackUploader

logger = logging.getLogger(__name__)

router = APIRouter(tags=["upload"])


def _decode_payload(body: UploadRequest) -> tuple[str, bytes]:
    """Decode and sanity-check the uploaded clip.

    Returns:
        Tuple of (media type, audio bytes).

    Raises:
        InvalidAudioPayloadError: Malformed URI, empty or oversized audio,
            or a WAV payload with a broken header.
    """
    try:
        media_type, data = parse_data_uri(body.audio)
    except ValueError as exc:
        raise InvalidAudioPayloadError(str(exc)) from exc

    if not data:
        raise InvalidAudioPayloadError("Audio payload is empty")
    max_bytes = get_settings().max_upload_bytes
    if len(data) > max_bytes:
        raise InvalidAudioPayloadError(f"Audio payload exceeds {max_bytes} bytes")

    if not media_type:
        media_type = mimetypes.guess_type(body.filename)[0] or "application/octet-stream"
    if media_type.split(";")[0] in (WAV_MEDIA_TYPE, "audio/x-wav", "audio/wave"):
        try:
            read_wav_header(data)
        except ValueError as exc:
            raise InvalidAudioPayloadError(f"Invalid WAV payload: {exc}") from exc
    return media_type, data


@router.post("/upload", response_model=UploadResponse, response_model_exclude_none=True)
async def upload_clip(body: UploadRequest) -> UploadResponse:
    """Forward a recorded clip to the configured Slack channel."""
    media_type, data = _decode_payload(body)
    logger.info("Received %s (%s, %d bytes)", body.filename, media_type, len(data))

    uploader = SlackUploader()
    try:
        result = await uploader.upload(data, filename=body.filename, media_type=media_type)
    finally:
        await uploader.aclose()
    return UploadResponse(success=True, result=result)
