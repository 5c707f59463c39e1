"""Native encoder capability probing.

Walks a fixed, ordered table of container/codec pairs and returns the first
one libsndfile (via ``soundfile``) reports as writable. ``None`` means no
native codec is available and the caller must fall back to WAV.
"""

import logging
from collections.abc import Callable, Iterable

import soundfile as sf

from src.core.models import AudioCapability

logger = logging.getLogger(__name__)

# Most compact / most widely playable first. Reordering is a one-line change.
PREFERRED_CAPABILITIES: tuple[AudioCapability, ...] = (
    AudioCapability(
        container_format="MP3",
        codec_tag="MPEG_LAYER_III",
        mime_string="audio/mpeg",
        extension="mp3",
    ),
    AudioCapability(
        container_format="OGG",
        codec_tag="VORBIS",
        mime_string="audio/ogg;codecs=vorbis",
        extension="ogg",
    ),
    AudioCapability(
        container_format="FLAC",
        codec_tag="PCM_16",
        mime_string="audio/flac",
        extension="flac",
    ),
)


def soundfile_supports(capability: AudioCapability) -> bool:
    """Ask libsndfile whether it can write the given container/codec pair."""
    try:
        return bool(sf.check_format(capability.container_format, capability.codec_tag))
    except (TypeError, ValueError):
        return False


def probe(
    is_supported: Callable[[AudioCapability], bool] = soundfile_supports,
    candidates: Iterable[AudioCapability] = PREFERRED_CAPABILITIES,
    allowed_containers: Iterable[str] | None = None,
) -> AudioCapability | None:
    """Return the first encodable capability, or ``None`` if none is.

    Args:
        is_supported: Runtime query deciding whether a pair is encodable.
        candidates: Ordered preference list to walk.
        allowed_containers: Optional container names restricting the list.
            An empty collection disables native encoding.

    Returns:
        The chosen ``AudioCapability`` or ``None`` (not available).
    """
    allowed = None
    if allowed_containers is not None:
        allowed = {name.upper() for name in allowed_containers}

    for capability in candidates:
        if allowed is not None and capability.container_format.upper() not in allowed:
            continue
        if is_supported(capability):
            logger.info("Selected native audio format: %s", capability.mime_string)
            return capability
        logger.debug("Audio format not supported: %s", capability.mime_string)

    logger.info("No native audio format available")
    return None
