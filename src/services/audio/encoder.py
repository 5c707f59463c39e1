"""Native (compressed) encoders.

A native encoder receives captured frames while a recording is active and
hands encoded bytes back through a data-available callback. The libsndfile
encoder buffers frames and encodes once on ``stop()``, then emits the result
in fixed-size chunks.
"""

import io
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable

import numpy as np
import soundfile as sf

from src.core.models import AudioCapability

logger = logging.getLogger(__name__)

DataCallback = Callable[[bytes], None]


class NativeEncoder(ABC):
    """Interface for encoders selected by the capability prober."""

    def __init__(self, capability: AudioCapability, on_data: DataCallback) -> None:
        self.capability = capability
        self._on_data = on_data

    @property
    def media_type(self) -> str:
        return self.capability.mime_string

    @abstractmethod
    def start(self, sample_rate: int) -> None:
        """Begin a new encoded stream at the negotiated sample rate."""

    @abstractmethod
    def write(self, frames: np.ndarray) -> None:
        """Feed mono float frames captured during the recording."""

    @abstractmethod
    def stop(self) -> None:
        """Finish the stream; all remaining data is emitted before returning."""


class SoundFileEncoder(NativeEncoder):
    """libsndfile-backed encoder for the prober's container/codec pairs.

    Args:
        capability: Container/codec to write.
        on_data: Receives each encoded chunk, in order.
        chunk_size: Maximum bytes per emitted chunk.
        bitrate: Target bits per second for lossy codecs (best effort).
    """

    def __init__(
        self,
        capability: AudioCapability,
        on_data: DataCallback,
        chunk_size: int = 65_536,
        bitrate: int | None = None,
    ) -> None:
        super().__init__(capability, on_data)
        self._chunk_size = max(1, chunk_size)
        self._bitrate = bitrate
        self._frames: list[np.ndarray] = []
        self._sample_rate: int | None = None

    @property
    def active(self) -> bool:
        return self._sample_rate is not None

    def start(self, sample_rate: int) -> None:
        self._frames = []
        self._sample_rate = int(sample_rate)

    def write(self, frames: np.ndarray) -> None:
        if self._sample_rate is None:
            return
        self._frames.append(np.asarray(frames, dtype=np.float32).ravel())

    def stop(self) -> None:
        if self._sample_rate is None:
            return
        sample_rate = self._sample_rate
        frames = self._frames
        self._sample_rate = None
        self._frames = []

        if not frames or not any(block.size for block in frames):
            logger.debug("Native encoder stopped without frames")
            return

        audio = np.clip(np.concatenate(frames), -1.0, 1.0)
        buffer = io.BytesIO()
        sf.write(
            buffer,
            audio,
            sample_rate,
            format=self.capability.container_format,
            subtype=self.capability.codec_tag,
            **self._compression_options(),
        )
        encoded = buffer.getvalue()
        logger.debug(
            "Encoded %d frames as %s (%d bytes)",
            audio.size,
            self.capability.mime_string,
            len(encoded),
        )
        for offset in range(0, len(encoded), self._chunk_size):
            self._on_data(encoded[offset : offset + self._chunk_size])

    def _compression_options(self) -> dict:
        """Map the bitrate hint onto libsndfile's compression level."""
        if not self._bitrate or self.capability.container_format == "FLAC":
            return {}
        # 320 kbps ~ level 0.0 (best), 32 kbps ~ level 1.0 (smallest)
        level = 1.0 - (min(max(self._bitrate, 32_000), 320_000) - 32_000) / 288_000
        return {"compression_level": round(level, 2)}


def create_encoder(
    capability: AudioCapability,
    on_data: DataCallback,
    chunk_size: int = 65_536,
    bitrate: int | None = None,
) -> NativeEncoder:
    """Build the native encoder for a probed capability."""
    return SoundFileEncoder(capability, on_data, chunk_size=chunk_size, bitrate=bitrate)
