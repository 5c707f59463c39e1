"""PCM to WAV encoding.

Builds a canonical 44-byte-header RIFF/WAVE container around 16-bit signed
little-endian mono samples. Used when the runtime offers no native codec.
"""

import struct
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

WAV_HEADER_SIZE = 44
WAV_MEDIA_TYPE = "audio/wav"

_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")
_PCM_FORMAT = 1
_CHANNELS = 1
_BITS_PER_SAMPLE = 16
_BLOCK_ALIGN = _CHANNELS * _BITS_PER_SAMPLE // 8


@dataclass(frozen=True)
class WavHeader:
    """Fields recovered from a 44-byte WAV header."""

    riff_size: int
    format_code: int
    channel_count: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_size: int


def quantize(samples: Sequence[float] | np.ndarray) -> np.ndarray:
    """Convert float samples in [-1, 1] to int16 values.

    Each sample maps to ``round(sample * 32767)``; anything outside the
    int16 range is clamped rather than wrapped. NaN maps to 0.

    Args:
        samples: Mono float samples.

    Returns:
        Little-endian int16 numpy array of the same length.
    """
    values = np.nan_to_num(np.asarray(samples, dtype=np.float64).ravel(), nan=0.0)
    scaled = np.clip(np.rint(values * 32767.0), -32768, 32767)
    return scaled.astype("<i2")


def encode_wav(samples: Sequence[float] | np.ndarray, sample_rate: int) -> bytes:
    """Encode mono float samples as a 16-bit PCM WAV buffer.

    Args:
        samples: Mono float samples, nominally in [-1, 1].
        sample_rate: Negotiated capture sample rate in Hz.

    Returns:
        ``44 + 2 * len(samples)`` bytes: header followed by PCM data.

    Raises:
        ValueError: If ``sample_rate`` is not a positive integer.
    """
    if isinstance(sample_rate, bool) or int(sample_rate) != sample_rate or sample_rate <= 0:
        raise ValueError(f"Sample rate must be a positive integer, got {sample_rate!r}")
    sample_rate = int(sample_rate)

    pcm = quantize(samples).tobytes()
    data_size = len(pcm)
    header = _HEADER.pack(
        b"RIFF",
        36 + data_size,
        b"WAVE",
        b"fmt ",
        16,
        _PCM_FORMAT,
        _CHANNELS,
        sample_rate,
        sample_rate * _BLOCK_ALIGN,
        _BLOCK_ALIGN,
        _BITS_PER_SAMPLE,
        b"data",
        data_size,
    )
    return header + pcm


def read_wav_header(data: bytes) -> WavHeader:
    """Parse the canonical 44-byte header produced by ``encode_wav``.

    Raises:
        ValueError: If the buffer is too short or the chunk tags are wrong.
    """
    if len(data) < WAV_HEADER_SIZE:
        raise ValueError(f"WAV buffer too short ({len(data)} bytes)")
    (
        riff,
        riff_size,
        wave_tag,
        fmt_tag,
        _fmt_size,
        format_code,
        channels,
        sample_rate,
        byte_rate,
        block_align,
        bits_per_sample,
        data_tag,
        data_size,
    ) = _HEADER.unpack_from(data)
    if riff != b"RIFF" or wave_tag != b"WAVE" or fmt_tag != b"fmt " or data_tag != b"data":
        raise ValueError("Not a canonical RIFF/WAVE header")
    return WavHeader(
        riff_size=riff_size,
        format_code=format_code,
        channel_count=channels,
        sample_rate=sample_rate,
        byte_rate=byte_rate,
        block_align=block_align,
        bits_per_sample=bits_per_sample,
        data_size=data_size,
    )
