"""Microphone acquisition over PortAudio (``sounddevice``).

Requested constraints are preferences: when the device rejects the hinted
sample rate the stream opens at the device default instead, and callers
must read the negotiated rate back from the returned handle.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import numpy as np

from src.core.exceptions import DeviceUnavailableError, PermissionDeniedError

logger = logging.getLogger(__name__)

FrameCallback = Callable[[np.ndarray], None]

_PERMISSION_MARKERS = ("permission", "denied", "not authorized", "access")


@dataclass(frozen=True)
class InputConstraints:
    """Preferences requested from the input device."""

    echo_cancellation: bool = True
    noise_suppression: bool = True
    auto_gain: bool = True
    sample_rate_hint: int = 44100
    channel_count_hint: int = 1
    device: int | str | None = None
    block_duration_ms: int = 20


class InputStream(Protocol):
    """Live input stream handle owned by a capture session."""

    @property
    def samplerate(self) -> float: ...

    @property
    def active(self) -> bool: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def close(self) -> None: ...


def _classify(exc: Exception, context: str) -> Exception:
    """Map a PortAudio error onto the capture error taxonomy."""
    message = f"{context}: {exc}"
    if any(marker in str(exc).lower() for marker in _PERMISSION_MARKERS):
        return PermissionDeniedError(message)
    return DeviceUnavailableError(message)


def open_input_stream(constraints: InputConstraints, on_frames: FrameCallback) -> InputStream:
    """Open and start a mono float32 input stream.

    ``on_frames`` is called from the PortAudio thread with a copy of each
    block as a 1-D float32 array.

    Args:
        constraints: Requested device settings.
        on_frames: Receiver for captured blocks.

    Returns:
        The started stream; ``stream.samplerate`` is the negotiated rate.

    Raises:
        PermissionDeniedError: If the OS refuses microphone access.
        DeviceUnavailableError: If PortAudio or an input device is missing.
    """
    try:
        import sounddevice as sd
    except OSError as exc:
        raise DeviceUnavailableError(f"PortAudio library not found: {exc}") from exc

    # PortAudio exposes no echo cancellation / noise suppression / AGC controls
    if constraints.echo_cancellation or constraints.noise_suppression or constraints.auto_gain:
        logger.debug(
            "Input processing hints not applied by PortAudio: aec=%s ns=%s agc=%s",
            constraints.echo_cancellation,
            constraints.noise_suppression,
            constraints.auto_gain,
        )

    try:
        info = sd.query_devices(constraints.device, kind="input")
    except (ValueError, sd.PortAudioError) as exc:
        raise _classify(exc, "No usable input device") from exc

    max_channels = int(info.get("max_input_channels", 0))
    if max_channels <= 0:
        raise DeviceUnavailableError(f"Device has no input channels: {info.get('name')}")
    channels = max(1, min(constraints.channel_count_hint, max_channels))

    samplerate = constraints.sample_rate_hint
    try:
        sd.check_input_settings(
            device=constraints.device, channels=channels, samplerate=samplerate, dtype="float32"
        )
    except (ValueError, sd.PortAudioError):
        samplerate = int(info.get("default_samplerate") or samplerate)
        logger.info(
            "Device rejected %s Hz, falling back to default %s Hz",
            constraints.sample_rate_hint,
            samplerate,
        )

    def _callback(indata, _frames, _time_info, status) -> None:
        if status:
            logger.debug("Input stream status: %s", status)
        # Mono mixdown; the block buffer is reused by PortAudio after return
        if indata.ndim == 2 and indata.shape[1] > 1:
            block = indata.mean(axis=1, dtype=np.float32)
        else:
            block = np.array(indata, dtype=np.float32, copy=True).ravel()
        on_frames(block)

    try:
        stream = sd.InputStream(
            device=constraints.device,
            channels=channels,
            samplerate=samplerate,
            blocksize=max(1, int(samplerate * constraints.block_duration_ms / 1000)),
            dtype="float32",
            latency="low",
            callback=_callback,
        )
        stream.start()
    except (ValueError, sd.PortAudioError) as exc:
        raise _classify(exc, "Failed to open input stream") from exc

    logger.info(
        "Input stream opened: device=%s rate=%s channels=%s",
        info.get("name"),
        stream.samplerate,
        channels,
    )
    return stream
