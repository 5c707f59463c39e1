"""Capture session: input stream, analysis tap, and clip accumulation.

One ``CaptureSession`` owns exactly one input stream and one
``RecordingSession`` value. The encoding mode is chosen once in ``open()``:

- native: frames go to a ``NativeEncoder`` whose chunks are accumulated;
- fallback: raw float frames are accumulated and encoded to WAV on stop.

PortAudio delivers frames on its own thread; they are marshalled onto the
event loop that opened the session, so every mutation of the session
buffers happens on a single dispatch path.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

import numpy as np

from src.core.config import Settings, get_settings
from src.core.exceptions import (
    DeviceUnavailableError,
    EmptyRecordingError,
    UnsupportedFormatError,
)
from src.core.models import AudioCapability, EncodedClip, SessionPhase
from src.services.audio import capabilities
from src.services.audio.analyser import SpectrumAnalyser
from src.services.audio.devices import FrameCallback, InputConstraints, InputStream, open_input_stream
from src.services.audio.encoder import NativeEncoder, create_encoder
from src.services.audio.wav import WAV_MEDIA_TYPE, encode_wav

logger = logging.getLogger(__name__)

SpectrumCallback = Callable[[np.ndarray], None]
StreamOpener = Callable[[InputConstraints, FrameCallback], InputStream]
EncoderFactory = Callable[..., NativeEncoder]


@dataclass
class RecordingSession:
    """Buffers and handles of the active capture.

    ``accumulated_chunks`` is used in native mode, ``raw_samples`` in
    fallback mode. Both are append-only while recording.
    """

    phase: SessionPhase = SessionPhase.idle
    input_handle: InputStream | None = None
    analysis_handle: SpectrumAnalyser | None = None
    accumulated_chunks: list[bytes] = field(default_factory=list)
    raw_samples: list[np.ndarray] = field(default_factory=list)

    @property
    def accumulated_bytes(self) -> int:
        return sum(len(chunk) for chunk in self.accumulated_chunks)

    @property
    def accumulated_samples(self) -> int:
        return sum(block.size for block in self.raw_samples)

    def clear(self) -> None:
        """Drop all buffered audio and return to idle."""
        self.accumulated_chunks = []
        self.raw_samples = []
        self.phase = SessionPhase.idle


class CaptureSession:
    """Owns the microphone stream and turns one recording into a clip.

    Args:
        settings: Application settings (defaults to ``get_settings()``).
        open_stream: Device acquisition function.
        probe: Capability query; returns ``None`` when no native codec exists.
        encoder_factory: Builds the native encoder for a capability.
        on_spectrum: Receives uint8 magnitudes on every tick while recording.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        open_stream: StreamOpener = open_input_stream,
        probe: Callable[[], AudioCapability | None] | None = None,
        encoder_factory: EncoderFactory = create_encoder,
        on_spectrum: SpectrumCallback | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._open_stream = open_stream
        self._probe = probe or self._default_probe
        self._encoder_factory = encoder_factory
        self.on_spectrum = on_spectrum

        self._session = RecordingSession()
        self._capability: AudioCapability | None = None
        self._encoder: NativeEncoder | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    # -- properties --

    @property
    def session(self) -> RecordingSession:
        return self._session

    @property
    def is_open(self) -> bool:
        return self._session.input_handle is not None

    @property
    def capability(self) -> AudioCapability | None:
        """Native capability chosen at open time (``None`` in fallback mode)."""
        return self._capability

    @property
    def native_mode(self) -> bool:
        return self._encoder is not None

    @property
    def sample_rate(self) -> int:
        """Sample rate actually negotiated with the device."""
        if self._session.input_handle is None:
            raise DeviceUnavailableError("Capture session is not open")
        return int(round(self._session.input_handle.samplerate))

    # -- lifecycle --

    def open(self) -> None:
        """Probe formats, acquire the input stream and attach the analysis tap.

        Calling ``open()`` on an already open session is a no-op; the input
        device is never acquired twice.

        Raises:
            UnsupportedFormatError: No native codec and PCM fallback disabled.
            PermissionDeniedError: Microphone access refused.
            DeviceUnavailableError: No usable input device.
        """
        if self.is_open:
            logger.debug("Capture session already open")
            return

        capability = self._probe()
        if capability is None and not self._settings.pcm_fallback_enabled:
            raise UnsupportedFormatError()

        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None

        analyser = SpectrumAnalyser(
            fft_size=self._settings.fft_size,
            smoothing_time_constant=self._settings.smoothing_time_constant,
            min_decibels=self._settings.min_decibels,
            max_decibels=self._settings.max_decibels,
        )
        handle = self._open_stream(self._constraints(), self._dispatch_frames)

        self._capability = capability
        self._encoder = None
        if capability is not None:
            self._encoder = self._encoder_factory(
                capability,
                self._append_chunk,
                chunk_size=self._settings.encoder_chunk_size,
                bitrate=self._settings.audio_bits_per_second,
            )
        self._session = RecordingSession(input_handle=handle, analysis_handle=analyser)
        logger.info(
            "Capture session opened (%s mode, %s Hz)",
            "native" if capability else "fallback",
            self.sample_rate,
        )

    def close(self) -> None:
        """Stop and release the input stream."""
        handle = self._session.input_handle
        self._session.clear()
        self._session.input_handle = None
        self._session.analysis_handle = None
        self._encoder = None
        self._capability = None
        self._loop = None
        if handle is None:
            return
        try:
            handle.stop()
            handle.close()
        except Exception:
            logger.warning("Failed to close input stream cleanly", exc_info=True)
        logger.info("Capture session closed")

    # -- recording --

    def begin_recording(self) -> None:
        """Start accumulating audio for a new clip.

        Raises:
            DeviceUnavailableError: The session is not open or its input
                stream is no longer running.
        """
        if not self.is_open:
            raise DeviceUnavailableError("Capture session is not open")
        if not self._session.input_handle.active:
            raise DeviceUnavailableError("Input stream stopped; the microphone may be disconnected")
        if self._session.phase is not SessionPhase.idle:
            logger.warning("begin_recording ignored in phase %s", self._session.phase)
            return

        self._session.analysis_handle.reset()
        self._session.phase = SessionPhase.recording
        if self._encoder is not None:
            self._encoder.start(self.sample_rate)
        logger.debug("Recording started")

    def end_recording(self) -> EncodedClip:
        """Stop accumulating and build the clip from the buffered audio.

        The buffers stay in place (read-only) until ``reset()`` is called.

        Raises:
            EmptyRecordingError: Nothing was captured.
            RuntimeError: The session was not recording.
        """
        if self._session.phase is not SessionPhase.recording:
            raise RuntimeError(f"Cannot end recording in phase {self._session.phase}")
        self._session.phase = SessionPhase.finalizing

        if self._encoder is not None:
            self._encoder.stop()
            if self._session.accumulated_bytes == 0:
                raise EmptyRecordingError()
            data = b"".join(self._session.accumulated_chunks)
            media_type = self._capability.mime_string
            extension = self._capability.extension
        else:
            if self._session.accumulated_samples == 0:
                raise EmptyRecordingError()
            samples = np.concatenate(self._session.raw_samples)
            data = encode_wav(samples, self.sample_rate)
            media_type = WAV_MEDIA_TYPE
            extension = "wav"

        clip = EncodedClip(
            data=data,
            media_type=media_type,
            filename=f"{self._settings.clip_basename}.{extension}",
        )
        logger.info("Recording finalized: %s, %d bytes", clip.media_type, clip.size)
        return clip

    def reset(self) -> None:
        """Clear the buffers so the session can record again."""
        self._session.clear()

    # -- frame path --

    def handle_frames(self, block: np.ndarray) -> None:
        """Process one captured block on the dispatch path."""
        analyser = self._session.analysis_handle
        if analyser is None:
            return
        analyser.push(block)
        if self._session.phase is not SessionPhase.recording:
            return

        if self._encoder is not None:
            self._encoder.write(block)
        else:
            self._session.raw_samples.append(block)

        if self.on_spectrum is not None:
            self.on_spectrum(analyser.byte_frequency_data())

    def _dispatch_frames(self, block: np.ndarray) -> None:
        """Device callback: hop onto the owning event loop if there is one."""
        loop = self._loop
        if loop is None:
            self.handle_frames(block)
            return
        try:
            loop.call_soon_threadsafe(self.handle_frames, block)
        except RuntimeError:
            logger.debug("Event loop closed; dropping %d frames", block.size)

    def _append_chunk(self, chunk: bytes) -> None:
        """Data-available callback of the native encoder."""
        if not chunk:
            return
        if self._session.phase is SessionPhase.idle:
            logger.debug("Dropping encoder chunk outside a recording")
            return
        self._session.accumulated_chunks.append(bytes(chunk))

    # -- helpers --

    def _constraints(self) -> InputConstraints:
        s = self._settings
        return InputConstraints(
            echo_cancellation=s.echo_cancellation,
            noise_suppression=s.noise_suppression,
            auto_gain=s.auto_gain,
            sample_rate_hint=s.sample_rate_hint,
            channel_count_hint=s.channel_count_hint,
            device=s.input_device,
            block_duration_ms=s.block_duration_ms,
        )

    def _default_probe(self) -> AudioCapability | None:
        return capabilities.probe(allowed_containers=self._settings.preferred_formats)
