"""Shared pytest fixtures for the PushTalk test suite.

Provides a fake input device standing in for PortAudio, sample generators,
and isolated settings that never read a developer's ``.env`` file.
"""

import math

import numpy as np
import pytest

from src.core.config import Settings

# ---------------------------------------------------------------------------
# Fake input device
# ---------------------------------------------------------------------------


class FakeInputStream:
    """In-memory stand-in for ``sounddevice.InputStream``."""

    def __init__(self, samplerate: float, on_frames) -> None:
        self.samplerate = samplerate
        self._on_frames = on_frames
        self.started = True
        self.closed = False

    @property
    def active(self) -> bool:
        return self.started and not self.closed

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.started = False

    def close(self) -> None:
        self.closed = True

    def emit(self, block) -> None:
        """Deliver one captured block as the device callback would."""
        self._on_frames(np.asarray(block, dtype=np.float32))


class FakeDevice:
    """Callable replacing ``open_input_stream``; records every acquisition."""

    def __init__(self, samplerate: float = 44100.0, error: Exception | None = None) -> None:
        self.samplerate = samplerate
        self.error = error
        self.streams: list[FakeInputStream] = []
        self.constraints = []

    def __call__(self, constraints, on_frames) -> FakeInputStream:
        self.constraints.append(constraints)
        if self.error is not None:
            raise self.error
        stream = FakeInputStream(self.samplerate, on_frames)
        self.streams.append(stream)
        return stream

    @property
    def stream(self) -> FakeInputStream:
        return self.streams[-1]


@pytest.fixture
def fake_device():
    """A working fake microphone negotiating 44.1 kHz."""
    return FakeDevice()


@pytest.fixture
def make_device():
    """Factory for fake devices with a custom rate or acquisition error."""
    return FakeDevice


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def settings():
    """Default settings isolated from environment files."""
    return Settings(_env_file=None)


# ---------------------------------------------------------------------------
# Audio Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sine_samples():
    """Generate 0.5 seconds of a 440 Hz sine at half amplitude (44.1 kHz).

    Returns:
        np.ndarray: float32 mono samples.
    """
    sample_rate = 44100
    t = np.arange(sample_rate // 2) / sample_rate
    return (0.5 * np.sin(2 * math.pi * 440.0 * t)).astype(np.float32)


@pytest.fixture
def silent_block():
    """One 20 ms block of silence at 44.1 kHz."""
    return np.zeros(882, dtype=np.float32)
