"""Spectrum analysis tap for the visualizer.

Keeps a rolling window of the most recent samples and produces byte-valued
frequency magnitudes the way a browser ``AnalyserNode`` does: Blackman
window, FFT, exponential smoothing over time, then decibels scaled into
0-255 between ``min_decibels`` and ``max_decibels``.
"""

import numpy as np


class SpectrumAnalyser:
    """Rolling FFT analyser producing uint8 magnitude frames.

    Args:
        fft_size: Window length; must be a power of two >= 32.
        smoothing_time_constant: Weight of the previous frame, in [0, 1).
        min_decibels: Level mapped to 0.
        max_decibels: Level mapped to 255.
    """

    def __init__(
        self,
        fft_size: int = 256,
        smoothing_time_constant: float = 0.8,
        min_decibels: float = -100.0,
        max_decibels: float = -30.0,
    ) -> None:
        if fft_size < 32 or fft_size & (fft_size - 1):
            raise ValueError(f"fft_size must be a power of two >= 32, got {fft_size}")
        if not 0.0 <= smoothing_time_constant < 1.0:
            raise ValueError("smoothing_time_constant must be in [0, 1)")
        if min_decibels >= max_decibels:
            raise ValueError("min_decibels must be lower than max_decibels")

        self.fft_size = fft_size
        self._smoothing = smoothing_time_constant
        self._min_db = min_decibels
        self._max_db = max_decibels
        self._window = np.blackman(fft_size)
        self._samples = np.zeros(fft_size, dtype=np.float32)
        self._smoothed = np.zeros(fft_size // 2, dtype=np.float64)

    @property
    def frequency_bin_count(self) -> int:
        """Number of magnitude values per frame."""
        return self.fft_size // 2

    def push(self, samples: np.ndarray) -> None:
        """Append mono samples to the rolling window."""
        block = np.asarray(samples, dtype=np.float32).ravel()
        if block.size >= self.fft_size:
            self._samples = block[-self.fft_size :].copy()
        elif block.size:
            self._samples = np.concatenate((self._samples[block.size :], block))

    def byte_frequency_data(self) -> np.ndarray:
        """Compute the current magnitude frame.

        Returns:
            uint8 array of length ``fft_size // 2``.
        """
        spectrum = np.fft.rfft(self._samples * self._window)[: self.frequency_bin_count]
        magnitude = np.abs(spectrum) / self.fft_size
        self._smoothed = self._smoothing * self._smoothed + (1.0 - self._smoothing) * magnitude

        with np.errstate(divide="ignore"):
            decibels = 20.0 * np.log10(self._smoothed)
        scaled = (decibels - self._min_db) * (255.0 / (self._max_db - self._min_db))
        return np.clip(np.nan_to_num(scaled, neginf=0.0), 0, 255).astype(np.uint8)

    def reset(self) -> None:
        """Forget all buffered samples and smoothing history."""
        self._samples.fill(0.0)
        self._smoothed.fill(0.0)
