"""
Audio module - capture, analysis, and encoding of push-to-talk clips.
"""

from .analyser import SpectrumAnalyser
from .capabilities import PREFERRED_CAPABILITIES, probe
from .session import CaptureSession, RecordingSession
from .wav import encode_wav, read_wav_header

__all__ = [
    "PREFERRED_CAPABILITIES",
    "CaptureSession",
    "RecordingSession",
    "SpectrumAnalyser",
    "encode_wav",
    "probe",
    "read_wav_header",
]
