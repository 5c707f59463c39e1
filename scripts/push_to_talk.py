#!/usr/bin/env python3
"""
PushTalk console driver

Terminal stand-in for the push-to-talk button: Enter presses, the next
Enter releases. The first Enter only initializes the microphone.

Usage:
    python scripts/push_to_talk.py                        # Use SINK_URL from .env
    python scripts/push_to_talk.py --sink-url http://host:8000/api/v1/upload
    python scripts/push_to_talk.py --wav-only             # Force the WAV encoder

Commands: <Enter> press / release, r + <Enter> reset after an error,
q + <Enter> quit.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Ensure project root is on sys.path for ``src`` imports
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import numpy as np  # noqa: E402

from src.core.config import get_settings  # noqa: E402
from src.core.models import RecorderPhase  # noqa: E402
from src.services.audio.session import CaptureSession  # noqa: E402
from src.services.delivery import DeliveryClient  # noqa: E402
from src.services.recorder import PushToTalkRecorder  # noqa: E402

METER_WIDTH = 40


def _print_status(message: str) -> None:
    print(f"\n[{message}]", flush=True)


def _print_meter(magnitudes: np.ndarray) -> None:
    level = int(magnitudes.max()) if magnitudes.size else 0
    filled = level * METER_WIDTH // 255
    print("\r|" + "#" * filled + " " * (METER_WIDTH - filled) + "|", end="", flush=True)


async def run(sink_url: str | None, wav_only: bool) -> int:
    settings = get_settings()
    if wav_only:
        settings = settings.model_copy(update={"preferred_formats": []})

    delivery = DeliveryClient(sink_url=sink_url)
    recorder = PushToTalkRecorder(
        delivery=delivery,
        capture_factory=lambda: CaptureSession(settings),
        on_status=_print_status,
        on_spectrum=_print_meter,
    )

    loop = asyncio.get_running_loop()
    lines: asyncio.Queue[str] = asyncio.Queue()
    loop.add_reader(sys.stdin, lambda: lines.put_nowait(sys.stdin.readline()))

    print("Press Enter to start (q to quit).")
    try:
        while True:
            line = await lines.get()
            command = line.strip().lower()
            if not line or command == "q":
                break
            if command == "r":
                await recorder.reset()
            elif recorder.phase is RecorderPhase.recording:
                recorder.release()
            else:
                recorder.press()
    finally:
        loop.remove_reader(sys.stdin)
        await recorder.aclose()
        await delivery.aclose()
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Record push-to-talk clips from the terminal")
    parser.add_argument("--sink-url", default=None, help="Upload endpoint (default: SINK_URL)")
    parser.add_argument(
        "--wav-only",
        action="store_true",
        help="Skip native codecs and always encode WAV",
    )
    args = parser.parse_args()

    logging.basicConfig(level=get_settings().log_level)
    return asyncio.run(run(sink_url=args.sink_url, wav_only=args.wav_only))


if __name__ == "__main__":
    sys.exit(main())
