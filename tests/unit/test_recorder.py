"""Unit tests for the push-to-talk state machine.

Gestures are driven on the running event loop; the capture session sits on
a fake input device and delivery is an ``AsyncMock`` of ``DeliveryClient``.
"""

import asyncio
from unittest.mock import AsyncMock

import numpy as np
import pytest

from src.core.exceptions import DeviceUnavailableError, PermissionDeniedError, SinkRejectedError
from src.core.models import DeliveryFailure, DeliverySuccess, FailureKind, RecorderPhase
from src.services.audio.session import CaptureSession
from src.services.delivery import DeliveryClient
from src.services.recorder import PushToTalkRecorder


@pytest.fixture
def delivery():
    client = AsyncMock(spec=DeliveryClient)
    client.deliver.return_value = DeliverySuccess(receipt={"file_id": "F123"})
    return client


@pytest.fixture
def events():
    """Collected phase and status notifications."""
    return {"phases": [], "statuses": [], "outcomes": [], "spectra": []}


@pytest.fixture
def make_recorder(settings, fake_device, delivery, events):
    """Build a recorder whose capture sessions use the given fake device."""

    def _make(device=fake_device, client=delivery):
        return PushToTalkRecorder(
            client,
            capture_factory=lambda: CaptureSession(settings, open_stream=device, probe=lambda: None),
            on_phase=events["phases"].append,
            on_status=events["statuses"].append,
            on_outcome=events["outcomes"].append,
            on_spectrum=events["spectra"].append,
        )

    return _make


async def _speak(device, blocks=5):
    """Emit some audio and let the loop process the device callbacks."""
    for _ in range(blocks):
        device.stream.emit(np.full(882, 0.25, dtype=np.float32))
    await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------


class TestInitialization:
    """The first press only acquires the microphone."""

    async def test_first_press_initializes(self, make_recorder, fake_device, events):
        recorder = make_recorder()
        assert recorder.phase is RecorderPhase.uninitialized

        recorder.press()

        assert recorder.phase is RecorderPhase.ready
        assert len(fake_device.streams) == 1
        assert events["statuses"] == ["Ready to record"]

    async def test_permission_denied_fails(self, make_recorder, make_device, events):
        recorder = make_recorder(device=make_device(error=PermissionDeniedError()))
        recorder.press()

        assert recorder.phase is RecorderPhase.failed
        assert recorder.accepts_gestures is False
        assert isinstance(recorder.last_error, PermissionDeniedError)
        assert events["statuses"][-1] == "Error: Microphone permission denied"

    async def test_failed_ignores_gestures(self, make_recorder, make_device):
        device = make_device(error=DeviceUnavailableError("No microphone"))
        recorder = make_recorder(device=device)
        recorder.press()
        recorder.press()
        recorder.release()

        assert recorder.phase is RecorderPhase.failed
        assert len(device.constraints) == 1

    async def test_lost_microphone_fails(self, make_recorder, fake_device, delivery, events):
        """A stream that stops after initialization moves the recorder to failed."""
        recorder = make_recorder()
        recorder.press()
        lost = fake_device.stream
        lost.stop()

        recorder.press()

        assert recorder.phase is RecorderPhase.failed
        assert isinstance(recorder.last_error, DeviceUnavailableError)
        assert lost.closed is True
        assert recorder.capture is None
        assert events["statuses"][-1].startswith("Error: Input stream stopped")

        recorder.press()
        recorder.release()
        await recorder.join()
        delivery.deliver.assert_not_called()
        assert recorder.phase is RecorderPhase.failed

        await recorder.reset()
        recorder.press()
        assert recorder.phase is RecorderPhase.ready
        assert fake_device.stream is not lost

    async def test_reset_allows_reinitialization(self, make_recorder, make_device):
        device = make_device(error=DeviceUnavailableError())
        recorder = make_recorder(device=device)
        recorder.press()
        assert recorder.phase is RecorderPhase.failed

        await recorder.reset()
        assert recorder.phase is RecorderPhase.uninitialized
        assert recorder.last_error is None

        device.error = None
        recorder.press()
        assert recorder.phase is RecorderPhase.ready


# ---------------------------------------------------------------------------
# Recording gestures
# ---------------------------------------------------------------------------


class TestGestures:
    async def test_press_when_ready_records(self, make_recorder, events):
        recorder = make_recorder()
        recorder.press()
        recorder.press()
        assert recorder.phase is RecorderPhase.recording
        assert events["statuses"][-1] == "Recording..."

    async def test_press_while_recording_is_idempotent(self, make_recorder, fake_device, events):
        recorder = make_recorder()
        recorder.press()
        recorder.press()
        await _speak(fake_device)
        recorder.press()

        assert recorder.phase is RecorderPhase.recording
        assert recorder.capture.session.accumulated_samples == 5 * 882
        assert events["phases"].count(RecorderPhase.recording) == 1

    async def test_release_without_press_is_noop(self, make_recorder, delivery):
        recorder = make_recorder()
        recorder.release()
        recorder.pointer_leave()
        assert recorder.phase is RecorderPhase.uninitialized

        recorder.press()
        recorder.release()
        assert recorder.phase is RecorderPhase.ready
        delivery.deliver.assert_not_called()

    async def test_release_then_leave_finalizes_once(
        self, make_recorder, fake_device, delivery, events
    ):
        recorder = make_recorder()
        recorder.press()
        recorder.press()
        await _speak(fake_device)

        recorder.release()
        recorder.pointer_leave()
        await recorder.join()

        assert events["phases"].count(RecorderPhase.finalizing) == 1
        delivery.deliver.assert_awaited_once()
        assert recorder.phase is RecorderPhase.ready

    async def test_pointer_leave_stops_like_release(self, make_recorder, fake_device, delivery):
        recorder = make_recorder()
        recorder.press()
        recorder.press()
        await _speak(fake_device)

        recorder.pointer_leave()
        assert recorder.phase is RecorderPhase.finalizing
        await recorder.join()
        delivery.deliver.assert_awaited_once()

    async def test_spectrum_forwarded_while_recording(self, make_recorder, fake_device, events):
        recorder = make_recorder()
        recorder.press()
        await _speak(fake_device)
        assert events["spectra"] == []

        recorder.press()
        await _speak(fake_device, blocks=3)
        assert len(events["spectra"]) == 3


# ---------------------------------------------------------------------------
# Finalize and delivery
# ---------------------------------------------------------------------------


class TestFinalize:
    async def test_successful_delivery(self, make_recorder, fake_device, delivery, events):
        recorder = make_recorder()
        recorder.press()
        recorder.press()
        await _speak(fake_device)
        recorder.release()
        await recorder.join()

        clip = delivery.deliver.await_args.args[0]
        assert clip.media_type == "audio/wav"
        assert clip.size == 44 + 5 * 882 * 2
        assert events["statuses"][-3:] == ["Processing...", "Uploading...", "Upload successful!"]
        assert events["outcomes"] == [DeliverySuccess(receipt={"file_id": "F123"})]
        assert recorder.last_outcome.ok is True

    async def test_buffers_cleared_after_finalize(self, make_recorder, fake_device):
        recorder = make_recorder()
        recorder.press()
        recorder.press()
        await _speak(fake_device)
        recorder.release()
        await recorder.join()

        assert recorder.capture.session.raw_samples == []

    async def test_empty_recording_skips_delivery(self, make_recorder, delivery, events):
        recorder = make_recorder()
        recorder.press()
        recorder.press()
        recorder.release()
        await recorder.join()

        delivery.deliver.assert_not_called()
        assert events["statuses"][-1] == "Error: Recording is empty"
        assert recorder.phase is RecorderPhase.ready

    async def test_delivery_failure_returns_to_ready(
        self, make_recorder, fake_device, delivery, events
    ):
        delivery.deliver.return_value = DeliveryFailure("quota exceeded")
        recorder = make_recorder()
        recorder.press()
        recorder.press()
        await _speak(fake_device)
        recorder.release()
        await recorder.join()

        assert events["statuses"][-1] == "Upload failed: quota exceeded"
        assert recorder.phase is RecorderPhase.ready
        assert recorder.accepts_gestures is True
        assert recorder.last_outcome.kind is FailureKind.rejected
        assert isinstance(recorder.last_error, SinkRejectedError)
        assert recorder.last_error.reason == "quota exceeded"

    async def test_delivery_exception_returns_to_ready(
        self, make_recorder, fake_device, delivery, events
    ):
        delivery.deliver.side_effect = RuntimeError("boom")
        recorder = make_recorder()
        recorder.press()
        recorder.press()
        await _speak(fake_device)
        recorder.release()
        await recorder.join()

        assert events["statuses"][-1] == "Error: processing failed"
        assert recorder.phase is RecorderPhase.ready

    async def test_records_again_after_delivery(self, make_recorder, fake_device, delivery):
        recorder = make_recorder()
        recorder.press()
        for _ in range(2):
            recorder.press()
            await _speak(fake_device)
            recorder.release()
            await recorder.join()

        assert delivery.deliver.await_count == 2
        first, second = (call.args[0] for call in delivery.deliver.await_args_list)
        assert first.clip_id != second.clip_id
        assert len(fake_device.streams) == 1

    async def test_press_during_finalizing_is_rejected(
        self, make_recorder, fake_device, delivery, events
    ):
        gate = asyncio.Event()

        async def slow_deliver(_clip):
            await gate.wait()
            return DeliverySuccess()

        delivery.deliver.side_effect = slow_deliver
        recorder = make_recorder()
        recorder.press()
        recorder.press()
        await _speak(fake_device)
        recorder.release()
        await asyncio.sleep(0)

        recorder.press()
        assert recorder.phase is RecorderPhase.finalizing
        assert events["statuses"][-1] == "Still processing previous recording..."

        gate.set()
        await recorder.join()
        assert recorder.phase is RecorderPhase.ready
        assert events["phases"].count(RecorderPhase.recording) == 1


# ---------------------------------------------------------------------------
# Teardown
# ---------------------------------------------------------------------------


class TestTeardown:
    async def test_reset_releases_device(self, make_recorder, fake_device, events):
        recorder = make_recorder()
        recorder.press()
        stream = fake_device.stream

        await recorder.reset()

        assert stream.closed is True
        assert recorder.capture is None
        assert recorder.phase is RecorderPhase.uninitialized
        assert events["statuses"][-1] == "Click to start recording"

    async def test_reset_waits_for_delivery(self, make_recorder, fake_device, delivery):
        recorder = make_recorder()
        recorder.press()
        recorder.press()
        await _speak(fake_device)
        recorder.release()

        await recorder.reset()

        delivery.deliver.assert_awaited_once()
        assert recorder.phase is RecorderPhase.uninitialized

    async def test_aclose_returns_to_uninitialized(self, make_recorder, fake_device):
        recorder = make_recorder()
        recorder.press()
        await recorder.aclose()
        assert recorder.phase is RecorderPhase.uninitialized

        recorder.press()
        assert recorder.phase is RecorderPhase.ready
        assert len(fake_device.streams) == 2

    async def test_aclose_keeps_injected_delivery_open(self, make_recorder, delivery):
        recorder = make_recorder()
        recorder.press()
        await recorder.aclose()
        delivery.aclose.assert_not_called()
        assert recorder.capture is None
