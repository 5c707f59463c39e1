"""Push-to-talk recording state machine.

Phases::

    uninitialized --press--> ready --press--> recording
    recording --release | pointer_leave--> finalizing --(encode + deliver)--> ready
    uninitialized / ready --capture error--> failed --reset()--> uninitialized

Gesture handlers are plain methods meant to be called from the event loop
(UI callbacks). Finalizing runs as an ``asyncio.Task`` so the loop keeps
dispatching gestures while a delivery is in flight; a press that arrives
before finalizing completes is rejected, never queued.
"""

import asyncio
import logging
from collections.abc import Callable

import numpy as np

from src.core.exceptions import CaptureError, EmptyRecordingError, PushTalkError
from src.core.models import DeliveryOutcome, RecorderPhase
from src.services.audio.session import CaptureSession
from src.services.delivery import DeliveryClient

logger = logging.getLogger(__name__)

PhaseCallback = Callable[[RecorderPhase], None]
StatusCallback = Callable[[str], None]
OutcomeCallback = Callable[[DeliveryOutcome], None]
SpectrumCallback = Callable[[np.ndarray], None]


class PushToTalkRecorder:
    """Drives one capture session through press / release gestures.

    Args:
        delivery: Client used to submit finished clips.
        capture_factory: Builds a fresh ``CaptureSession`` on initialization.
        on_phase: Called with every new phase.
        on_status: Called with a short user-facing status message.
        on_outcome: Called with the outcome of each delivery.
        on_spectrum: Called with uint8 magnitudes while recording.
    """

    def __init__(
        self,
        delivery: DeliveryClient | None = None,
        capture_factory: Callable[[], CaptureSession] = CaptureSession,
        *,
        on_phase: PhaseCallback | None = None,
        on_status: StatusCallback | None = None,
        on_outcome: OutcomeCallback | None = None,
        on_spectrum: SpectrumCallback | None = None,
    ) -> None:
        self._owns_delivery = delivery is None
        self._delivery = delivery or DeliveryClient()
        self._capture_factory = capture_factory
        self._capture: CaptureSession | None = None
        self._phase = RecorderPhase.uninitialized
        self._finalize_task: asyncio.Task | None = None
        self._last_error: PushTalkError | None = None
        self._last_outcome: DeliveryOutcome | None = None

        self.on_phase = on_phase
        self.on_status = on_status
        self.on_outcome = on_outcome
        self.on_spectrum = on_spectrum

    # -- state --

    @property
    def phase(self) -> RecorderPhase:
        return self._phase

    @property
    def capture(self) -> CaptureSession | None:
        return self._capture

    @property
    def last_error(self) -> PushTalkError | None:
        """Most recent capture or delivery error, if any.

        Only capture errors move the recorder to ``failed``.
        """
        return self._last_error

    @property
    def last_outcome(self) -> DeliveryOutcome | None:
        return self._last_outcome

    @property
    def accepts_gestures(self) -> bool:
        return self._phase is not RecorderPhase.failed

    # -- gestures --

    def press(self) -> None:
        """Button pressed: initialize on first use, otherwise start recording."""
        phase = self._phase
        if phase is RecorderPhase.uninitialized:
            self._initialize()
        elif phase is RecorderPhase.ready:
            self._start_recording()
        elif phase is RecorderPhase.finalizing:
            logger.info("Press rejected: previous recording is still being processed")
            self._status("Still processing previous recording...")
        # recording: already started; failed: gestures disabled until reset()

    def release(self) -> None:
        """Button released."""
        self._stop("release")

    def pointer_leave(self) -> None:
        """Pointer left the button; treated exactly like a release."""
        self._stop("pointer-leave")

    async def join(self) -> None:
        """Wait for an in-flight finalize (encode + deliver) to complete."""
        task = self._finalize_task
        if task is not None:
            await asyncio.shield(task)

    async def reset(self) -> None:
        """Release the capture session and return to ``uninitialized``.

        The next press performs a brand-new initialization.
        """
        await self.join()
        self._close_capture()
        self._last_error = None
        self._set_phase(RecorderPhase.uninitialized)
        self._status("Click to start recording")

    async def aclose(self) -> None:
        """Finish pending work and release every owned resource."""
        await self.join()
        self._close_capture()
        self._set_phase(RecorderPhase.uninitialized)
        if self._owns_delivery:
            await self._delivery.aclose()

    # -- transitions --

    def _initialize(self) -> None:
        capture = self._capture_factory()
        capture.on_spectrum = self._emit_spectrum
        try:
            capture.open()
        except PushTalkError as exc:
            self._fail(exc)
            return
        self._capture = capture
        self._set_phase(RecorderPhase.ready)
        self._status("Ready to record")

    def _start_recording(self) -> None:
        try:
            self._capture.begin_recording()
        except CaptureError as exc:
            self._close_capture()
            self._fail(exc)
            return
        self._set_phase(RecorderPhase.recording)
        self._status("Recording...")

    def _stop(self, gesture: str) -> None:
        if self._phase is not RecorderPhase.recording:
            logger.debug("Ignoring %s in phase %s", gesture, self._phase)
            return
        logger.debug("Stopping recording on %s", gesture)
        self._set_phase(RecorderPhase.finalizing)
        self._status("Processing...")
        self._finalize_task = asyncio.get_running_loop().create_task(self._finalize())

    async def _finalize(self) -> None:
        capture = self._capture
        try:
            try:
                clip = capture.end_recording()
            except EmptyRecordingError:
                logger.warning("Recording is empty; nothing delivered")
                self._status("Error: Recording is empty")
                return

            self._status("Uploading...")
            outcome = await self._delivery.deliver(clip)
            self._last_outcome = outcome
            if outcome.ok:
                self._last_error = None
                self._status("Upload successful!")
            else:
                self._last_error = outcome.to_error()
                self._status(f"Upload failed: {outcome.reason}")
            if self.on_outcome is not None:
                self.on_outcome(outcome)
        except Exception:
            logger.exception("Finalizing recording failed")
            self._status("Error: processing failed")
        finally:
            capture.reset()
            self._finalize_task = None
            if self._phase is RecorderPhase.finalizing:
                self._set_phase(RecorderPhase.ready)

    def _fail(self, exc: PushTalkError) -> None:
        logger.error("Capture failed: %s", exc.detail)
        self._last_error = exc
        self._set_phase(RecorderPhase.failed)
        self._status(f"Error: {exc.detail}")

    # -- helpers --

    def _close_capture(self) -> None:
        if self._capture is not None:
            self._capture.close()
            self._capture = None

    def _set_phase(self, phase: RecorderPhase) -> None:
        if phase is self._phase:
            return
        logger.debug("Phase %s -> %s", self._phase, phase)
        self._phase = phase
        if self.on_phase is not None:
            self.on_phase(phase)

    def _status(self, message: str) -> None:
        if self.on_status is not None:
            self.on_status(message)

    def _emit_spectrum(self, magnitudes: np.ndarray) -> None:
        if self.on_spectrum is not None:
            self.on_spectrum(magnitudes)
