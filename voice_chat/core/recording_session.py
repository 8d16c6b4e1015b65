"""State machine gating microphone recording."""

import threading
from concurrent.futures import Future
from typing import Callable, Optional
import structlog

from ..audio.recorder import Recorder
from ..errors import AcquisitionError, CaptureError, NO_AUDIO_MESSAGE
from ..models import AudioSegment, RecordingState


logger = structlog.get_logger()

SegmentCallback = Callable[[AudioSegment], None]
ErrorCallback = Callable[[str], None]
StateCallback = Callable[[RecordingState, RecordingState], None]


class RecordingSession:
    """
    Gates start/stop of a Recorder and tracks initialisation and errors.

    States move ``UNINITIALIZED -> READY -> RECORDING -> READY -> ...``.
    The error flag is orthogonal: it can be raised from any state and is
    cleared independently with ``clear_error()``.

    ``start()`` and ``stop()`` return immediately with a success flag. The
    audio of a recording arrives later: ``pending_segment`` is a Future
    resolved with the AudioSegment (or failed with CaptureError), and
    ``on_segment`` is invoked with every non-empty segment.
    """

    def __init__(
        self,
        recorder: Recorder,
        on_segment: Optional[SegmentCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        on_state_change: Optional[StateCallback] = None,
    ):
        self._recorder = recorder
        self._on_segment = on_segment
        self._on_error = on_error
        self._on_state_change = on_state_change

        self._lock = threading.RLock()
        self._state = RecordingState.UNINITIALIZED
        self._error: Optional[str] = None
        self._pending: Optional[Future] = None
        self._released = False

    @property
    def state(self) -> RecordingState:
        return self._state

    @property
    def is_initialized(self) -> bool:
        return self._state != RecordingState.UNINITIALIZED

    @property
    def is_recording(self) -> bool:
        return self._state == RecordingState.RECORDING

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def pending_segment(self) -> Optional[Future]:
        """Future for the most recent recording, or None before the first start."""
        return self._pending

    @property
    def awaiting_segment(self) -> bool:
        """True between a successful ``stop()`` and delivery of its audio."""
        pending = self._pending
        return (
            pending is not None
            and not pending.done()
            and self._state != RecordingState.RECORDING
        )

    def initialize(self) -> bool:
        """Acquire the microphone. Returns True when the session is Ready."""
        with self._lock:
            if self._released:
                logger.warning("Cannot initialize a closed recording session")
                return False
            if self._state != RecordingState.UNINITIALIZED:
                return True

            self._set_error(None)
            logger.info("Initializing recording session")
            try:
                self._recorder.acquire()
            except AcquisitionError as e:
                logger.error("Microphone acquisition failed", reason=e.reason, detail=e.detail)
                self._set_error(str(e))
                return False

            self._transition(RecordingState.READY)
            logger.info("Recording session initialized")
            return True

    def start(self) -> bool:
        """Begin a recording. Rejected unless the session is Ready."""
        with self._lock:
            if self._state != RecordingState.READY:
                logger.warning("Cannot start recording", state=self._state.value)
                return False

            self._set_error(None)
            pending: Future = Future()
            try:
                self._recorder.start(
                    on_data=lambda payload: self._handle_data(pending, payload),
                    on_error=lambda error: self._handle_device_error(pending, error),
                )
            except CaptureError as e:
                logger.error("Recorder refused to start", error=str(e))
                self._set_error(str(e))
                return False

            self._pending = pending
            self._transition(RecordingState.RECORDING)
            return True

    def stop(self) -> bool:
        """End the current recording. The segment is delivered asynchronously."""
        with self._lock:
            if self._state != RecordingState.RECORDING:
                logger.warning("Cannot stop recording", state=self._state.value)
                return False

            self._transition(RecordingState.READY)
            self._recorder.stop()
            return True

    def next_segment(self, timeout: Optional[float] = None) -> AudioSegment:
        """
        Wait for the audio of the most recent recording.

        Raises:
            CaptureError: if nothing was recorded or the device failed
            RuntimeError: if no recording was ever started
            concurrent.futures.TimeoutError: if the audio does not arrive in time
        """
        pending = self._pending
        if pending is None:
            raise RuntimeError("No recording has been started")
        return pending.result(timeout=timeout)

    def clear_error(self) -> None:
        with self._lock:
            self._error = None

    def close(self) -> None:
        """Stop any recording and release the microphone exactly once."""
        with self._lock:
            if self._released:
                return
            self._released = True

            if self._state == RecordingState.RECORDING:
                logger.info("Stopping recording before teardown")
                self._transition(RecordingState.READY)
                try:
                    self._recorder.stop()
                except Exception as e:
                    logger.warning("Error stopping recorder during teardown", error=str(e))

            try:
                self._recorder.release()
            finally:
                self._transition(RecordingState.UNINITIALIZED)
                logger.info("Recording session closed")

    def __enter__(self) -> "RecordingSession":
        self.initialize()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _handle_data(self, pending: Future, payload: bytes) -> None:
        """Recorder flushed a recording."""
        if pending.done():
            return

        if not payload:
            logger.warning("No audio data recorded")
            self._set_error(NO_AUDIO_MESSAGE)
            pending.set_exception(CaptureError(NO_AUDIO_MESSAGE))
            return

        segment = AudioSegment(data=bytes(payload), mime_type=self._recorder.mime_type)
        logger.info("Audio segment available", size=segment.size, mime_type=segment.mime_type)
        # Hand off before resolving so awaiting_segment never reports a gap
        try:
            if self._on_segment and not self._released:
                self._on_segment(segment)
        finally:
            pending.set_result(segment)

    def _handle_device_error(self, pending: Future, error: Exception) -> None:
        """A device fault ends the recording without leaving the UI stuck."""
        message = str(error) or "Recording error"
        logger.error("Recorder device error", error=message)
        with self._lock:
            self._set_error(message)
            if self._state == RecordingState.RECORDING:
                self._transition(RecordingState.READY)
        if not pending.done():
            pending.set_exception(CaptureError(message))

    def _set_error(self, message: Optional[str]) -> None:
        self._error = message
        if message and self._on_error:
            self._on_error(message)

    def _transition(self, to_state: RecordingState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        logger.debug("Recording state changed", from_state=from_state.value, to_state=to_state.value)
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
