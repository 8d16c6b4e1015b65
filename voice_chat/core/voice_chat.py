"""
Interactive voice chat controller tying the microphone to the pipeline.
"""

import threading
from typing import Callable, Optional
import structlog

from .pipeline import CycleResult, PipelineOrchestrator
from .recording_session import RecordingSession
from ..audio.recorder import Recorder
from ..models import AudioSegment, PipelineState, RecordingState, Turn


logger = structlog.get_logger()

START_FAILED_MESSAGE = "Could not start recording."


class VoiceChat:
    """
    The user-facing affordances of a voice conversation.

    Owns one RecordingSession and one PipelineOrchestrator. Each delivered
    segment is processed on a worker thread. Recording cannot start while a
    cycle is processing or while the previous recording's audio is still
    being flushed, so at most one cycle is ever in flight.
    """

    def __init__(
        self,
        recorder: Recorder,
        orchestrator: PipelineOrchestrator,
        on_turn: Optional[Callable[[Turn], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
        on_status: Optional[Callable[[str], None]] = None,
    ):
        self.orchestrator = orchestrator
        self.on_turn = on_turn
        self.on_error = on_error
        self.on_status = on_status

        self.orchestrator.on_turn = self._handle_turn
        self.orchestrator.on_error = self._report_error
        self.orchestrator.on_state_change = self._handle_pipeline_state

        self.session = RecordingSession(
            recorder,
            on_segment=self._handle_segment,
            on_error=self._report_error,
            on_state_change=self._handle_recording_state,
        )

        self._lock = threading.Lock()
        self._worker: Optional[threading.Thread] = None
        self._closed = False
        self.error_message: Optional[str] = None
        self.last_result: Optional[CycleResult] = None

    @property
    def conversation(self):
        return self.orchestrator.store.all()

    @property
    def is_recording(self) -> bool:
        return self.session.is_recording

    @property
    def is_processing(self) -> bool:
        worker = self._worker
        return self.orchestrator.is_processing or (worker is not None and worker.is_alive())

    @property
    def can_record(self) -> bool:
        """Whether the record button should be enabled."""
        return (
            self.session.is_initialized
            and not self.is_processing
            and not self.session.awaiting_segment
        )

    @property
    def can_reset(self) -> bool:
        return not self.is_processing

    def mount(self) -> bool:
        """Acquire the microphone. Returns False and sets the error on failure."""
        if self._closed:
            return False
        return self.session.initialize()

    def toggle_recording(self) -> bool:
        """Start or stop recording, like pressing the record button."""
        if self.session.is_recording:
            return self.session.stop()

        if self.is_processing or self.session.awaiting_segment:
            logger.info("Recording blocked while a cycle is in progress")
            return False

        if not self.session.start():
            if not self.session.error:
                self._report_error(START_FAILED_MESSAGE)
            return False

        self.error_message = None
        return True

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Wait for pending audio and the current cycle to finish."""
        pending = self.session.pending_segment
        if pending is not None:
            try:
                pending.exception(timeout=timeout)
            except TimeoutError:
                return False
        worker = self._worker
        if worker is not None:
            worker.join(timeout)
            if worker.is_alive():
                return False
        return True

    def reset(self) -> bool:
        """Start a new conversation. Refused while processing."""
        if self.is_processing:
            logger.info("Reset blocked while processing")
            return False
        if not self.orchestrator.reset():
            return False
        self.error_message = None
        self.session.clear_error()
        self._status("Conversation reset")
        return True

    def close(self) -> None:
        """Unmount: release the microphone and stop speech."""
        if self._closed:
            return
        self._closed = True
        self.session.close()
        worker = self._worker
        if worker is not None and worker is not threading.current_thread():
            worker.join(timeout=5.0)
        if self.orchestrator.speech_output:
            self.orchestrator.speech_output.close()
        logger.info("Voice chat closed")

    def __enter__(self) -> "VoiceChat":
        self.mount()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _handle_segment(self, segment: AudioSegment) -> None:
        with self._lock:
            if self._closed:
                return
            self._worker = threading.Thread(
                target=self._process, args=(segment,), daemon=True, name="Pipeline-Worker"
            )
            self._worker.start()

    def _process(self, segment: AudioSegment) -> None:
        self._status("Processing...")
        self.last_result = self.orchestrator.process(segment)
        if self.last_result.ok:
            self._status("Ready")

    def _handle_turn(self, turn: Turn) -> None:
        if self.on_turn:
            self.on_turn(turn)

    def _handle_pipeline_state(self, previous: PipelineState, state: PipelineState) -> None:
        logger.debug("Pipeline state", state=state.value)

    def _handle_recording_state(self, previous: RecordingState, state: RecordingState) -> None:
        if state == RecordingState.RECORDING:
            self._status("Recording... press again to stop")
        elif previous == RecordingState.RECORDING:
            self._status("Recording stopped")

    def _report_error(self, message: str) -> None:
        self.error_message = message
        if self.on_error:
            self.on_error(message)

    def _status(self, message: str) -> None:
        if self.on_status:
            self.on_status(message)
