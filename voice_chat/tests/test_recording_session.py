"""Tests for the recording session state machine."""

from concurrent.futures import TimeoutError as FutureTimeoutError

import pytest

from voice_chat.core.recording_session import RecordingSession
from voice_chat.errors import (
    ACQUISITION_FAILED,
    ACQUISITION_MESSAGES,
    DEVICE_NOT_FOUND,
    NO_AUDIO_MESSAGE,
    PERMISSION_DENIED,
    AcquisitionError,
    CaptureError,
)
from voice_chat.models import RecordingState

from .doubles import FakeRecorder


class TestRecordingSession:
    """Tests for RecordingSession."""

    def setup_method(self):
        """Set up test fixtures."""
        self.recorder = FakeRecorder(auto_flush=False)
        self.segments = []
        self.errors = []
        self.transitions = []
        self.session = RecordingSession(
            self.recorder,
            on_segment=self.segments.append,
            on_error=self.errors.append,
            on_state_change=lambda a, b: self.transitions.append((a, b)),
        )

    def test_initial_state(self):
        """A new session is uninitialized with no error."""
        assert self.session.state == RecordingState.UNINITIALIZED
        assert self.session.is_initialized is False
        assert self.session.error is None
        assert self.session.pending_segment is None

    def test_initialize_moves_to_ready(self):
        """Acquiring the microphone makes the session ready."""
        assert self.session.initialize() is True
        assert self.session.state == RecordingState.READY
        assert self.recorder.acquire_calls == 1

    def test_initialize_twice_acquires_once(self):
        self.session.initialize()
        assert self.session.initialize() is True
        assert self.recorder.acquire_calls == 1

    @pytest.mark.parametrize("reason", [PERMISSION_DENIED, DEVICE_NOT_FOUND])
    def test_initialize_failure_sets_specific_error(self, reason):
        """Acquisition failures stay uninitialized with a cause-specific message."""
        self.recorder.acquire_error = AcquisitionError(reason, "details")

        assert self.session.initialize() is False
        assert self.session.state == RecordingState.UNINITIALIZED
        assert self.session.error == ACQUISITION_MESSAGES[reason]
        assert self.errors == [ACQUISITION_MESSAGES[reason]]

    def test_initialize_generic_failure_includes_detail(self):
        self.recorder.acquire_error = AcquisitionError(ACQUISITION_FAILED, "device busy")

        self.session.initialize()

        assert self.session.error == "Could not access microphone: device busy"

    def test_start_requires_ready(self):
        """start() is rejected before initialization."""
        assert self.session.start() is False
        assert self.session.state == RecordingState.UNINITIALIZED
        assert self.recorder.start_calls == 0

    def test_start_while_recording_rejected(self):
        """A second start() returns False and changes nothing."""
        self.session.initialize()
        assert self.session.start() is True
        transitions_before = list(self.transitions)

        assert self.session.start() is False
        assert self.session.state == RecordingState.RECORDING
        assert self.transitions == transitions_before
        assert self.recorder.start_calls == 1

    def test_stop_while_ready_rejected(self):
        """stop() returns False unless recording."""
        self.session.initialize()

        assert self.session.stop() is False
        assert self.session.state == RecordingState.READY
        assert self.recorder.stop_calls == 0

    def test_segment_arrives_after_stop(self):
        """Audio is delivered asynchronously after stop() returns."""
        self.session.initialize()
        self.session.start()

        assert self.session.stop() is True
        assert self.session.state == RecordingState.READY
        assert self.session.awaiting_segment is True
        assert self.segments == []

        self.recorder.flush(b"a" * 1000)

        assert self.session.awaiting_segment is False
        assert len(self.segments) == 1
        assert self.segments[0].data == b"a" * 1000
        assert self.segments[0].mime_type == "audio/wav"
        assert self.session.next_segment(timeout=0) is self.segments[0]

    def test_next_segment_times_out_before_flush(self):
        self.session.initialize()
        self.session.start()
        self.session.stop()

        with pytest.raises(FutureTimeoutError):
            self.session.next_segment(timeout=0.01)

    def test_next_segment_without_recording(self):
        with pytest.raises(RuntimeError):
            self.session.next_segment(timeout=0)

    def test_empty_flush_raises_error_without_callback(self):
        """A zero-byte recording sets the no-audio error and never calls back."""
        self.session.initialize()
        self.session.start()
        self.session.stop()

        self.recorder.flush(b"")

        assert self.segments == []
        assert self.session.error == NO_AUDIO_MESSAGE
        with pytest.raises(CaptureError, match="No audio data recorded"):
            self.session.next_segment(timeout=0)

    def test_device_error_forces_ready(self):
        """A hardware fault mid-recording sets the error and leaves recording."""
        self.session.initialize()
        self.session.start()

        self.recorder.fail("Recording error: device unplugged")

        assert self.session.state == RecordingState.READY
        assert self.session.error == "Recording error: device unplugged"
        assert self.session.pending_segment.done()
        with pytest.raises(CaptureError):
            self.session.next_segment(timeout=0)

    def test_error_is_cleared_independently(self):
        """clear_error() does not change state."""
        self.recorder.acquire_error = AcquisitionError(DEVICE_NOT_FOUND)
        self.session.initialize()

        self.session.clear_error()

        assert self.session.error is None
        assert self.session.state == RecordingState.UNINITIALIZED

    def test_start_clears_previous_error(self):
        self.session.initialize()
        self.session.start()
        self.session.stop()
        self.recorder.flush(b"")

        assert self.session.start() is True
        assert self.session.error is None

    def test_recorder_start_failure(self):
        """A recorder refusing to start leaves the session ready with an error."""
        self.session.initialize()
        self.recorder.start_error = CaptureError("Recording error: busy")

        assert self.session.start() is False
        assert self.session.state == RecordingState.READY
        assert self.session.error == "Recording error: busy"

    def test_close_while_recording_stops_then_releases(self):
        """Teardown stops an active recording and releases exactly once."""
        self.session.initialize()
        self.session.start()

        self.session.close()
        self.session.close()

        assert self.recorder.stop_calls == 1
        assert self.recorder.release_calls == 1
        assert self.session.state == RecordingState.UNINITIALIZED

    def test_close_uninitialized_still_releases(self):
        self.session.close()
        assert self.recorder.release_calls == 1

    def test_closed_session_cannot_initialize(self):
        self.session.close()
        assert self.session.initialize() is False

    def test_segment_after_close_not_delivered(self):
        """Audio flushed after teardown is not handed on."""
        self.session.initialize()
        self.session.start()
        self.session.close()

        self.recorder.flush(b"a" * 1000)

        assert self.segments == []

    def test_context_manager(self):
        with RecordingSession(self.recorder) as session:
            assert session.state == RecordingState.READY
        assert self.recorder.release_calls == 1

    def test_state_transitions_reported(self):
        self.session.initialize()
        self.session.start()
        self.session.stop()

        assert self.transitions == [
            (RecordingState.UNINITIALIZED, RecordingState.READY),
            (RecordingState.READY, RecordingState.RECORDING),
            (RecordingState.RECORDING, RecordingState.READY),
        ]
