"""Tests for sounddevice microphone capture."""

import io
import sys
import threading
import wave
from unittest.mock import Mock, patch

import numpy as np
import pytest

from voice_chat.audio.capture import SoundDeviceCapture, classify_acquisition_error, pcm_to_wav
from voice_chat.errors import (
    ACQUISITION_FAILED,
    DEVICE_NOT_FOUND,
    PERMISSION_DENIED,
    AcquisitionError,
    CaptureError,
)


class TestSoundDeviceCapture:
    """Tests for SoundDeviceCapture with sounddevice replaced by a mock."""

    def setup_method(self):
        """Set up test fixtures."""
        self.sd = Mock()
        self.patcher = patch.dict(sys.modules, {"sounddevice": self.sd})
        self.patcher.start()
        self.sd.query_devices.return_value = {"name": "Test Mic"}
        self.stream = self.sd.InputStream.return_value
        self.capture = SoundDeviceCapture(sample_rate=16000, channels=1, block_ms=100)
        self.delivered = threading.Event()
        self.payloads = []

    def teardown_method(self):
        self.capture.release()
        self.patcher.stop()

    def on_data(self, payload):
        self.payloads.append(payload)
        self.delivered.set()

    def test_acquire_opens_stream_without_starting(self):
        self.capture.acquire()

        kwargs = self.sd.InputStream.call_args.kwargs
        assert kwargs["samplerate"] == 16000
        assert kwargs["channels"] == 1
        assert kwargs["dtype"] == "int16"
        assert kwargs["blocksize"] == 1600
        self.stream.start.assert_not_called()
        assert self.capture.device_name == "Test Mic"

    def test_acquire_missing_device(self):
        self.sd.query_devices.side_effect = ValueError("No input device matching 'usb'")

        with pytest.raises(AcquisitionError) as exc_info:
            self.capture.acquire()

        assert exc_info.value.reason == DEVICE_NOT_FOUND

    def test_acquire_permission_denied(self):
        self.sd.InputStream.side_effect = Exception("Error opening InputStream: permission denied")

        with pytest.raises(AcquisitionError) as exc_info:
            self.capture.acquire()

        assert exc_info.value.reason == PERMISSION_DENIED

    def test_start_requires_acquire(self):
        with pytest.raises(CaptureError):
            self.capture.start(self.on_data, Mock())

    def test_start_twice_rejected(self):
        self.capture.acquire()
        self.capture.start(self.on_data, Mock())

        with pytest.raises(CaptureError, match="already in progress"):
            self.capture.start(self.on_data, Mock())

    def test_recording_flushes_wav(self):
        """Frames recorded between start and stop become one WAV payload."""
        self.capture.acquire()
        self.capture.start(self.on_data, Mock())
        block = np.ones((1600, 1), dtype=np.int16)
        self.capture._audio_callback(block, 1600, None, None)
        self.capture._audio_callback(block, 1600, None, None)

        self.capture.stop()

        assert self.delivered.wait(2.0)
        self.stream.stop.assert_called_once()
        with wave.open(io.BytesIO(self.payloads[0]), "rb") as wf:
            assert wf.getframerate() == 16000
            assert wf.getnchannels() == 1
            assert wf.getnframes() == 3200

    def test_empty_recording_flushes_empty_payload(self):
        self.capture.acquire()
        self.capture.start(self.on_data, Mock())

        self.capture.stop()

        assert self.delivered.wait(2.0)
        assert self.payloads == [b""]

    def test_frames_ignored_when_not_recording(self):
        self.capture.acquire()
        self.capture._audio_callback(np.ones((10, 1), dtype=np.int16), 10, None, None)
        self.capture.start(self.on_data, Mock())

        self.capture.stop()

        assert self.delivered.wait(2.0)
        assert self.payloads == [b""]

    def test_unexpected_stream_end_reports_error(self):
        on_error = Mock()
        self.capture.acquire()
        self.capture.start(self.on_data, on_error)

        self.capture._stream_finished()

        on_error.assert_called_once()
        assert isinstance(on_error.call_args.args[0], CaptureError)

    def test_requested_stop_is_not_an_error(self):
        on_error = Mock()
        self.capture.acquire()
        self.capture.start(self.on_data, on_error)
        self.stream.stop.side_effect = lambda: self.capture._stream_finished()

        self.capture.stop()

        assert self.delivered.wait(2.0)
        on_error.assert_not_called()

    def test_release_is_idempotent(self):
        self.capture.acquire()

        self.capture.release()
        self.capture.release()

        self.stream.close.assert_called_once()

    def test_unavailable_backend(self):
        with patch.dict(sys.modules, {"sounddevice": None}):
            with pytest.raises(AcquisitionError) as exc_info:
                SoundDeviceCapture().acquire()
        assert exc_info.value.reason == ACQUISITION_FAILED


@pytest.mark.parametrize("message, reason", [
    ("Permission denied", PERMISSION_DENIED),
    ("Error querying device -1", DEVICE_NOT_FOUND),
    ("Something odd", ACQUISITION_FAILED),
])
def test_classify_acquisition_error(message, reason):
    assert classify_acquisition_error(Exception(message)) == reason


def test_pcm_to_wav_header():
    payload = pcm_to_wav(b"\x00\x00" * 10, sample_rate=8000)
    assert payload.startswith(b"RIFF")
    assert payload[8:12] == b"WAVE"
