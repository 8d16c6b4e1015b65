"""Microphone capture using sounddevice, producing WAV segments."""

import io
import threading
import wave
from typing import Any, List, Optional
import numpy as np
import structlog

from .recorder import Recorder, DataCallback, ErrorCallback
from ..errors import (
    AcquisitionError,
    CaptureError,
    ACQUISITION_FAILED,
    DEVICE_NOT_FOUND,
    PERMISSION_DENIED,
)


logger = structlog.get_logger()

_PERMISSION_HINTS = ("permission", "denied", "not permitted", "not authorized", "unauthorized")
_DEVICE_HINTS = ("no default", "device unavailable", "invalid device", "no input", "not found", "-1")


def classify_acquisition_error(error: Exception, default: str = ACQUISITION_FAILED) -> str:
    """Map a PortAudio/sounddevice failure onto an acquisition reason."""
    text = str(error).lower()
    if any(hint in text for hint in _PERMISSION_HINTS):
        return PERMISSION_DENIED
    if any(hint in text for hint in _DEVICE_HINTS):
        return DEVICE_NOT_FOUND
    return default


def pcm_to_wav(pcm: bytes, sample_rate: int = 16000, channels: int = 1,
               sample_width: int = 2) -> bytes:
    """Wrap raw little-endian PCM in a WAV container."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return buf.getvalue()


class SoundDeviceCapture(Recorder):
    """
    Records 16-bit PCM from an input device and emits one WAV payload
    per recording.

    The input stream is opened once in ``acquire()`` and only started and
    stopped per recording, so the microphone handle lives for the whole
    session. ``stop()`` returns immediately; buffers are drained on a
    flush thread which then hands the payload to ``on_data``.
    """

    mime_type = "audio/wav"

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        block_ms: int = 100,
        device: Optional[Any] = None,
    ):
        self.sample_rate = sample_rate
        self.channels = channels
        self.block_ms = block_ms
        self.device = device

        self._stream: Any = None
        self._lock = threading.Lock()
        self._frames: List[bytes] = []
        self._recording = False
        self._stopping = False
        self._on_data: Optional[DataCallback] = None
        self._on_error: Optional[ErrorCallback] = None
        self._flush_thread: Optional[threading.Thread] = None
        self.device_name: Optional[str] = None
        self.status_warnings = 0

    @property
    def block_size(self) -> int:
        return int(self.sample_rate * self.block_ms / 1000)

    def acquire(self) -> None:
        """Query the input device and open (but do not start) the stream."""
        if self._stream is not None:
            return
        try:
            import sounddevice as sd
        except (ImportError, OSError) as e:
            logger.error("sounddevice unavailable", error=str(e))
            raise AcquisitionError(ACQUISITION_FAILED, f"Audio backend unavailable: {e}") from e

        logger.info("Acquiring microphone", sample_rate=self.sample_rate,
                    channels=self.channels, device=self.device)

        try:
            device_info = sd.query_devices(self.device, kind="input")
        except Exception as e:
            logger.error("Failed to query input device", error=str(e))
            raise AcquisitionError(classify_acquisition_error(e, DEVICE_NOT_FOUND), str(e)) from e

        try:
            self._stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
                blocksize=self.block_size,
                device=self.device,
                callback=self._audio_callback,
                finished_callback=self._stream_finished,
            )
        except Exception as e:
            logger.error("Failed to open input stream", error=str(e))
            raise AcquisitionError(classify_acquisition_error(e), str(e)) from e

        self.device_name = device_info["name"] if device_info else None
        logger.info("Microphone acquired", device=self.device_name)

    def start(self, on_data: DataCallback, on_error: ErrorCallback) -> None:
        with self._lock:
            if self._stream is None:
                raise CaptureError("Microphone has not been acquired")
            if self._recording:
                raise CaptureError("Recording already in progress")
            self._frames = []
            self._on_data = on_data
            self._on_error = on_error
            self._stopping = False
            self._recording = True

        try:
            self._stream.start()
        except Exception as e:
            with self._lock:
                self._recording = False
            logger.error("Failed to start input stream", error=str(e))
            raise CaptureError(f"Recording error: {e}") from e

        logger.debug("Capture started")

    def stop(self) -> None:
        with self._lock:
            if not self._recording or self._stopping:
                return
            self._stopping = True

        self._flush_thread = threading.Thread(
            target=self._flush, daemon=True, name="Capture-Flush"
        )
        self._flush_thread.start()

    def release(self) -> None:
        """Close the input stream. Safe to call more than once."""
        if self._flush_thread and self._flush_thread.is_alive():
            self._flush_thread.join(timeout=2.0)

        with self._lock:
            stream, self._stream = self._stream, None
            self._recording = False

        if stream is None:
            return
        try:
            stream.close()
        except Exception as e:
            logger.warning("Error closing input stream", error=str(e))
        logger.info("Microphone released", device=self.device_name)

    def _audio_callback(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        """PortAudio callback; runs on the audio thread."""
        if status:
            self.status_warnings += 1
        if not self._recording:
            return
        self._frames.append(np.asarray(indata, dtype=np.int16).tobytes())

    def _stream_finished(self) -> None:
        """Called by sounddevice whenever the stream becomes inactive."""
        with self._lock:
            unexpected = self._recording and not self._stopping
            if unexpected:
                self._recording = False
            on_error = self._on_error

        if unexpected:
            logger.error("Input stream stopped unexpectedly", device=self.device_name)
            if on_error:
                on_error(CaptureError("Recording error: audio device stopped unexpectedly"))

    def _flush(self) -> None:
        try:
            self._stream.stop()
        except Exception as e:
            logger.warning("Error stopping input stream", error=str(e))

        with self._lock:
            frames, self._frames = self._frames, []
            self._recording = False
            self._stopping = False
            on_data = self._on_data

        pcm = b"".join(frames)
        payload = pcm_to_wav(pcm, self.sample_rate, self.channels) if pcm else b""
        logger.debug("Capture flushed", pcm_bytes=len(pcm), payload_bytes=len(payload))
        if on_data:
            on_data(payload)

    def get_status(self) -> dict:
        return {
            "recorder": "sounddevice",
            "device": self.device_name,
            "acquired": self._stream is not None,
            "recording": self._recording,
            "sample_rate": self.sample_rate,
            "channels": self.channels,
            "status_warnings": self.status_warnings,
        }
