"""Background speech playback for assistant replies."""

import queue
import threading
from typing import Optional
import structlog

from ..errors import SynthesisError, VoiceChatError
from ..providers.tts.base import TTSProvider


logger = structlog.get_logger()


class SpeechOutput:
    """
    Speaks replies on a worker thread so the pipeline never waits on audio.

    ``speak()`` only enqueues. ``cancel()`` drops anything queued and stops
    the utterance in progress; replies queued after the cancel play
    normally. Synthesis failures are logged and reported through
    ``on_error``; they never propagate to the caller.
    """

    def __init__(self, provider: TTSProvider, on_error=None):
        self.provider = provider
        self.on_error = on_error
        self._queue: "queue.Queue[Optional[tuple[int, str]]]" = queue.Queue()
        self._generation = 0
        self._pending = 0
        self._lock = threading.Lock()
        self._idle = threading.Event()
        self._idle.set()
        self._thread: Optional[threading.Thread] = None
        self._closed = False
        self.utterances_spoken = 0
        self.last_error: Optional[str] = None

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._closed = False
        self._thread = threading.Thread(
            target=self._worker, daemon=True, name="Speech-Output"
        )
        self._thread.start()

    def speak(self, text: str) -> None:
        """Queue text to be spoken."""
        if not text or not text.strip():
            return
        if self._closed:
            logger.warning("Speech output closed, dropping utterance")
            return
        if not self._thread:
            self.start()
        with self._lock:
            self._pending += 1
            self._idle.clear()
            self._queue.put((self._generation, text))

    def cancel(self) -> None:
        """Drop queued utterances and stop current playback."""
        with self._lock:
            self._generation += 1
            while True:
                try:
                    item = self._queue.get_nowait()
                except queue.Empty:
                    break
                if item is not None:
                    self._pending -= 1
            # an utterance still playing sets idle when the worker finishes it
            if self._pending == 0:
                self._idle.set()
        try:
            self.provider.stop_playback()
        except Exception as e:
            logger.warning("Error stopping playback", error=str(e))
        logger.debug("Speech output cancelled")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until everything queued has been spoken."""
        return self._idle.wait(timeout)

    @property
    def is_speaking(self) -> bool:
        return not self._idle.is_set()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.cancel()
        self._queue.put(None)
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=2.0)
        self._idle.set()

    def _worker(self) -> None:
        while True:
            item = self._queue.get()
            if item is None:
                break
            generation, text = item
            if generation == self._generation:
                self._say(generation, text)
            with self._lock:
                self._pending -= 1
                if self._pending == 0:
                    self._idle.set()

    def _say(self, generation: int, text: str) -> None:
        try:
            for chunk in self.provider.stream_audio(text):
                if generation != self._generation:
                    logger.debug("Utterance cancelled mid-stream")
                    return
                self.provider.play_chunk(chunk)
            self.utterances_spoken += 1
        except Exception as e:
            message = str(e) if isinstance(e, VoiceChatError) else f"Speech failed: {e}"
            error = SynthesisError(message)
            self.last_error = str(error)
            logger.error("Speech synthesis failed", error=str(e))
            if self.on_error:
                self.on_error(error)
