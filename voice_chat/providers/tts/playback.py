"""Local audio playback through pygame's mixer."""

import threading
import time
from io import BytesIO
import pygame
import structlog

from .base import AudioChunk


logger = structlog.get_logger()


class PygamePlayer:
    """
    Buffers encoded audio chunks and plays each utterance once complete.

    ``feed()`` blocks on the final chunk until playback finishes or
    ``stop()`` is called from another thread. The mixer is initialised on
    first use so that providers used only for synthesis (the HTTP server)
    never open an output device.
    """

    def __init__(self, frequency: int = 22050, poll_interval: float = 0.01):
        self.frequency = frequency
        self.poll_interval = poll_interval
        self._buffer = BytesIO()
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self.is_playing = False

    def _ensure_mixer(self) -> None:
        if pygame.mixer.get_init() is None:
            pygame.mixer.pre_init(frequency=self.frequency, size=-16, channels=2, buffer=1024)
            pygame.mixer.init()
            logger.debug("Initialized pygame mixer", frequency=self.frequency)

    def feed(self, chunk: AudioChunk) -> None:
        """Buffer a chunk; play the buffered utterance on the final chunk."""
        with self._lock:
            if chunk.is_first:
                self._buffer = BytesIO()
                self._stop_event.clear()
            if chunk.data:
                self._buffer.write(chunk.data)
            if not chunk.is_final:
                return
            audio = self._buffer.getvalue()
            self._buffer = BytesIO()

        if not audio or self._stop_event.is_set():
            return
        self._play(audio)

    def _play(self, audio: bytes) -> None:
        """Play a complete encoded clip, blocking until done or stopped."""
        self._ensure_mixer()
        pygame.mixer.music.load(BytesIO(audio))
        pygame.mixer.music.play()
        self.is_playing = True
        logger.debug("Started audio playback", size=len(audio))

        try:
            while pygame.mixer.music.get_busy() and not self._stop_event.is_set():
                time.sleep(self.poll_interval)
        finally:
            self.is_playing = False
        logger.debug("Audio playback completed", stopped=self._stop_event.is_set())

    def stop(self) -> None:
        """Stop playback and discard anything buffered."""
        self._stop_event.set()
        with self._lock:
            self._buffer = BytesIO()
        if pygame.mixer.get_init() is not None:
            pygame.mixer.music.stop()
        self.is_playing = False

    def close(self) -> None:
        self.stop()
        if pygame.mixer.get_init() is not None:
            pygame.mixer.quit()

    def get_status(self) -> dict:
        return {
            "is_playing": self.is_playing,
            "mixer_initialized": pygame.mixer.get_init() is not None,
        }
