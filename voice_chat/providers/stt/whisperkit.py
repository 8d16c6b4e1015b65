"""WhisperKit STT provider running the local CLI on each segment."""

import os
import subprocess
import tempfile
import time
from pathlib import Path
from typing import Optional
import structlog

from .base import STTProvider, Transcript
from ...errors import UpstreamError
from ...models import AudioSegment


logger = structlog.get_logger()


class WhisperKitProvider(STTProvider):
    """
    WhisperKit STT provider for complete audio clips.

    Each segment is written to a temporary file and handed to
    ``whisperkit-cli transcribe``; stdout is the transcript.
    """

    SUPPORTED_EXTENSIONS = (".mp3", ".wav", ".m4a", ".aac", ".flac", ".ogg")

    def __init__(
        self,
        model: str = "large-v3_turbo",
        compute_units: str = "cpuAndNeuralEngine",
        whisperkit_path: str = "/opt/homebrew/bin/whisperkit-cli",
        timeout: float = 30.0,
    ):
        self.model = model
        self.compute_units = compute_units
        self.whisperkit_path = whisperkit_path
        self.timeout = timeout

        self.is_initialized = False
        self.last_processing_ms: Optional[float] = None

    def initialize(self) -> None:
        """Check that the WhisperKit CLI is installed and runs."""
        logger.info(
            "Initializing WhisperKit provider",
            model=self.model,
            whisperkit_path=self.whisperkit_path,
        )

        try:
            result = subprocess.run(
                [self.whisperkit_path, "--help"],
                capture_output=True,
                text=True,
                timeout=10,
            )
        except FileNotFoundError:
            raise RuntimeError(f"WhisperKit CLI not found at {self.whisperkit_path}")
        except subprocess.TimeoutExpired:
            raise RuntimeError("WhisperKit CLI check timed out")

        if result.returncode != 0:
            raise RuntimeError(f"WhisperKit CLI not working: {result.stderr}")

        self.is_initialized = True
        logger.info("WhisperKit provider initialized")

    def build_command(self, audio_path: Path) -> list[str]:
        return [
            self.whisperkit_path,
            "transcribe",
            "--audio-path",
            str(audio_path),
            "--model",
            self.model,
            "--audio-encoder-compute-units",
            self.compute_units,
            "--text-decoder-compute-units",
            self.compute_units,
        ]

    def transcribe(self, audio: bytes, mime_type: str) -> Transcript:
        if not self.is_initialized:
            raise RuntimeError("Provider not initialized. Call initialize() first.")

        suffix = "." + AudioSegment(audio, mime_type).file_extension
        if suffix not in self.SUPPORTED_EXTENSIONS:
            raise UpstreamError(
                f"Transcription failed: WhisperKit cannot read {mime_type}", status=415
            )

        with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as tmp:
            tmp.write(audio)
            audio_path = Path(tmp.name)

        start_time = time.time()
        try:
            result = subprocess.run(
                self.build_command(audio_path),
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            logger.error("WhisperKit timed out", timeout=self.timeout)
            raise UpstreamError(
                f"Transcription failed: WhisperKit timed out after {self.timeout}s",
                retryable=True,
            ) from e
        finally:
            try:
                os.unlink(audio_path)
            except OSError as e:
                logger.warning("Failed to remove temporary audio file",
                               path=str(audio_path), error=str(e))

        self.last_processing_ms = (time.time() - start_time) * 1000

        if result.returncode != 0:
            logger.error("WhisperKit process failed",
                         return_code=result.returncode, stderr=result.stderr)
            raise UpstreamError(
                f"Transcription failed: WhisperKit exited with code "
                f"{result.returncode}: {result.stderr.strip()}"
            )

        text = " ".join(line.strip() for line in result.stdout.splitlines() if line.strip())
        logger.info("WhisperKit transcription complete",
                    chars=len(text), processing_ms=self.last_processing_ms)

        return Transcript(text=text, timestamp=time.time(), latency=self.last_processing_ms)

    def stop(self) -> None:
        self.is_initialized = False

    def get_status(self) -> dict:
        return {
            "provider": "whisperkit",
            "model": self.model,
            "is_initialized": self.is_initialized,
            "compute_units": self.compute_units,
            "whisperkit_path": self.whisperkit_path,
            "last_processing_time_ms": self.last_processing_ms,
        }
