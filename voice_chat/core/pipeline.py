"""
Orchestrates one voice cycle: transcribe -> respond -> speak.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional
import structlog

from .clients import ResponseClient, TranscriptionClient
from .conversation import ConversationStore
from .speech_output import SpeechOutput
from ..errors import (
    CaptureError,
    EmptyTranscriptionError,
    ResponseError,
    VoiceChatError,
)
from ..models import AudioSegment, PipelineState, Role, Turn


logger = structlog.get_logger()


@dataclass
class CycleResult:
    """Outcome of one processed segment."""

    ok: bool
    transcript: Optional[str] = None
    reply: Optional[str] = None
    error: Optional[str] = None
    latency_ms: float = 0.0


class PipelineOrchestrator:
    """
    Main orchestrator for the voice pipeline.

    Runs one cycle at a time. Callers are expected to keep new recordings
    from starting while ``is_processing``; a second concurrent ``process()``
    call is a programming error and raises RuntimeError.

    A failing step leaves the conversation as it was just before that step:
    a user turn appended before a failed response stays in the log.
    """

    def __init__(
        self,
        transcriber: TranscriptionClient,
        responder: ResponseClient,
        speech_output: Optional[SpeechOutput] = None,
        store: Optional[ConversationStore] = None,
        min_segment_bytes: int = 500,
        on_state_change: Optional[Callable[[PipelineState, PipelineState], None]] = None,
        on_turn: Optional[Callable[[Turn], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
    ):
        self.transcriber = transcriber
        self.responder = responder
        self.speech_output = speech_output
        self.store = store if store is not None else ConversationStore()
        self.min_segment_bytes = min_segment_bytes
        self.on_state_change = on_state_change
        self.on_turn = on_turn
        self.on_error = on_error

        self._lock = threading.Lock()
        self._state = PipelineState.IDLE
        self.last_error: Optional[str] = None
        self.cycles_completed = 0
        self.cycles_failed = 0

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def is_processing(self) -> bool:
        return self._state == PipelineState.PROCESSING

    def process(self, segment: AudioSegment) -> CycleResult:
        """
        Run one full cycle for a recorded segment.

        Never raises for step failures; the error is reported through
        ``last_error`` and ``on_error`` and returned in the result.
        """
        with self._lock:
            if self._state == PipelineState.PROCESSING:
                raise RuntimeError("A cycle is already in progress")
            self._set_state(PipelineState.PROCESSING)

        result = CycleResult(ok=False)
        start_time = time.time()
        self.last_error = None
        try:
            self._run_cycle(segment, result)
            result.ok = True
            self.cycles_completed += 1
        except VoiceChatError as e:
            self._fail(result, e.message)
            logger.warning("Cycle failed", error_code=e.code, error=e.message)
        except Exception as e:
            self._fail(result, f"Unexpected error: {e}")
            logger.exception("Cycle failed unexpectedly")
        finally:
            result.latency_ms = (time.time() - start_time) * 1000
            with self._lock:
                self._set_state(PipelineState.IDLE)

        logger.info("Cycle finished", ok=result.ok, latency_ms=result.latency_ms)
        return result

    def _run_cycle(self, segment: AudioSegment, result: CycleResult) -> None:
        # 1. validate
        if segment.size == 0:
            raise CaptureError("No audio data recorded.")
        if segment.size < self.min_segment_bytes:
            raise CaptureError(
                f"Recording too short ({segment.size} bytes). "
                "Please hold the button and speak for longer."
            )

        # 2. transcribe
        step_start = time.time()
        text = self.transcriber.transcribe(segment)
        logger.info(
            "Transcription complete",
            chars=len(text),
            latency_ms=(time.time() - step_start) * 1000,
        )
        if not text or not text.strip():
            raise EmptyTranscriptionError()
        text = text.strip()
        result.transcript = text
        self._append(Turn(Role.USER, text))

        # 3. respond
        step_start = time.time()
        reply = self.responder.respond(self.store.all())
        logger.info(
            "Response complete",
            chars=len(reply or ""),
            latency_ms=(time.time() - step_start) * 1000,
        )
        if not reply or not reply.strip():
            raise ResponseError("Empty response from the assistant.")
        reply = reply.strip()
        result.reply = reply
        self._append(Turn(Role.ASSISTANT, reply))

        # 4. speak, best effort
        if self.speech_output:
            try:
                self.speech_output.speak(reply)
            except Exception as e:
                logger.error("Failed to queue speech", error=str(e))

    def reset(self) -> bool:
        """Clear the conversation and cancel speech. Refused while processing."""
        with self._lock:
            if self._state == PipelineState.PROCESSING:
                logger.warning("Cannot reset while processing")
                return False
            self.store.reset()
            self.last_error = None
        if self.speech_output:
            self.speech_output.cancel()
        logger.info("Conversation reset")
        return True

    def get_status(self) -> dict:
        return {
            "state": self._state.value,
            "turns": len(self.store),
            "cycles_completed": self.cycles_completed,
            "cycles_failed": self.cycles_failed,
            "last_error": self.last_error,
        }

    def _append(self, turn: Turn) -> None:
        self.store.append(turn)
        logger.debug("Turn appended", role=turn.role.value, turns=len(self.store))
        if self.on_turn:
            self.on_turn(turn)

    def _fail(self, result: CycleResult, message: str) -> None:
        self.cycles_failed += 1
        self.last_error = message
        result.error = message
        if self.on_error:
            try:
                self.on_error(message)
            except Exception:
                logger.exception("Error callback failed")

    def _set_state(self, state: PipelineState) -> None:
        previous = self._state
        if previous == state:
            return
        self._state = state
        logger.debug("Pipeline state changed", from_state=previous.value, to_state=state.value)
        if self.on_state_change:
            self.on_state_change(previous, state)
