"""Tests for background speech output."""

import threading

from voice_chat.core.speech_output import SpeechOutput
from voice_chat.errors import SynthesisError, UpstreamError
from voice_chat.providers.tts.base import AudioChunk

from .doubles import FakeTTS


class BlockingTTS(FakeTTS):
    """Speaker whose first utterance blocks until released."""

    def __init__(self):
        super().__init__()
        self.started = threading.Event()
        self.release = threading.Event()

    def stream_audio(self, text):
        self.spoken.append(text)
        yield AudioChunk(data=b"a", is_first=True)
        self.started.set()
        self.release.wait(2.0)
        yield AudioChunk(data=b"", is_final=True)


class TestSpeechOutput:
    """Tests for SpeechOutput."""

    def setup_method(self):
        """Set up test fixtures."""
        self.tts = FakeTTS()
        self.errors = []
        self.output = SpeechOutput(self.tts, on_error=self.errors.append)

    def teardown_method(self):
        self.output.close()

    def test_speak_plays_all_chunks(self):
        self.output.speak("hi there")

        assert self.output.wait(2.0) is True
        assert self.tts.spoken == ["hi there"]
        assert len(self.tts.played) == 2
        assert self.tts.played[-1].is_final
        assert self.output.utterances_spoken == 1

    def test_blank_text_ignored(self):
        self.output.speak("   ")

        assert self.output.is_speaking is False
        assert self.tts.spoken == []

    def test_synthesis_error_is_swallowed(self):
        """Failures are reported but never raised."""
        self.tts.error = UpstreamError("Speech failed: 401 invalid key", status=401)

        self.output.speak("hello")

        assert self.output.wait(2.0) is True
        assert len(self.errors) == 1
        assert isinstance(self.errors[0], SynthesisError)
        assert self.output.last_error == "Speech failed: 401 invalid key"

    def test_cancel_stops_current_and_drops_queued(self):
        """Cancel interrupts playback and discards queued replies."""
        tts = BlockingTTS()
        output = SpeechOutput(tts)
        try:
            output.speak("first")
            assert tts.started.wait(2.0)
            output.speak("second")

            output.cancel()
            tts.release.set()

            assert output.wait(2.0) is True
            assert tts.spoken == ["first"]
            assert tts.stop_playback_calls == 1
            # Final chunk of the cancelled utterance is never played
            assert all(not chunk.is_final for chunk in tts.played)
        finally:
            output.close()

    def test_cancel_right_after_speak_goes_idle(self):
        """Cancelling a reply the worker has not picked up yet still ends idle."""
        for _ in range(50):
            output = SpeechOutput(FakeTTS())
            try:
                output.start()
                output.speak("hi there")
                output.cancel()

                assert output.wait(1.0) is True
                assert output.is_speaking is False
            finally:
                output.close()

    def test_speaks_again_after_cancel(self):
        self.output.cancel()
        self.output.speak("after")

        assert self.output.wait(2.0) is True
        assert self.tts.spoken == ["after"]

    def test_closed_output_drops_utterances(self):
        self.output.close()
        self.output.speak("too late")

        assert self.tts.spoken == []
