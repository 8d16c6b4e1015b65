"""Flask HTTP surface for transcription, replies and speech synthesis.

Routes (under ``url_prefix``, ``/api`` by default):

- ``POST /transcribe``: raw audio body -> ``{"transcription": str}``
- ``POST /respond``: ``{text, conversationHistory}`` -> ``{"response": str}``
- ``POST /speak``: ``{text}`` -> ``{"audioUrl": str, "format": str}``
- ``GET /audio/<id>``: audio synthesized by a previous ``/speak``

``GET /health`` lives at the root. Failures are returned as
``{"error": message}`` with an HTTP error status.
"""

import threading
import uuid
from collections import OrderedDict
from typing import Optional, Tuple

import structlog
from flask import Blueprint, Flask, Response, jsonify, request, url_for
from flask_cors import CORS

from ..config.settings import RetrySettings
from ..core.clients import ResponseClient, TranscriptionClient
from ..errors import (
    CaptureError,
    ResponseError,
    TranscriptionError,
    UpstreamError,
)
from ..models import AudioSegment, Role, Turn
from ..providers.ai.base import AIProvider
from ..providers.stt.base import STTProvider
from ..providers.tts.base import TTSProvider


logger = structlog.get_logger()

ACCEPTED_AUDIO_TYPES = (
    "audio/webm",
    "audio/mp4",
    "audio/wav",
    "audio/x-wav",
    "audio/mpeg",
    "audio/ogg",
)

AUDIO_MIMETYPES = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "ogg": "audio/ogg",
    "opus": "audio/ogg",
    "pcm": "audio/L16",
    "ulaw": "audio/basic",
}


class AudioCache:
    """Thread-safe bounded store of synthesized clips; oldest evicted first."""

    def __init__(self, max_items: int = 32):
        self.max_items = max_items
        self._items: "OrderedDict[str, Tuple[bytes, str]]" = OrderedDict()
        self._lock = threading.Lock()

    def put(self, audio: bytes, audio_format: str) -> str:
        clip_id = uuid.uuid4().hex
        with self._lock:
            self._items[clip_id] = (audio, audio_format)
            while len(self._items) > self.max_items:
                evicted, _ = self._items.popitem(last=False)
                logger.debug("Evicted cached audio", clip_id=evicted)
        return clip_id

    def get(self, clip_id: str) -> Optional[Tuple[bytes, str]]:
        with self._lock:
            return self._items.get(clip_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


def error_response(message: str, status: int):
    return jsonify({"error": message}), status


def upstream_status(status: Optional[int]) -> int:
    """Pass upstream HTTP error statuses through; anything else is a bad gateway."""
    if status is not None and 400 <= status < 600:
        return status
    return 502


def build_history(text: str, history: list) -> list[Turn]:
    """
    Parse ``conversationHistory`` and make sure it ends with the user turn.

    Raises:
        ValueError: on a malformed history
    """
    turns = [Turn.from_dict(item) for item in history]
    last = turns[-1] if turns else None
    if not (last and last.role == Role.USER and last.content.strip() == text):
        turns.append(Turn(Role.USER, text))
    return turns


def create_app(
    stt_provider: STTProvider,
    ai_provider: AIProvider,
    tts_provider: TTSProvider,
    url_prefix: str = "/api",
    min_segment_bytes: int = 500,
    max_audio_mb: int = 10,
    audio_cache_size: int = 32,
    retries: Optional[RetrySettings] = None,
) -> Flask:
    """Create the Flask app around already-initialized providers."""
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = max_audio_mb * 1024 * 1024
    CORS(app, origins="*", send_wildcard=True)

    transcriber = TranscriptionClient(stt_provider, min_segment_bytes, retries)
    responder = ResponseClient(ai_provider, retries)
    cache = AudioCache(audio_cache_size)
    app.extensions["voice_chat_audio_cache"] = cache

    api = Blueprint("api", __name__)

    @api.route("/transcribe", methods=["POST"])
    def transcribe():
        mime_type = request.mimetype
        if mime_type not in ACCEPTED_AUDIO_TYPES:
            logger.warning("Rejected audio type", mime_type=mime_type)
            return error_response(f"Unsupported audio type: {mime_type or 'none'}", 415)

        audio = request.get_data(cache=False)
        logger.info("Received audio", size=len(audio), mime_type=mime_type)
        if not audio:
            return error_response("No audio data received", 400)

        try:
            text = transcriber.transcribe(AudioSegment(audio, mime_type))
        except CaptureError as e:
            return error_response(e.message, 400)
        except TranscriptionError as e:
            logger.error("Transcription route failed", error=e.message, status=e.status)
            return error_response(e.message, upstream_status(e.status))

        return jsonify({"transcription": text})

    @api.route("/respond", methods=["POST"])
    def respond():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return error_response("Request body must be a JSON object", 400)

        text = data.get("text")
        if not isinstance(text, str) or not text.strip():
            return error_response("Missing text", 400)
        history = data.get("conversationHistory") or []
        if not isinstance(history, list):
            return error_response("conversationHistory must be a list", 400)

        try:
            turns = build_history(text.strip(), history)
        except ValueError as e:
            return error_response(f"Invalid conversationHistory: {e}", 400)

        try:
            reply = responder.respond(turns)
        except ResponseError as e:
            logger.error("Respond route failed", error=e.message, status=e.status)
            return error_response(e.message, upstream_status(e.status))

        return jsonify({"response": reply})

    @api.route("/speak", methods=["POST"])
    def speak():
        data = request.get_json(silent=True)
        text = data.get("text") if isinstance(data, dict) else None
        if not isinstance(text, str) or not text.strip():
            return error_response("Missing text", 400)

        try:
            audio = tts_provider.synthesize(text.strip())
        except UpstreamError as e:
            logger.error("Speak route failed", error=e.message, status=e.status)
            return error_response(e.message, upstream_status(e.status))
        except Exception as e:
            logger.exception("Speak route failed")
            return error_response(f"Speech failed: {e}", 500)

        if not audio:
            return error_response("Speech failed: no audio produced", 502)

        audio_format = tts_provider.audio_format
        clip_id = cache.put(audio, audio_format)
        logger.info("Synthesized speech", clip_id=clip_id, size=len(audio))
        return jsonify({
            "audioUrl": url_for("api.audio", clip_id=clip_id),
            "format": audio_format,
        })

    @api.route("/audio/<clip_id>", methods=["GET"])
    def audio(clip_id: str):
        entry = cache.get(clip_id)
        if entry is None:
            return error_response("Audio not found", 404)
        data, audio_format = entry
        return Response(data, mimetype=AUDIO_MIMETYPES.get(audio_format, "application/octet-stream"))

    app.register_blueprint(api, url_prefix=url_prefix or None)

    @app.route("/health")
    def health():
        return jsonify({
            "status": "ok",
            "providers": {
                "stt": stt_provider.get_status(),
                "ai": ai_provider.get_status(),
                "tts": tts_provider.get_status(),
            },
            "cached_audio": len(cache),
        })

    @app.errorhandler(413)
    def too_large(error):
        return error_response(f"Audio exceeds {max_audio_mb} MB limit", 413)

    return app


def run_server(app: Flask, host: str = "127.0.0.1", port: int = 5000, debug: bool = False) -> None:
    logger.info("Starting server", host=host, port=port)
    app.run(host=host, port=port, debug=debug, threaded=True, use_reloader=False)
