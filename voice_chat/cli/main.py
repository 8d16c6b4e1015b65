"""CLI entry point for the voice chat pipeline."""

import mimetypes
import signal
import sys
from pathlib import Path
from typing import Optional
import click
import structlog

from ..audio.capture import SoundDeviceCapture
from ..config.settings import settings
from ..core.clients import ResponseClient, TranscriptionClient
from ..core.pipeline import PipelineOrchestrator
from ..core.speech_output import SpeechOutput
from ..core.voice_chat import VoiceChat
from ..errors import VoiceChatError
from ..models import AudioSegment, Role, Turn
from ..providers import registry
from ..utils.logging import setup_logging


logger = structlog.get_logger()


def validate_provider(ctx, param, value):
    """Validate provider selection."""
    if value is None:
        return value
    if param.name == "stt_provider" or (param.name == "provider" and ctx.command.name == "transcribe"):
        valid_providers = registry.list_stt_providers()
        provider_type = "STT"
    elif param.name == "ai_provider":
        valid_providers = registry.list_ai_providers()
        provider_type = "AI"
    elif param.name in ("tts_provider", "provider"):
        valid_providers = registry.list_tts_providers()
        provider_type = "TTS"
    else:
        return value

    if value not in valid_providers:
        raise click.BadParameter(
            f"Invalid {provider_type} provider '{value}'. "
            f"Available options: {', '.join(valid_providers)}"
        )
    return value


def configure(debug: bool, config: Optional[str]) -> None:
    """Load the config file, then set up logging from the result."""
    if config:
        settings.config_file = Path(config)
        settings.load_from_file()
        settings.load_from_env()

    log_file = setup_logging(
        debug=debug,
        log_file=settings.logging.file_enabled,
        log_level=settings.logging.level,
        log_format=settings.logging.format,
        file_rotation_mb=settings.logging.file_rotation_mb,
        file_backup_count=settings.logging.file_backup_count,
    )
    if log_file:
        logger.debug("Logging to file", path=str(log_file))

    for issue in settings.validate():
        logger.warning("Configuration issue", issue=issue)


def build_providers(stt: str, ai: str, tts: str, mock: bool):
    """Create and initialize the three providers."""
    if mock:
        stt = ai = tts = "mock"
    stt_provider = registry.get_stt_provider(stt)
    ai_provider = registry.get_ai_provider(ai)
    tts_provider = registry.get_tts_provider(tts)
    for provider in (stt_provider, ai_provider, tts_provider):
        provider.initialize()
    return stt_provider, ai_provider, tts_provider


def stop_providers(*providers) -> None:
    for provider in providers:
        try:
            provider.stop()
        except Exception as e:
            logger.warning("Error stopping provider", provider=type(provider).__name__, error=str(e))


def fail(message: str) -> None:
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)
    sys.exit(1)


@click.group()
@click.version_option(package_name="voice-chat")
def cli():
    """Voice chat: talk to an AI assistant through your microphone."""


@cli.command()
@click.option("--stt-provider", callback=validate_provider, help="STT provider to use")
@click.option("--ai-provider", callback=validate_provider, help="AI provider to use")
@click.option("--tts-provider", callback=validate_provider, help="TTS provider to use")
@click.option("--device", help="Input device name or index")
@click.option("--mock", is_flag=True, help="Run with mock providers (no API calls)")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--config", type=click.Path(exists=True), help="Path to configuration file")
def chat(
    stt_provider: Optional[str],
    ai_provider: Optional[str],
    tts_provider: Optional[str],
    device: Optional[str],
    mock: bool,
    debug: bool,
    config: Optional[str],
):
    """
    Hold a spoken conversation in the terminal.

    Press Enter to start recording and Enter again to stop. Type r to reset
    the conversation and q to quit.
    """
    configure(debug, config)

    try:
        providers = build_providers(
            stt_provider or settings.stt_provider,
            ai_provider or settings.ai_provider,
            tts_provider or settings.tts_provider,
            mock,
        )
    except (ValueError, RuntimeError) as e:
        fail(str(e))
    stt, ai, tts = providers

    orchestrator = PipelineOrchestrator(
        TranscriptionClient(stt, settings.audio.min_segment_bytes, settings.retries),
        ResponseClient(ai, settings.retries),
        SpeechOutput(tts),
        min_segment_bytes=settings.audio.min_segment_bytes,
    )
    recorder = SoundDeviceCapture(
        sample_rate=settings.audio.sample_rate,
        channels=settings.audio.channels,
        block_ms=settings.audio.block_ms,
        device=int(device) if device and device.isdigit() else device,
    )

    def show_turn(turn: Turn) -> None:
        label = "You" if turn.role == Role.USER else "Assistant"
        color = "cyan" if turn.role == Role.USER else "green"
        click.echo(click.style(f"{label}: ", fg=color, bold=True) + turn.content)

    def show_error(message: str) -> None:
        click.echo(click.style(f"Error: {message}", fg="red"))

    voice_chat = VoiceChat(
        recorder,
        orchestrator,
        on_turn=show_turn,
        on_error=show_error,
        on_status=lambda message: click.echo(click.style(message, dim=True)),
    )

    def shutdown(signum, frame):
        logger.info("Received shutdown signal")
        voice_chat.close()
        stop_providers(*providers)
        sys.exit(0)

    signal.signal(signal.SIGTERM, shutdown)

    click.echo(click.style("Voice chat", fg="green", bold=True))
    click.echo(f"STT: {type(stt).__name__} | AI: {type(ai).__name__} | TTS: {type(tts).__name__}")
    if mock:
        click.echo(click.style("Running in MOCK mode - no API calls will be made", fg="yellow"))

    stdin = click.get_text_stream("stdin")
    try:
        if not voice_chat.mount():
            fail(voice_chat.error_message or "Could not access microphone")

        click.echo("\n[Enter] record/stop  [r] reset  [q] quit\n")
        while True:
            line = stdin.readline()
            if not line:
                break
            command = line.strip().lower()
            if command == "q":
                break
            if command == "r":
                if voice_chat.reset():
                    click.echo("Conversation cleared.")
                else:
                    click.echo("Cannot reset while processing.")
                continue

            was_recording = voice_chat.is_recording
            if voice_chat.toggle_recording() and was_recording:
                voice_chat.wait_idle(timeout=120)
    except KeyboardInterrupt:
        click.echo("\nShutting down...")
    finally:
        voice_chat.close()
        stop_providers(*providers)
        click.echo(f"Turns exchanged: {len(voice_chat.conversation)}")


@cli.command()
@click.option("--host", help="Interface to bind")
@click.option("--port", type=int, help="Port to listen on")
@click.option("--stt-provider", callback=validate_provider, help="STT provider to use")
@click.option("--ai-provider", callback=validate_provider, help="AI provider to use")
@click.option("--tts-provider", callback=validate_provider, help="TTS provider to use")
@click.option("--mock", is_flag=True, help="Run with mock providers (no API calls)")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--config", type=click.Path(exists=True), help="Path to configuration file")
def serve(host, port, stt_provider, ai_provider, tts_provider, mock, debug, config):
    """Run the HTTP API server."""
    from ..server.app import create_app, run_server

    configure(debug, config)
    try:
        providers = build_providers(
            stt_provider or settings.stt_provider,
            ai_provider or settings.ai_provider,
            tts_provider or settings.tts_provider,
            mock,
        )
    except (ValueError, RuntimeError) as e:
        fail(str(e))

    app = create_app(
        *providers,
        url_prefix=settings.server.url_prefix,
        min_segment_bytes=settings.audio.min_segment_bytes,
        max_audio_mb=settings.server.max_audio_mb,
        audio_cache_size=settings.server.audio_cache_size,
        retries=settings.retries,
    )
    try:
        run_server(app, host or settings.server.host, port or settings.server.port, debug=debug)
    finally:
        stop_providers(*providers)


@cli.command()
def providers():
    """List registered providers."""
    current = {
        "stt": settings.stt_provider,
        "ai": settings.ai_provider,
        "tts": settings.tts_provider,
    }
    for kind, entries in registry.describe().items():
        click.echo(click.style(f"{kind.upper()} providers:", bold=True))
        for name, class_name in entries.items():
            marker = "*" if current[kind] == name else " "
            click.echo(f"  {marker} {name:<12} {class_name}")


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--provider", "-p", callback=validate_provider, help="STT provider to use")
@click.option("--mime-type", help="Override the MIME type guessed from the file name")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def transcribe(file: str, provider: Optional[str], mime_type: Optional[str], debug: bool):
    """Transcribe an audio file."""
    configure(debug, None)

    path = Path(file)
    mime_type = mime_type or mimetypes.guess_type(path.name)[0] or "audio/wav"
    segment = AudioSegment(path.read_bytes(), mime_type)

    try:
        stt = registry.get_stt_provider(provider or settings.stt_provider)
        stt.initialize()
    except (ValueError, RuntimeError) as e:
        fail(str(e))

    try:
        client = TranscriptionClient(stt, settings.audio.min_segment_bytes, settings.retries)
        text = client.transcribe(segment)
    except VoiceChatError as e:
        fail(e.message)
    finally:
        stop_providers(stt)

    click.echo(text)


@cli.command()
@click.argument("text")
@click.option("--provider", "-p", callback=validate_provider, help="TTS provider to use")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Save audio instead of playing it")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def speak(text: str, provider: Optional[str], output: Optional[str], debug: bool):
    """Synthesize TEXT and play it, or save it with --output."""
    configure(debug, None)

    try:
        tts = registry.get_tts_provider(provider or settings.tts_provider)
        tts.initialize()
    except (ValueError, RuntimeError) as e:
        fail(str(e))

    try:
        if output:
            audio = tts.synthesize(text)
            Path(output).write_bytes(audio)
            click.echo(f"Saved {len(audio)} bytes of {tts.audio_format} audio to {output}")
        else:
            for chunk in tts.stream_audio(text):
                tts.play_chunk(chunk)
    except VoiceChatError as e:
        fail(e.message)
    finally:
        stop_providers(tts)


if __name__ == "__main__":
    cli()
