"""Text-to-Speech providers."""


def register_providers():
    """Register all TTS providers."""
    # Import at function level to avoid circular imports
    from ..registry import registry
    from ...config.settings import settings
    from .elevenlabs import ElevenLabsProvider
    from .http import HttpTTSProvider

    registry.register_tts_provider(
        "elevenlabs",
        ElevenLabsProvider,
        lambda: settings.get_provider_config("elevenlabs"),
    )

    registry.register_tts_provider(
        "http", HttpTTSProvider, lambda: settings.get_provider_config("http_tts")
    )
