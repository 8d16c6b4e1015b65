"""Speech-to-Text providers."""


def register_providers():
    """Register all STT providers."""
    # Import at function level to avoid circular imports
    from ..registry import registry
    from ...config.settings import settings
    from .openai_whisper import OpenAIWhisperProvider
    from .whisperkit import WhisperKitProvider
    from .http import HttpSTTProvider

    registry.register_stt_provider(
        "openai",
        OpenAIWhisperProvider,
        lambda: settings.get_provider_config("openai_stt"),
    )

    registry.register_stt_provider(
        "whisperkit",
        WhisperKitProvider,
        lambda: settings.get_provider_config("whisperkit"),
    )

    registry.register_stt_provider(
        "http",
        HttpSTTProvider,
        lambda: settings.get_provider_config("http_stt"),
    )
