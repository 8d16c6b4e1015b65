"""AI providers."""


def register_providers():
    """Register all AI providers."""
    # Import at function level to avoid circular imports
    from ..registry import registry
    from ...config.settings import settings
    from .openai_chat import OpenAIChatProvider
    from .gemini import GeminiProvider
    from .http import HttpAIProvider

    registry.register_ai_provider(
        "openai",
        OpenAIChatProvider,
        lambda: settings.get_provider_config("openai_chat"),
    )

    registry.register_ai_provider(
        "gemini", GeminiProvider, lambda: settings.get_provider_config("gemini")
    )

    def get_http_config():
        config = settings.get_provider_config("http_ai")
        config["system_prompt"] = settings.system_prompts.default
        return config

    registry.register_ai_provider("http", HttpAIProvider, get_http_config)
