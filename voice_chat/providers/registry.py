"""Provider registry for dynamic provider loading."""

from typing import Any, Callable, Dict, Optional, Type
import structlog

from .stt.base import STTProvider
from .ai.base import AIProvider
from .tts.base import TTSProvider


logger = structlog.get_logger()

ConfigGetter = Callable[[], Dict[str, Any]]

KIND_LABELS = {"stt": "STT", "ai": "AI", "tts": "TTS"}


class ProviderRegistry:
    """
    Registry for managing provider implementations.

    Providers are registered per kind (``stt``, ``ai``, ``tts``) under a
    short name. A config getter, when given, is called at creation time so
    that settings changes after import are honoured; explicit keyword
    arguments passed to ``get_*_provider`` override it.
    """

    def __init__(self):
        self._providers: Dict[str, Dict[str, type]] = {kind: {} for kind in KIND_LABELS}
        self._provider_configs: Dict[str, ConfigGetter] = {}

    def _register(
        self, kind: str, name: str, provider_class: type,
        config_getter: Optional[ConfigGetter],
    ) -> None:
        self._providers[kind][name] = provider_class
        if config_getter:
            self._provider_configs[f"{kind}:{name}"] = config_getter
        else:
            self._provider_configs.pop(f"{kind}:{name}", None)
        logger.debug(
            f"Registered {KIND_LABELS[kind]} provider",
            name=name,
            class_name=provider_class.__name__,
        )

    def _create(self, kind: str, name: str, **kwargs):
        if name not in self._providers[kind]:
            raise ValueError(f"Unknown {KIND_LABELS[kind]} provider: {name}")

        provider_class = self._providers[kind][name]
        config_key = f"{kind}:{name}"

        config = {}
        if config_key in self._provider_configs:
            config = self._provider_configs[config_key]()
        config.update(kwargs)

        return provider_class(**config)

    def register_stt_provider(
        self,
        name: str,
        provider_class: Type[STTProvider],
        config_getter: Optional[ConfigGetter] = None,
    ) -> None:
        """Register an STT provider."""
        self._register("stt", name, provider_class, config_getter)

    def register_ai_provider(
        self,
        name: str,
        provider_class: Type[AIProvider],
        config_getter: Optional[ConfigGetter] = None,
    ) -> None:
        """Register an AI provider."""
        self._register("ai", name, provider_class, config_getter)

    def register_tts_provider(
        self,
        name: str,
        provider_class: Type[TTSProvider],
        config_getter: Optional[ConfigGetter] = None,
    ) -> None:
        """Register a TTS provider."""
        self._register("tts", name, provider_class, config_getter)

    def get_stt_provider(self, name: str, **kwargs) -> STTProvider:
        """Get an STT provider instance."""
        return self._create("stt", name, **kwargs)

    def get_ai_provider(self, name: str, **kwargs) -> AIProvider:
        """Get an AI provider instance."""
        return self._create("ai", name, **kwargs)

    def get_tts_provider(self, name: str, **kwargs) -> TTSProvider:
        """Get a TTS provider instance."""
        return self._create("tts", name, **kwargs)

    def list_stt_providers(self) -> list[str]:
        return list(self._providers["stt"])

    def list_ai_providers(self) -> list[str]:
        return list(self._providers["ai"])

    def list_tts_providers(self) -> list[str]:
        return list(self._providers["tts"])

    def describe(self) -> Dict[str, Dict[str, str]]:
        """Map kind -> provider name -> implementing class name."""
        return {
            kind: {name: cls.__name__ for name, cls in providers.items()}
            for kind, providers in self._providers.items()
        }

    def clear(self) -> None:
        """Clear all registered providers."""
        for providers in self._providers.values():
            providers.clear()
        self._provider_configs.clear()


# Global registry instance
registry = ProviderRegistry()
