"""Synthesis provider registry.

Providers are looked up by name at runtime so configuration and the CLI
can switch backends without code changes.
"""

from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from .base import TTSProvider

from .elevenlabs import ElevenLabsProvider
from .system import SystemTTSProvider

__all__ = ["ElevenLabsProvider", "ProviderRegistry", "SystemTTSProvider"]


class ProviderRegistry:
    """Registry of provider classes and their shared instances."""

    _providers: ClassVar[dict[str, type["TTSProvider"]]] = {}
    _instances: ClassVar[dict[str, "TTSProvider"]] = {}

    @classmethod
    def register(cls, name: str, provider_class: type["TTSProvider"]) -> None:
        """Register a provider class under a name."""
        cls._providers[name] = provider_class

    @classmethod
    def names(cls) -> list[str]:
        """Registered provider names, sorted."""
        return sorted(cls._providers)

    @classmethod
    def get(cls, name: str) -> type["TTSProvider"]:
        """Get a provider class by name.

        Raises:
            KeyError: If provider name not found
        """
        if name not in cls._providers:
            available = ", ".join(cls.names()) if cls._providers else "none"
            raise KeyError(
                f"Provider '{name}' not found. Available providers: {available}"
            )
        return cls._providers[name]

    @classmethod
    def get_instance(cls, name: str) -> "TTSProvider":
        """Get a shared provider instance, creating it on first use.

        One instance per provider keeps client sessions and voice lists
        reused across announcements.

        Raises:
            KeyError: If provider name not found
        """
        if name not in cls._instances:
            cls._instances[name] = cls.get(name)()
        return cls._instances[name]

    @classmethod
    def clear_instances(cls) -> None:
        """Drop shared instances (used when credentials change)."""
        cls._instances.clear()


ProviderRegistry.register("elevenlabs", ElevenLabsProvider)
ProviderRegistry.register("system", SystemTTSProvider)
