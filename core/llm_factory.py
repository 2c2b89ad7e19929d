"""
LLM Factory - Factory Pattern Implementation
Centralized factory for creating the chat models behind analysis and generation.
"""
from typing import Optional
from langchain_core.language_models.chat_models import BaseChatModel

from core.llm_providers import (
    LLMProvider,
    VisionProvider,
    ImageGenerationProvider,
)
from core.settings import settings


class LLMFactory:
    """
    Factory class for creating LLM instances.
    Implements Factory Pattern for clean, extensible object creation.
    """

    # Registry of available providers
    _providers: dict[str, type[LLMProvider]] = {
        "vision": VisionProvider,
        "image": ImageGenerationProvider,
    }

    @classmethod
    def register_provider(cls, name: str, provider_class: type[LLMProvider]) -> None:
        """
        Register a new LLM provider (Open/Closed Principle).

        Args:
            name: Provider identifier
            provider_class: Provider class implementing LLMProvider
        """
        cls._providers[name.lower()] = provider_class

    @classmethod
    def create(
        cls,
        provider_name: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **provider_kwargs
    ) -> BaseChatModel:
        """
        Create an LLM instance using the specified provider.

        Args:
            provider_name: Name of the provider ("vision", "image")
            model: Optional model name (uses provider default if None)
            temperature: Temperature setting
            max_tokens: Completion token cap
            **provider_kwargs: Additional provider-specific arguments

        Returns:
            Configured LLM instance

        Raises:
            ValueError: If provider is not registered
            ConfigFault: If provider credentials are missing

        Examples:
            >>> llm = LLMFactory.create("vision", temperature=0.7)
            >>> llm = LLMFactory.create("image", api_key="sk-...", base_url="https://proxy.example")
        """
        provider_name = provider_name.lower()

        if provider_name not in cls._providers:
            available = ", ".join(cls._providers.keys())
            raise ValueError(
                f"Unknown provider: '{provider_name}'. "
                f"Available providers: {available}"
            )

        provider_class = cls._providers[provider_name]
        provider = provider_class(**provider_kwargs)

        return provider.create_llm(model=model, temperature=temperature, max_tokens=max_tokens)

    @classmethod
    def list_providers(cls) -> list[str]:
        """Get list of registered provider names."""
        return list(cls._providers.keys())


def create_vision_llm(model: Optional[str] = None) -> BaseChatModel:
    """
    Create the chat model used for yard analysis.

    Uses ANALYSIS_TEMPERATURE and ANALYSIS_MAX_TOKENS from settings.
    """
    return LLMFactory.create(
        "vision",
        model=model,
        temperature=settings.ANALYSIS_TEMPERATURE,
        max_tokens=settings.ANALYSIS_MAX_TOKENS,
    )


def create_image_llm(model: Optional[str] = None) -> BaseChatModel:
    """Create the chat model used for design generation."""
    return LLMFactory.create("image", model=model)
