"""
LLM Providers - Strategy Pattern Implementation
Each backend role (vision analysis, image generation) is a separate provider class.
Both talk to an OpenAI-compatible chat completions endpoint.
"""
from abc import ABC, abstractmethod
from typing import Optional
import openai
from langchain_openai import ChatOpenAI
from langchain_core.language_models.chat_models import BaseChatModel

from core.errors import ConfigFault, LandscapeError, UpstreamFault
from core.settings import settings


def normalize_base_url(base_url: str) -> str:
    """API_BASE_URL is configured without the version suffix; the SDK wants it."""
    base_url = str(base_url).rstrip("/")
    if base_url.endswith("/v1"):
        return base_url
    return f"{base_url}/v1"


def classify_backend_error(exc: Exception, operation: str) -> LandscapeError:
    """
    Map an exception raised by the chat backend onto the error taxonomy.

    Args:
        exc: Exception raised while invoking the model
        operation: "Analysis" or "Generation", used in the error message

    Returns:
        UpstreamFault carrying the upstream status, detail and code
    """
    if isinstance(exc, LandscapeError):
        return exc

    if isinstance(exc, openai.APIStatusError):
        body = exc.body
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            body = body["error"]
        details = exc.message
        code = exc.status_code
        if isinstance(body, dict):
            details = body.get("message") or details
            code = body.get("code") or code
        return UpstreamFault(
            f"{operation} failed",
            details=details or "Unknown error",
            code=code,
            http_status=exc.status_code,
        )

    if isinstance(exc, openai.APITimeoutError):
        return UpstreamFault(f"{operation} failed", details="timeout", http_status=500)

    return UpstreamFault(f"{operation} failed", details=str(exc) or "Unknown error", http_status=500)


class LLMProvider(ABC):
    """
    Abstract Base Class for LLM Providers (Strategy Pattern).
    All providers must implement this interface.
    """

    @abstractmethod
    def create_llm(
        self,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> BaseChatModel:
        """
        Create and return an LLM instance.

        Args:
            model: Model identifier (uses default if None)
            temperature: Temperature setting (backend default if None)
            max_tokens: Completion token cap (backend default if None)

        Returns:
            Configured LLM instance
        """
        pass

    @abstractmethod
    def validate_configuration(self) -> None:
        """Validate that provider configuration is complete."""
        pass

    @property
    @abstractmethod
    def default_model(self) -> str:
        """Return the default model for this provider."""
        pass


class OpenAICompatibleProvider(LLMProvider):
    """Shared implementation for OpenAI-compatible chat completion backends."""

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None):
        """
        Args:
            api_key: API key (defaults to settings.OPENAI_API_KEY)
            base_url: Backend root URL (defaults to settings.API_BASE_URL)
        """
        self.api_key = api_key or settings.OPENAI_API_KEY
        self.base_url = base_url or settings.API_BASE_URL
        self.validate_configuration()

    @property
    def default_model(self) -> str:
        return settings.VISION_MODEL

    def validate_configuration(self) -> None:
        if not self.api_key:
            raise ConfigFault(
                "API key not configured",
                details="Set OPENAI_API_KEY in your .env file.",
            )
        if not self.base_url:
            raise ConfigFault(
                "API key not configured",
                details="Set API_BASE_URL in your .env file.",
            )

    def create_llm(
        self,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ChatOpenAI:
        """
        Create the chat model.

        Retries are disabled: every retry in this product is a user action.
        """
        kwargs = {}
        if temperature is not None:
            kwargs["temperature"] = temperature
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        return ChatOpenAI(
            base_url=normalize_base_url(self.base_url),
            api_key=self.api_key,
            model=model or self.default_model,
            timeout=settings.REQUEST_TIMEOUT,
            max_retries=0,
            **kwargs,
        )


class VisionProvider(OpenAICompatibleProvider):
    """Multimodal model used to describe the uploaded yard."""

    @property
    def default_model(self) -> str:
        return settings.VISION_MODEL


class ImageGenerationProvider(OpenAICompatibleProvider):
    """Chat model that answers with a redesigned image reference."""

    @property
    def default_model(self) -> str:
        return settings.IMAGE_MODEL
