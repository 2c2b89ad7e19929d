"""
Unit tests for LLM Providers

Tests for provider implementations, configuration validation,
backend error classification and LLM instance creation.
"""

import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import httpx
import openai
import pytest
from unittest.mock import patch, MagicMock
from langchain_core.language_models.chat_models import BaseChatModel

from core.errors import ConfigFault, ContentRefusalFault, UpstreamFault
from core.llm_providers import (
    LLMProvider,
    VisionProvider,
    ImageGenerationProvider,
    classify_backend_error,
    normalize_base_url,
)


def _status_error(status: int, body) -> openai.APIStatusError:
    request = httpx.Request("POST", "https://api.test/v1/chat/completions")
    response = httpx.Response(status, request=request)
    return openai.APIStatusError("Backend error", response=response, body=body)


def _configure(mock_settings):
    mock_settings.OPENAI_API_KEY = "test-key"
    mock_settings.API_BASE_URL = "https://api.test"
    mock_settings.VISION_MODEL = "gpt-4o"
    mock_settings.IMAGE_MODEL = "gpt-4o-image"
    mock_settings.REQUEST_TIMEOUT = 120.0


class TestLLMProviderInterface:
    """Test abstract LLMProvider interface"""

    def test_llm_provider_is_abstract(self):
        """Should not allow instantiating abstract LLMProvider"""
        with pytest.raises(TypeError):
            LLMProvider()

    def test_llm_provider_requires_default_model_property(self):
        """Should require default_model property implementation"""
        class IncompleteProvider(LLMProvider):
            def create_llm(self, model=None, temperature=None, max_tokens=None):
                return MagicMock(spec=BaseChatModel)

            def validate_configuration(self):
                pass

        with pytest.raises(TypeError):
            IncompleteProvider()


class TestNormalizeBaseUrl:
    """Test API base URL normalization"""

    def test_appends_version_suffix(self):
        assert normalize_base_url("https://api.test") == "https://api.test/v1"

    def test_strips_trailing_slash(self):
        assert normalize_base_url("https://api.test/") == "https://api.test/v1"

    def test_keeps_existing_suffix(self):
        assert normalize_base_url("https://api.test/v1/") == "https://api.test/v1"


class TestVisionProvider:
    """Test the vision analysis provider"""

    @patch('core.llm_providers.settings')
    def test_initialization_with_settings(self, mock_settings):
        """Should initialize with settings values"""
        _configure(mock_settings)

        provider = VisionProvider()

        assert provider.api_key == "test-key"
        assert provider.base_url == "https://api.test"
        assert provider.default_model == "gpt-4o"

    @patch('core.llm_providers.settings')
    def test_initialization_with_custom_values(self, mock_settings):
        """Should accept custom API key and base URL"""
        _configure(mock_settings)

        provider = VisionProvider(api_key="custom-key", base_url="https://proxy.test")

        assert provider.api_key == "custom-key"
        assert provider.base_url == "https://proxy.test"

    @patch('core.llm_providers.settings')
    def test_missing_api_key_raises_config_fault(self, mock_settings):
        """Should raise ConfigFault if the API key is missing"""
        _configure(mock_settings)
        mock_settings.OPENAI_API_KEY = None

        with pytest.raises(ConfigFault) as exc_info:
            VisionProvider()

        assert exc_info.value.message == "API key not configured"
        assert "OPENAI_API_KEY" in exc_info.value.details
        assert isinstance(exc_info.value, RuntimeError)

    @patch('core.llm_providers.ChatOpenAI')
    @patch('core.llm_providers.settings')
    def test_create_llm(self, mock_settings, mock_chat_openai):
        """Should create ChatOpenAI instance with correct parameters"""
        _configure(mock_settings)
        mock_llm = MagicMock(spec=BaseChatModel)
        mock_chat_openai.return_value = mock_llm

        result = VisionProvider().create_llm(temperature=0.7, max_tokens=1000)

        mock_chat_openai.assert_called_once()
        call_kwargs = mock_chat_openai.call_args[1]
        assert call_kwargs["api_key"] == "test-key"
        assert call_kwargs["base_url"] == "https://api.test/v1"
        assert call_kwargs["model"] == "gpt-4o"
        assert call_kwargs["temperature"] == 0.7
        assert call_kwargs["max_tokens"] == 1000
        assert call_kwargs["timeout"] == 120.0
        assert call_kwargs["max_retries"] == 0
        assert result is mock_llm

    @patch('core.llm_providers.ChatOpenAI')
    @patch('core.llm_providers.settings')
    def test_create_llm_omits_unset_sampling(self, mock_settings, mock_chat_openai):
        """Should leave temperature and max_tokens to the backend when not given"""
        _configure(mock_settings)

        VisionProvider().create_llm()

        call_kwargs = mock_chat_openai.call_args[1]
        assert "temperature" not in call_kwargs
        assert "max_tokens" not in call_kwargs

    @patch('core.llm_providers.ChatOpenAI')
    @patch('core.llm_providers.settings')
    def test_create_llm_with_custom_model(self, mock_settings, mock_chat_openai):
        """Should use custom model if provided"""
        _configure(mock_settings)

        VisionProvider().create_llm(model="custom-model")

        assert mock_chat_openai.call_args[1]["model"] == "custom-model"


class TestImageGenerationProvider:
    """Test the image generation provider"""

    @patch('core.llm_providers.settings')
    def test_default_model(self, mock_settings):
        """Should default to the image model"""
        _configure(mock_settings)

        assert ImageGenerationProvider().default_model == "gpt-4o-image"

    @patch('core.llm_providers.ChatOpenAI')
    @patch('core.llm_providers.settings')
    def test_create_llm_uses_image_model(self, mock_settings, mock_chat_openai):
        _configure(mock_settings)

        ImageGenerationProvider().create_llm()

        assert mock_chat_openai.call_args[1]["model"] == "gpt-4o-image"


class TestClassifyBackendError:
    """Test mapping of backend exceptions onto the error taxonomy"""

    def test_status_error_with_nested_body(self):
        """Should carry status, message and code from an OpenAI-style error body"""
        exc = _status_error(429, {"error": {"message": "Rate limit reached", "code": "rate_limit"}})

        fault = classify_backend_error(exc, "Analysis")

        assert isinstance(fault, UpstreamFault)
        assert fault.message == "Analysis failed"
        assert fault.details == "Rate limit reached"
        assert fault.code == "rate_limit"
        assert fault.http_status == 429

    def test_status_error_with_flat_body(self):
        exc = _status_error(503, {"message": "Overloaded"})

        fault = classify_backend_error(exc, "Generation")

        assert fault.message == "Generation failed"
        assert fault.details == "Overloaded"
        assert fault.http_status == 503

    def test_status_error_without_body(self):
        """Should fall back to the HTTP status as code"""
        fault = classify_backend_error(_status_error(500, None), "Analysis")

        assert fault.http_status == 500
        assert fault.code == 500
        assert fault.details

    def test_timeout(self):
        """Should report a timeout as a 500 with 'timeout' detail"""
        exc = openai.APITimeoutError(request=httpx.Request("POST", "https://api.test/v1/chat/completions"))

        fault = classify_backend_error(exc, "Generation")

        assert fault.details == "timeout"
        assert fault.http_status == 500

    def test_unknown_exception(self):
        fault = classify_backend_error(ConnectionError("socket closed"), "Analysis")

        assert isinstance(fault, UpstreamFault)
        assert fault.http_status == 500
        assert fault.details == "socket closed"

    def test_classified_error_passes_through(self):
        """Should not re-wrap errors that are already classified"""
        original = ContentRefusalFault(details="policy")

        assert classify_backend_error(original, "Analysis") is original
