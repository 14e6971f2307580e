# tests/services/test_gpt_service.py
"""
Unit tests for the GPT service.

Uses a mocked AsyncOpenAI client so no real API calls are made.
"""
import pytest
from unittest.mock import AsyncMock, Mock, patch
from openai.types.chat import ChatCompletion, ChatCompletionMessage
from openai.types.chat.chat_completion import Choice
from openai.types.completion_usage import CompletionUsage

from fixflow.core.exceptions import ConfigurationError, GPTServiceError, ValidationError
from fixflow.services.gpt_service import GPTConfig, GPTService


def completion(content):
    return ChatCompletion(
        id="test-id",
        object="chat.completion",
        created=1234567890,
        model="gpt-4o-mini",
        choices=[Choice(
            index=0,
            message=ChatCompletionMessage(role="assistant", content=content),
            finish_reason="stop"
        )],
        usage=CompletionUsage(prompt_tokens=10, completion_tokens=20, total_tokens=30)
    )


@pytest.fixture
def mock_config():
    """Create a test configuration"""
    return GPTConfig(
        api_key="test-api-key",
        model="gpt-4o-mini",
        temperature=0.1,
        timeout=10
    )


@pytest.fixture
def mock_openai_client():
    """Create a mock OpenAI client"""
    client = Mock()
    client.chat = Mock()
    client.chat.completions = Mock()
    client.chat.completions.create = AsyncMock(return_value=completion("Test response"))
    return client


@pytest.fixture
async def gpt_service(mock_config, mock_openai_client):
    """Create a GPT service with mocked client"""
    service = GPTService(mock_config)

    with patch.object(service, '_initialize_client', return_value=mock_openai_client):
        await service.initialize()

    return service


class TestGPTService:
    """Configuration and plain completions"""

    async def test_initialization(self, mock_config):
        service = GPTService(mock_config)

        assert service.config == mock_config
        assert not service.is_initialized

        with patch.object(service, '_initialize_client', return_value=Mock()):
            await service.initialize()

        assert service.is_initialized

    async def test_missing_api_key(self):
        service = GPTService(GPTConfig(api_key=None))

        with pytest.raises(ConfigurationError):
            await service.initialize()

    async def test_invalid_temperature(self):
        service = GPTService(GPTConfig(api_key="key", temperature=3.0))

        with pytest.raises(ConfigurationError):
            await service.initialize()

    async def test_complete(self, gpt_service, mock_openai_client):
        result = await gpt_service.complete("Hello", system_prompt="Be brief")

        assert result == "Test response"
        params = mock_openai_client.chat.completions.create.call_args.kwargs
        assert params["model"] == "gpt-4o-mini"
        assert params["messages"][0] == {"role": "system", "content": "Be brief"}
        assert params["messages"][1] == {"role": "user", "content": "Hello"}
        assert params["temperature"] == 0.1
        assert "max_tokens" not in params

    async def test_complete_overrides(self, gpt_service, mock_openai_client):
        await gpt_service.complete("Hello", temperature=0, max_tokens=5)

        params = mock_openai_client.chat.completions.create.call_args.kwargs
        assert params["temperature"] == 0
        assert params["max_tokens"] == 5

    async def test_empty_prompt(self, gpt_service):
        with pytest.raises(ValidationError):
            await gpt_service.complete("   ")

    async def test_api_error_is_wrapped(self, gpt_service, mock_openai_client):
        mock_openai_client.chat.completions.create.side_effect = Exception("API Error")

        with pytest.raises(GPTServiceError) as exc_info:
            await gpt_service.complete("Hello")

        assert "API Error" in str(exc_info.value)
        assert exc_info.value.details["error_type"] == "Exception"

    async def test_empty_completion(self, gpt_service, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = completion(None)

        with pytest.raises(GPTServiceError, match="Empty completion"):
            await gpt_service.complete("Hello")

    async def test_health_check(self, gpt_service):
        health = await gpt_service.health_check()

        assert health["healthy"] is True
        assert health["details"]["model"] == "gpt-4o-mini"

    async def test_health_check_failure(self, gpt_service, mock_openai_client):
        mock_openai_client.chat.completions.create.side_effect = Exception("unreachable")

        health = await gpt_service.health_check()

        assert health["healthy"] is False
        assert "unreachable" in health["details"]["error"]

    def test_get_metrics(self, mock_config):
        metrics = GPTService(mock_config).get_metrics()

        assert metrics["model"] == "gpt-4o-mini"
        assert metrics["initialized"] is False


class TestClassify:
    """JSON classification used by the response interpreter"""

    async def test_classify_returns_dict(self, gpt_service, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = completion(
            '{"matchedResponseId": "power_yes", "confidence": 0.9}'
        )

        result = await gpt_service.classify("system prompt", "lights are on")

        assert result == {"matchedResponseId": "power_yes", "confidence": 0.9}
        params = mock_openai_client.chat.completions.create.call_args.kwargs
        assert params["response_format"] == {"type": "json_object"}
        assert params["messages"] == [
            {"role": "system", "content": "system prompt"},
            {"role": "user", "content": "lights are on"},
        ]

    async def test_classify_invalid_json(self, gpt_service, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = completion("not json")

        with pytest.raises(GPTServiceError, match="Failed to parse JSON"):
            await gpt_service.classify("system prompt", "hello")

    async def test_classify_non_object(self, gpt_service, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = completion('["a", "b"]')

        with pytest.raises(GPTServiceError, match="not a JSON object"):
            await gpt_service.classify("system prompt", "hello")
