# fixflow/services/gpt_service.py
"""
GPT Service for fixflow.

Async wrapper around the OpenAI chat API. It is the production
LanguageClassifier behind the response interpreter:
- classify() asks for a JSON object at low temperature
- complete() for plain text
- Consistent error wrapping and health checks
"""
import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging

from openai import AsyncOpenAI
from openai.types.chat import ChatCompletion

from fixflow.core.config import settings
from fixflow.core.exceptions import ConfigurationError, GPTServiceError, ValidationError
from fixflow.core.service_base import BaseService
from fixflow.prompts.interpreter_prompts import HEALTH_CHECK_PROMPT

logger = logging.getLogger(__name__)


@dataclass
class GPTConfig:
    """Configuration for GPT Service"""
    api_key: Optional[str] = None
    model: str = "gpt-4o-mini"
    max_tokens: Optional[int] = None
    temperature: float = 0.1
    timeout: float = 15.0
    max_retries: int = 1


class GPTService(BaseService):
    """
    Async-only GPT service.

    Both entry points go through _create so errors are wrapped the same way.
    """

    def __init__(self, config: Optional[GPTConfig] = None):
        """
        Initialize GPT Service.

        Args:
            config: GPT configuration. If not provided, built from settings.
        """
        if config is None:
            config = GPTConfig(
                api_key=settings.OPENAI_API_KEY,
                model=settings.CLASSIFIER_MODEL,
                temperature=settings.CLASSIFIER_TEMPERATURE,
                timeout=settings.CLASSIFIER_TIMEOUT_SECONDS
            )

        super().__init__(config, logger)

    def _validate_config(self) -> None:
        """Validate GPT configuration"""
        super()._validate_config()

        if not self.config.api_key:
            raise ConfigurationError(
                "OpenAI API key is required. Set OPENAI_API_KEY environment variable.",
                component="gpt"
            )

        if self.config.temperature < 0 or self.config.temperature > 2:
            raise ConfigurationError("Temperature must be between 0 and 2", component="gpt")

    async def _initialize_client(self) -> AsyncOpenAI:
        """Initialize the OpenAI client"""
        return AsyncOpenAI(
            api_key=self.config.api_key,
            timeout=self.config.timeout,
            max_retries=self.config.max_retries
        )

    async def _create(self, params: Dict[str, Any]) -> str:
        try:
            self.logger.debug(f"Requesting completion from {params['model']}")
            response: ChatCompletion = await self.client.chat.completions.create(**params)

            if not response.choices:
                raise GPTServiceError("No completion choices returned from API", model=params["model"])

            content = response.choices[0].message.content
            if not content:
                raise GPTServiceError("Empty completion returned from API", model=params["model"])

            return content.strip()

        except GPTServiceError:
            raise
        except Exception as e:
            error_msg = f"Failed to generate completion: {e}"
            self.logger.error(error_msg)
            raise GPTServiceError(error_msg, model=params["model"], details={"error_type": type(e).__name__}) from e

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> str:
        """
        Generate a plain-text completion.

        Raises:
            GPTServiceError: If generation fails
            ValidationError: If the prompt is empty
        """
        await self.ensure_initialized()

        if not prompt or not prompt.strip():
            raise ValidationError("Prompt cannot be empty", field="prompt")

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        params = {
            "model": self.config.model,
            "messages": messages,
            "temperature": self.config.temperature if temperature is None else temperature,
        }
        if max_tokens or self.config.max_tokens:
            params["max_tokens"] = max_tokens or self.config.max_tokens
        params.update(kwargs)

        return await self._create(params)

    async def classify(self, system_prompt: str, user_message: str) -> Dict[str, Any]:
        """
        Structured classification call used by the response interpreter.

        Returns:
            The parsed JSON object

        Raises:
            GPTServiceError: On API failure or when the reply is not a JSON object
        """
        await self.ensure_initialized()

        content = await self._create({
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            "response_format": {"type": "json_object"},
            "temperature": self.config.temperature,
        })

        try:
            result = json.loads(content)
        except json.JSONDecodeError as e:
            raise GPTServiceError(
                f"Failed to parse JSON response: {e}",
                model=self.config.model,
                details={"response": content[:200]}
            ) from e

        if not isinstance(result, dict):
            raise GPTServiceError("Classifier reply is not a JSON object", model=self.config.model)

        return result

    async def health_check(self) -> Dict[str, Any]:
        """
        Check GPT service health.

        Returns:
            Health status including availability and response time
        """
        try:
            start_time = time.time()
            await self.complete(HEALTH_CHECK_PROMPT, temperature=0, max_tokens=5)
            response_time_ms = int((time.time() - start_time) * 1000)

            return {
                "healthy": True,
                "status": "connected",
                "details": {
                    "model": self.config.model,
                    "response_time_ms": response_time_ms,
                    "api_key_set": bool(self.config.api_key)
                }
            }

        except Exception as e:
            return {
                "healthy": False,
                "status": "error",
                "details": {
                    "error": str(e),
                    "model": self.config.model
                }
            }

    def get_metrics(self) -> Dict[str, Any]:
        """Get service metrics"""
        metrics = super().get_metrics()
        metrics.update({
            "model": self.config.model,
            "temperature": self.config.temperature,
            "timeout": self.config.timeout
        })
        return metrics
