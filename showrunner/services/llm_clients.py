"""
LLM provider clients for Showrunner.
Thin adapters over the provider SDKs behind a single `LLMClient` interface.

Clients raise the provider's own exceptions; classification into
`GenerationErrorKind` happens in `classify_exception` so that the gateway
never inspects SDK types directly.
"""

import asyncio
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional

from ..config import BackendConfig, LLMConfiguration, LLMProvider
from ..core.errors import GenerationErrorKind

JSON_ONLY_INSTRUCTION = "You MUST respond with valid JSON only, no other text."


@dataclass
class ModelResponse:
    """Unified response from any LLM provider."""
    content: str
    model: str
    provider: LLMProvider
    usage: Dict[str, int] = field(default_factory=dict)
    finish_reason: str = "stop"


class ContentRejectedError(Exception):
    """The provider refused to produce content for policy reasons."""


class LLMClient(ABC):
    """Abstract base class for LLM clients."""

    provider: LLMProvider
    model: str

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> ModelResponse:
        """Generate a completion from the LLM."""
        pass


class OpenAIClient(LLMClient):
    """OpenAI API client; also serves OpenRouter and DeepSeek through base_url."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://api.openai.com/v1",
        provider: LLMProvider = LLMProvider.OPENAI,
        organization: Optional[str] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.provider = provider
        self.organization = organization
        self._client = None

    def _get_client(self):
        if self._client is None:
            from openai import AsyncOpenAI
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                organization=self.organization,
                max_retries=0,
            )
        return self._client

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> ModelResponse:
        client = self._get_client()
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        response = await client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
            **kwargs,
        )
        choice = response.choices[0]
        if choice.finish_reason == "content_filter":
            raise ContentRejectedError(f"{self.model} stopped with finish_reason=content_filter")

        return ModelResponse(
            content=choice.message.content or "",
            model=self.model,
            provider=self.provider,
            usage={
                "prompt_tokens": response.usage.prompt_tokens if response.usage else 0,
                "completion_tokens": response.usage.completion_tokens if response.usage else 0,
                "total_tokens": response.usage.total_tokens if response.usage else 0,
            },
            finish_reason=choice.finish_reason or "stop",
        )


class ClaudeClient(LLMClient):
    """Anthropic Claude API client implementation."""

    def __init__(self, api_key: str, model: str):
        self.api_key = api_key
        self.model = model
        self.provider = LLMProvider.CLAUDE
        self._client = None

    def _get_client(self):
        if self._client is None:
            from anthropic import AsyncAnthropic
            self._client = AsyncAnthropic(api_key=self.api_key, max_retries=0)
        return self._client

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> ModelResponse:
        client = self._get_client()
        if json_mode:
            system_prompt = f"{system_prompt}\n\n{JSON_ONLY_INSTRUCTION}"
        response = await client.messages.create(
            model=self.model,
            max_tokens=max_tokens or 4096,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
            temperature=temperature,
        )
        if response.stop_reason == "refusal":
            raise ContentRejectedError(f"{self.model} refused the request")

        content = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        return ModelResponse(
            content=content,
            model=self.model,
            provider=self.provider,
            usage={
                "prompt_tokens": response.usage.input_tokens if response.usage else 0,
                "completion_tokens": response.usage.output_tokens if response.usage else 0,
                "total_tokens": (
                    (response.usage.input_tokens + response.usage.output_tokens)
                    if response.usage else 0
                ),
            },
            finish_reason=response.stop_reason or "stop",
        )


class GeminiClient(LLMClient):
    """Google Gemini API client implementation."""

    def __init__(self, api_key: str, model: str):
        self.api_key = api_key
        self.model = model
        self.provider = LLMProvider.GEMINI
        self._client = None

    def _get_client(self):
        if self._client is None:
            import google.generativeai as genai
            genai.configure(api_key=self.api_key)
            self._client = genai.GenerativeModel(self.model)
        return self._client

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> ModelResponse:
        client = self._get_client()
        full_prompt = f"{system_prompt}\n\n---\n\n{user_prompt}"
        generation_config = {"temperature": temperature, "max_output_tokens": max_tokens}
        if json_mode:
            generation_config["response_mime_type"] = "application/json"
        response = await client.generate_content_async(
            full_prompt,
            generation_config=generation_config,
        )

        feedback = getattr(response, "prompt_feedback", None)
        if feedback is not None and getattr(feedback, "block_reason", None):
            raise ContentRejectedError(f"{self.model} blocked the prompt: {feedback.block_reason}")
        candidates = getattr(response, "candidates", None) or []
        finish_reason = "stop"
        if candidates:
            finish_reason = str(getattr(candidates[0].finish_reason, "name", candidates[0].finish_reason)).lower()
            if finish_reason == "safety":
                raise ContentRejectedError(f"{self.model} stopped for safety reasons")

        usage = getattr(response, "usage_metadata", None)
        return ModelResponse(
            content=response.text or "",
            model=self.model,
            provider=self.provider,
            usage={
                "prompt_tokens": getattr(usage, "prompt_token_count", 0) or 0,
                "completion_tokens": getattr(usage, "candidates_token_count", 0) or 0,
                "total_tokens": getattr(usage, "total_token_count", 0) or 0,
            },
            finish_reason=finish_reason,
        )


def create_llm_client(backend: BackendConfig, config: LLMConfiguration) -> LLMClient:
    """Factory function to create the client for one gateway backend."""
    provider = backend.provider
    model = backend.model

    if provider == LLMProvider.OPENAI:
        if not config.openai:
            raise ValueError("OpenAI configuration not provided")
        return OpenAIClient(
            api_key=config.openai.api_key.get_secret_value(),
            model=model,
            base_url=config.openai.base_url,
            organization=config.openai.organization_id,
        )

    elif provider == LLMProvider.OPENROUTER:
        if not config.openrouter:
            raise ValueError("OpenRouter configuration not provided")
        return OpenAIClient(  # OpenRouter uses OpenAI-compatible API
            api_key=config.openrouter.api_key.get_secret_value(),
            model=model,
            base_url=config.openrouter.base_url,
            provider=LLMProvider.OPENROUTER,
        )

    elif provider == LLMProvider.DEEPSEEK:
        if not config.deepseek:
            raise ValueError("DeepSeek configuration not provided")
        return OpenAIClient(  # DeepSeek uses OpenAI-compatible API
            api_key=config.deepseek.api_key.get_secret_value(),
            model=model,
            base_url=config.deepseek.base_url,
            provider=LLMProvider.DEEPSEEK,
        )

    elif provider == LLMProvider.CLAUDE:
        if not config.claude:
            raise ValueError("Claude configuration not provided")
        return ClaudeClient(
            api_key=config.claude.api_key.get_secret_value(),
            model=model,
        )

    elif provider == LLMProvider.GEMINI:
        if not config.gemini:
            raise ValueError("Gemini configuration not provided")
        return GeminiClient(
            api_key=config.gemini.api_key.get_secret_value(),
            model=model,
        )

    else:
        raise ValueError(f"Unsupported provider: {provider}")


# ============================================================================
# Error classification
# ============================================================================

AUTH_PATTERNS = [
    "401", "403",
    "invalid api key", "invalid_api_key", "incorrect api key", "api key not valid",
    "authentication", "unauthorized", "permission denied", "forbidden",
]

RATE_LIMIT_PATTERNS = [
    "429", "rate limit", "rate_limit", "ratelimit", "quota", "resource exhausted",
    "resource_exhausted", "too many requests",
]

TIMEOUT_PATTERNS = ["timeout", "timed out", "deadline exceeded"]

CONTENT_PATTERNS = [
    "content_policy", "content policy", "content_filter", "safety", "blocked",
    "refused", "responsible ai",
]

UPSTREAM_PATTERNS = [
    "500", "502", "503", "504", "529",
    "connection", "overloaded", "overload", "capacity",
    "temporarily unavailable", "service unavailable",
    "internal server error", "bad gateway", "gateway timeout",
]


def _matches(pattern: str, text: str) -> bool:
    # Status codes only count as whole numbers ("5000 tokens" is not a 500)
    if pattern.isdigit():
        return re.search(rf"\b{pattern}\b", text) is not None
    return pattern in text


def classify_exception(error: BaseException) -> GenerationErrorKind:
    """Map a provider exception to a GenerationErrorKind.

    SDK status codes are consulted first, message patterns second.
    Anything unrecognised is treated as an upstream error.
    """
    if isinstance(error, ContentRejectedError):
        return GenerationErrorKind.CONTENT_REJECTED
    if isinstance(error, asyncio.TimeoutError):
        return GenerationErrorKind.TIMEOUT

    status = getattr(error, "status_code", None) or getattr(error, "code", None)
    if isinstance(status, int):
        if status in (401, 403):
            return GenerationErrorKind.AUTH_FAILURE
        if status == 429:
            return GenerationErrorKind.RATE_LIMITED
        if status in (408, 504):
            return GenerationErrorKind.TIMEOUT
        if status >= 500:
            return GenerationErrorKind.UPSTREAM_ERROR

    error_str = str(error).lower()
    error_type = type(error).__name__.lower()

    for pattern in AUTH_PATTERNS:
        if _matches(pattern, error_str):
            return GenerationErrorKind.AUTH_FAILURE
    for pattern in RATE_LIMIT_PATTERNS:
        if _matches(pattern, error_str):
            return GenerationErrorKind.RATE_LIMITED
    for pattern in CONTENT_PATTERNS:
        if _matches(pattern, error_str):
            return GenerationErrorKind.CONTENT_REJECTED
    if "timeout" in error_type:
        return GenerationErrorKind.TIMEOUT
    for pattern in TIMEOUT_PATTERNS:
        if _matches(pattern, error_str):
            return GenerationErrorKind.TIMEOUT
    if "authentication" in error_type or "permission" in error_type:
        return GenerationErrorKind.AUTH_FAILURE
    if "ratelimit" in error_type:
        return GenerationErrorKind.RATE_LIMITED

    for pattern in UPSTREAM_PATTERNS:
        if _matches(pattern, error_str):
            return GenerationErrorKind.UPSTREAM_ERROR

    return GenerationErrorKind.UPSTREAM_ERROR
