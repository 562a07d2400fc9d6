"""
LLM Provider Configuration - primary/backup gateway backends
Supports OpenAI, OpenRouter, Google Gemini, Anthropic Claude and DeepSeek.

The process-wide configuration is immutable: it is built once at startup
(usually from the environment) and handed to the Model Gateway factory.
"""

import os
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, model_validator


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    OPENAI = "openai"
    OPENROUTER = "openrouter"
    GEMINI = "gemini"
    CLAUDE = "claude"
    DEEPSEEK = "deepseek"


class BackendRole(str, Enum):
    """Which configured backend served (or should serve) a request."""
    PRIMARY = "primary"
    BACKUP = "backup"


# ============================================================================
# Model Definitions by Provider
# ============================================================================

OPENAI_MODELS: Dict[str, Dict[str, Any]] = {
    "gpt-4.1": {
        "name": "GPT-4.1",
        "description": "Long-context GPT-4 generation, strong instruction following",
        "context_window": 1000000,
        "max_output": 32768,
    },
    "gpt-4o": {
        "name": "GPT-4o",
        "description": "Most capable GPT-4o model, multimodal",
        "context_window": 128000,
        "max_output": 16384,
    },
    "gpt-4o-mini": {
        "name": "GPT-4o Mini",
        "description": "Smaller, faster, cheaper GPT-4o variant",
        "context_window": 128000,
        "max_output": 16384,
    },
}

OPENROUTER_MODELS: Dict[str, Dict[str, Any]] = {
    "anthropic/claude-3.5-sonnet": {
        "name": "Claude 3.5 Sonnet (via OpenRouter)",
        "description": "Anthropic Claude 3.5 Sonnet through OpenRouter",
        "context_window": 200000,
        "max_output": 8192,
    },
    "google/gemini-2.5-pro": {
        "name": "Gemini 2.5 Pro (via OpenRouter)",
        "description": "Google Gemini 2.5 Pro through OpenRouter",
        "context_window": 1000000,
        "max_output": 65536,
    },
    "openai/gpt-4o": {
        "name": "GPT-4o (via OpenRouter)",
        "description": "OpenAI GPT-4o through OpenRouter",
        "context_window": 128000,
        "max_output": 16384,
    },
}

GEMINI_MODELS: Dict[str, Dict[str, Any]] = {
    "gemini-3-pro-preview": {
        "name": "Gemini 3 Pro (Preview)",
        "description": "Deep reasoning over the whole story bible; default primary backend",
        "context_window": 1000000,
        "max_output": 65536,
    },
    "gemini-2.5-pro": {
        "name": "Gemini 2.5 Pro",
        "description": "Stable Gemini pro model; default backup on rate limits",
        "context_window": 1000000,
        "max_output": 65536,
    },
    "gemini-2.5-flash": {
        "name": "Gemini 2.5 Flash",
        "description": "Fast Gemini variant for high-volume engine calls",
        "context_window": 1000000,
        "max_output": 65536,
    },
}

DEEPSEEK_MODELS: Dict[str, Dict[str, Any]] = {
    "deepseek-chat": {
        "name": "DeepSeek V3",
        "description": "DeepSeek's most capable chat model",
        "context_window": 64000,
        "max_output": 8192,
    },
}

CLAUDE_MODELS: Dict[str, Dict[str, Any]] = {
    "claude-sonnet-4-20250514": {
        "name": "Claude Sonnet 4",
        "description": "Claude 4 Sonnet, strong long-form prose",
        "context_window": 200000,
        "max_output": 8192,
    },
    "claude-3-5-haiku-20241022": {
        "name": "Claude 3.5 Haiku",
        "description": "Fast and cost-effective Claude model",
        "context_window": 200000,
        "max_output": 8192,
    },
}


# ============================================================================
# Provider Configuration Models
# ============================================================================

class ProviderConfig(BaseModel):
    """Base configuration for an LLM provider."""
    model_config = ConfigDict(frozen=True)

    provider: LLMProvider
    api_key: SecretStr
    base_url: Optional[str] = None
    organization_id: Optional[str] = None
    enabled: bool = True

    @property
    def available_models(self) -> Dict[str, Dict[str, Any]]:
        return get_all_models()[self.provider.value]


class OpenAIConfig(ProviderConfig):
    """OpenAI-specific configuration."""
    provider: LLMProvider = LLMProvider.OPENAI
    base_url: str = "https://api.openai.com/v1"


class OpenRouterConfig(ProviderConfig):
    """OpenRouter-specific configuration."""
    provider: LLMProvider = LLMProvider.OPENROUTER
    base_url: str = "https://openrouter.ai/api/v1"


class GeminiConfig(ProviderConfig):
    """Google Gemini-specific configuration."""
    provider: LLMProvider = LLMProvider.GEMINI
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"


class ClaudeConfig(ProviderConfig):
    """Anthropic Claude-specific configuration."""
    provider: LLMProvider = LLMProvider.CLAUDE
    base_url: str = "https://api.anthropic.com/v1"


class DeepSeekConfig(ProviderConfig):
    """DeepSeek-specific configuration (OpenAI-compatible API)."""
    provider: LLMProvider = LLMProvider.DEEPSEEK
    base_url: str = "https://api.deepseek.com"


# ============================================================================
# Gateway and Pipeline Settings
# ============================================================================

class BackendConfig(BaseModel):
    """One gateway backend: a provider plus the model to call on it."""
    model_config = ConfigDict(frozen=True)

    provider: LLMProvider
    model: str


class SamplingPreset(BaseModel):
    """Sampling parameters for one pipeline stage."""
    model_config = ConfigDict(frozen=True)

    temperature: float = Field(ge=0.0, le=2.0)
    max_tokens: int = Field(ge=1)


class GatewayConfig(BaseModel):
    """Primary/backup routing and retry policy for the Model Gateway."""
    model_config = ConfigDict(frozen=True)

    primary: BackendConfig = BackendConfig(
        provider=LLMProvider.GEMINI, model="gemini-3-pro-preview"
    )
    backup: Optional[BackendConfig] = BackendConfig(
        provider=LLMProvider.GEMINI, model="gemini-2.5-pro"
    )
    timeout_seconds: float = Field(default=120.0, gt=0)
    transient_retries: int = Field(default=1, ge=0, le=5)
    retry_backoff_seconds: float = Field(default=1.0, ge=0)


class PipelineSettings(BaseModel):
    """Knobs for the generation pipeline, engines and the lock state machine."""
    model_config = ConfigDict(frozen=True)

    # Story bible (re)generation attempts per StoryContext
    regeneration_limit: int = Field(default=5, ge=1)
    # Whole-pipeline attempts for episodes and pre-production documents
    pipeline_max_attempts: int = Field(default=2, ge=1, le=10)
    engine_success_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    engine_timeout_seconds: float = Field(default=60.0, gt=0)
    reflect_episodes: bool = True

    draft: SamplingPreset = SamplingPreset(temperature=0.7, max_tokens=4096)
    engine: SamplingPreset = SamplingPreset(temperature=0.85, max_tokens=1500)
    synthesis: SamplingPreset = SamplingPreset(temperature=0.95, max_tokens=16384)
    reflection: SamplingPreset = SamplingPreset(temperature=0.3, max_tokens=4096)

    @model_validator(mode="after")
    def _synthesis_is_more_creative(self) -> "PipelineSettings":
        if self.synthesis.temperature <= self.draft.temperature:
            raise ValueError("synthesis temperature must be higher than draft temperature")
        return self


# ============================================================================
# Master Configuration
# ============================================================================

class LLMConfiguration(BaseModel):
    """Master configuration: provider keys, gateway routing, pipeline settings."""
    model_config = ConfigDict(frozen=True)

    openai: Optional[OpenAIConfig] = None
    openrouter: Optional[OpenRouterConfig] = None
    gemini: Optional[GeminiConfig] = None
    claude: Optional[ClaudeConfig] = None
    deepseek: Optional[DeepSeekConfig] = None

    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)

    def get_provider_config(self, provider: LLMProvider) -> Optional[ProviderConfig]:
        """Get configuration for a specific provider."""
        provider_map = {
            LLMProvider.OPENAI: self.openai,
            LLMProvider.OPENROUTER: self.openrouter,
            LLMProvider.GEMINI: self.gemini,
            LLMProvider.CLAUDE: self.claude,
            LLMProvider.DEEPSEEK: self.deepseek,
        }
        return provider_map.get(provider)

    def get_enabled_providers(self) -> List[LLMProvider]:
        """Get list of enabled providers."""
        return [
            provider for provider in LLMProvider
            if (cfg := self.get_provider_config(provider)) is not None and cfg.enabled
        ]

    def validate_backends(self) -> List[str]:
        """Validate that the gateway backends are available from enabled providers."""
        errors = []
        backends = [("primary", self.gateway.primary)]
        if self.gateway.backup is not None:
            backends.append(("backup", self.gateway.backup))

        for role, backend in backends:
            provider_config = self.get_provider_config(backend.provider)
            if not provider_config:
                errors.append(f"{role}: Provider {backend.provider.value} is not configured")
            elif not provider_config.enabled:
                errors.append(f"{role}: Provider {backend.provider.value} is disabled")
            elif backend.model not in provider_config.available_models:
                errors.append(f"{role}: Model {backend.model} not available for {backend.provider.value}")

        return errors


# ============================================================================
# Helper Functions
# ============================================================================

def get_all_models() -> Dict[str, Dict[str, Dict[str, Any]]]:
    """Get all available models grouped by provider."""
    return {
        "openai": OPENAI_MODELS,
        "openrouter": OPENROUTER_MODELS,
        "gemini": GEMINI_MODELS,
        "claude": CLAUDE_MODELS,
        "deepseek": DEEPSEEK_MODELS,
    }


def _backend_from_env(prefix: str, default: Optional[BackendConfig]) -> Optional[BackendConfig]:
    provider = os.getenv(f"{prefix}_PROVIDER")
    model = os.getenv(f"{prefix}_MODEL")
    if not provider and not model:
        return default
    if provider and provider.lower() == "none":
        return None
    return BackendConfig(
        provider=LLMProvider(provider.lower()) if provider else default.provider,
        model=model or default.model,
    )


def create_default_config_from_env() -> LLMConfiguration:
    """Create configuration from environment variables."""
    providers: Dict[str, ProviderConfig] = {}

    if os.getenv("OPENAI_API_KEY"):
        providers["openai"] = OpenAIConfig(
            api_key=SecretStr(os.getenv("OPENAI_API_KEY")),
            organization_id=os.getenv("OPENAI_ORG_ID"),
        )

    if os.getenv("OPENROUTER_API_KEY"):
        providers["openrouter"] = OpenRouterConfig(
            api_key=SecretStr(os.getenv("OPENROUTER_API_KEY")),
        )

    if os.getenv("GEMINI_API_KEY"):
        providers["gemini"] = GeminiConfig(
            api_key=SecretStr(os.getenv("GEMINI_API_KEY")),
        )

    if os.getenv("ANTHROPIC_API_KEY"):
        providers["claude"] = ClaudeConfig(
            api_key=SecretStr(os.getenv("ANTHROPIC_API_KEY")),
        )

    if os.getenv("DEEPSEEK_API_KEY"):
        providers["deepseek"] = DeepSeekConfig(
            api_key=SecretStr(os.getenv("DEEPSEEK_API_KEY")),
        )

    defaults = GatewayConfig()
    gateway = GatewayConfig(
        primary=_backend_from_env("SHOWRUNNER_PRIMARY", defaults.primary),
        backup=_backend_from_env("SHOWRUNNER_BACKUP", defaults.backup),
        timeout_seconds=float(os.getenv("SHOWRUNNER_TIMEOUT_SECONDS", defaults.timeout_seconds)),
    )

    pipeline_kwargs: Dict[str, Any] = {}
    if os.getenv("SHOWRUNNER_REGENERATION_LIMIT"):
        pipeline_kwargs["regeneration_limit"] = int(os.getenv("SHOWRUNNER_REGENERATION_LIMIT"))
    if os.getenv("SHOWRUNNER_REFLECT_EPISODES"):
        pipeline_kwargs["reflect_episodes"] = os.getenv("SHOWRUNNER_REFLECT_EPISODES").lower() in ("1", "true", "yes")

    return LLMConfiguration(
        gateway=gateway,
        pipeline=PipelineSettings(**pipeline_kwargs),
        **providers,
    )
