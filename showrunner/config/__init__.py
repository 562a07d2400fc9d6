"""
Showrunner Configuration Module
LLM provider configuration, gateway routing and pipeline settings.
"""

from .llm_providers import (
    CLAUDE_MODELS,
    DEEPSEEK_MODELS,
    GEMINI_MODELS,
    # Model Definitions
    OPENAI_MODELS,
    OPENROUTER_MODELS,
    # Gateway / Pipeline Settings
    BackendConfig,
    BackendRole,
    ClaudeConfig,
    DeepSeekConfig,
    GatewayConfig,
    GeminiConfig,
    LLMConfiguration,
    # Enums
    LLMProvider,
    OpenAIConfig,
    OpenRouterConfig,
    PipelineSettings,
    # Configuration Models
    ProviderConfig,
    SamplingPreset,
    create_default_config_from_env,
    # Helper Functions
    get_all_models,
)

__all__ = [
    "LLMProvider",
    "BackendRole",
    "OPENAI_MODELS",
    "OPENROUTER_MODELS",
    "GEMINI_MODELS",
    "CLAUDE_MODELS",
    "DEEPSEEK_MODELS",
    "ProviderConfig",
    "OpenAIConfig",
    "OpenRouterConfig",
    "GeminiConfig",
    "ClaudeConfig",
    "DeepSeekConfig",
    "BackendConfig",
    "SamplingPreset",
    "GatewayConfig",
    "PipelineSettings",
    "LLMConfiguration",
    "get_all_models",
    "create_default_config_from_env",
]
