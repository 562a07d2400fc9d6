"""
Showrunner Services Module
Model gateway, provider clients, persistence and asset generation.
"""

from .llm_clients import (
    ClaudeClient,
    GeminiClient,
    LLMClient,
    ModelResponse,
    OpenAIClient,
    classify_exception,
    create_llm_client,
)
from .model_gateway import GenerationParams, GenerationResult, ModelGateway, extract_json
from .persistence import InMemoryStoryStore, PutResult, StoryStore

__all__ = [
    "LLMClient",
    "OpenAIClient",
    "ClaudeClient",
    "GeminiClient",
    "ModelResponse",
    "classify_exception",
    "create_llm_client",
    "ModelGateway",
    "GenerationParams",
    "GenerationResult",
    "extract_json",
    "StoryStore",
    "InMemoryStoryStore",
    "PutResult",
]
