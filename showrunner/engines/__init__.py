"""
Showrunner Enhancement Engines Module
Specialist engines that critique a draft before synthesis.
"""

from .base import EnhancementEngine
from .catalog import DEFAULT_ENGINES, DOCUMENT_ENGINES, build_default_registry
from .registry import EngineRegistry

__all__ = [
    "EnhancementEngine",
    "EngineRegistry",
    "DEFAULT_ENGINES",
    "DOCUMENT_ENGINES",
    "build_default_registry",
]
