"""
Engine registry: the explicit, enumerable set of enhancement engines.
"""

from typing import Dict, Iterable, Iterator, List, Optional

from ..models import ArtifactKind, StoryContext
from .base import EnhancementEngine


class EngineRegistry:
    """Ordered collection of engines, assembled once at startup."""

    def __init__(self, engines: Iterable[EnhancementEngine] = ()):
        self._engines: Dict[str, EnhancementEngine] = {}
        for engine in engines:
            self.register(engine)

    def register(self, engine: EnhancementEngine) -> None:
        if engine.id in self._engines:
            raise ValueError(f"Engine '{engine.id}' is already registered")
        self._engines[engine.id] = engine

    def get(self, engine_id: str) -> EnhancementEngine:
        try:
            return self._engines[engine_id]
        except KeyError:
            raise KeyError(f"Unknown engine: {engine_id}") from None

    def __contains__(self, engine_id: str) -> bool:
        return engine_id in self._engines

    def __iter__(self) -> Iterator[EnhancementEngine]:
        return iter(self._engines.values())

    def __len__(self) -> int:
        return len(self._engines)

    def ids(self) -> List[str]:
        return list(self._engines)

    def select(
        self,
        kind: ArtifactKind,
        context: StoryContext,
        engine_ids: Optional[Iterable[str]] = None,
    ) -> List[EnhancementEngine]:
        """Active engines for an artifact, in registration order.

        `engine_ids` narrows the selection; unknown ids raise KeyError.
        """
        if engine_ids is not None:
            wanted = set(engine_ids)
            for engine_id in wanted:
                self.get(engine_id)
            candidates = [engine for engine in self if engine.id in wanted]
        else:
            candidates = list(self)
        return [engine for engine in candidates if engine.applies_to(context, kind)]
