"""
Model Gateway - the single entry point for text generation.

Routes every request to the configured primary backend, retries transient
failures once on the same backend, then falls back to the backup backend.
Failures are returned as typed `GenerationError` values, never raised.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..config import BackendConfig, BackendRole, GatewayConfig, LLMConfiguration
from ..core.errors import GenerationError, GenerationErrorKind
from .llm_clients import LLMClient, classify_exception, create_llm_client

logger = logging.getLogger("showrunner.gateway")


@dataclass(frozen=True)
class GenerationParams:
    """Per-request generation parameters."""
    temperature: float = 0.7
    max_tokens: Optional[int] = None
    response_format: str = "text"  # "text" | "json"
    model_hint: Optional[BackendRole] = None
    timeout_seconds: Optional[float] = None

    @property
    def wants_json(self) -> bool:
        return self.response_format == "json"


@dataclass
class GenerationResult:
    """Outcome of a gateway call. `ok` iff no error."""
    text: str = ""
    data: Optional[Any] = None
    backend: Optional[BackendRole] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    attempts: int = 0
    usage: Dict[str, int] = field(default_factory=dict)
    error: Optional[GenerationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def extract_json(text: str) -> Optional[Any]:
    """Extract JSON from a model response with tolerant parsing.

    Tries, in order: direct parse, fenced code block, raw_decode at the first
    '{' or '[', and finally the first balanced-brace object.
    """
    if not text or not text.strip():
        return None

    # Method 1: direct parse
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    # Method 2: markdown code block (```json or ```)
    for pattern in ["```json", "```JSON", "```"]:
        if pattern in text:
            parts = text.split(pattern)
            if len(parts) >= 2:
                json_str = parts[1].split("```")[0].strip()
                try:
                    return json.loads(json_str)
                except json.JSONDecodeError as e:
                    logger.debug(f"[extract_json] Code block extraction failed for '{pattern}': {e}")

    # Method 3: raw_decode starting at the first { or [
    decoder = json.JSONDecoder()
    for start_char in ["{", "["]:
        start_idx = text.find(start_char)
        if start_idx >= 0:
            try:
                result, _ = decoder.raw_decode(text[start_idx:])
                return result
            except json.JSONDecodeError as e:
                logger.debug(f"[extract_json] raw_decode failed for '{start_char}': {e}")

    # Method 4: balanced braces
    start = text.find("{")
    if start >= 0:
        depth = 0
        for i, char in enumerate(text[start:], start):
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    try:
                        return json.loads(text[start:i + 1])
                    except json.JSONDecodeError as e:
                        logger.debug(f"[extract_json] Balanced brace extraction failed: {e}")
                    break

    logger.debug(f"[extract_json] All extraction methods failed (len={len(text)})")
    return None


class ModelGateway:
    """Primary/backup text generation with bounded retry and typed failures."""

    def __init__(self, config: GatewayConfig, clients: Dict[BackendRole, LLMClient]):
        if BackendRole.PRIMARY not in clients:
            raise ValueError("A primary backend client is required")
        if config.backup is None and BackendRole.BACKUP in clients:
            raise ValueError("Backup client given but no backup backend configured")
        self.config = config
        self._clients = clients

    @classmethod
    def from_config(cls, config: LLMConfiguration) -> "ModelGateway":
        errors = config.validate_backends()
        if errors:
            raise ValueError("; ".join(errors))
        clients = {BackendRole.PRIMARY: create_llm_client(config.gateway.primary, config)}
        if config.gateway.backup is not None:
            clients[BackendRole.BACKUP] = create_llm_client(config.gateway.backup, config)
        return cls(config.gateway, clients)

    def _backend(self, role: BackendRole) -> BackendConfig:
        return self.config.primary if role == BackendRole.PRIMARY else self.config.backup

    def _backend_order(self, hint: Optional[BackendRole]) -> List[BackendRole]:
        order = [BackendRole.PRIMARY]
        if BackendRole.BACKUP in self._clients:
            order.append(BackendRole.BACKUP)
        if hint is not None and hint in order:
            order.remove(hint)
            order.insert(0, hint)
        return order

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        params: Optional[GenerationParams] = None,
    ) -> GenerationResult:
        """Generate text (or JSON) from the first backend that succeeds."""
        params = params or GenerationParams()
        order = self._backend_order(params.model_hint)
        attempts = 0
        last_error: Optional[GenerationError] = None
        last_role = order[0]

        for position, role in enumerate(order):
            last_role = role
            for retry in range(self.config.transient_retries + 1):
                if retry > 0:
                    logger.info(
                        f"[gateway] Retrying {role.value} after {last_error.kind.value} "
                        f"(attempt {retry + 1}/{self.config.transient_retries + 1})"
                    )
                    if self.config.retry_backoff_seconds:
                        await asyncio.sleep(self.config.retry_backoff_seconds * retry)

                attempts += 1
                result = await self._call_once(role, system_prompt, user_prompt, params)
                if result.ok:
                    result.attempts = attempts
                    if position > 0:
                        logger.warning(f"[gateway] Served by {role.value} backend after fallback")
                    return result

                last_error = result.error
                if not last_error.is_transient:
                    break

            if not last_error.allows_fallback:
                logger.error(f"[gateway] {last_error} - not eligible for fallback")
                break
            if position + 1 < len(order):
                logger.warning(
                    f"[gateway] {role.value} backend failed ({last_error.kind.value}), "
                    f"falling back to {order[position + 1].value}"
                )

        backend = self._backend(last_role)
        logger.error(f"[gateway] Generation failed after {attempts} attempt(s): {last_error}")
        return GenerationResult(
            backend=last_role,
            provider=backend.provider.value,
            model=backend.model,
            attempts=attempts,
            error=last_error,
        )

    async def _call_once(
        self,
        role: BackendRole,
        system_prompt: str,
        user_prompt: str,
        params: GenerationParams,
    ) -> GenerationResult:
        backend = self._backend(role)
        client = self._clients[role]
        timeout = params.timeout_seconds or self.config.timeout_seconds
        label = f"{role.value}:{backend.provider.value}/{backend.model}"

        def failure(kind: GenerationErrorKind, message: str) -> GenerationResult:
            return GenerationResult(
                backend=role,
                provider=backend.provider.value,
                model=backend.model,
                error=GenerationError(kind=kind, message=message, backend=label),
            )

        try:
            response = await asyncio.wait_for(
                client.complete(
                    system_prompt=system_prompt,
                    user_prompt=user_prompt,
                    temperature=params.temperature,
                    max_tokens=params.max_tokens,
                    json_mode=params.wants_json,
                ),
                timeout=timeout,
            )
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            logger.warning(f"[gateway] {label} timed out after {timeout}s")
            return failure(GenerationErrorKind.TIMEOUT, f"no response within {timeout}s")
        except Exception as e:
            kind = classify_exception(e)
            logger.warning(f"[gateway] {label} failed with {kind.value}: {e}")
            return failure(kind, str(e))

        if response.finish_reason in ("length", "max_tokens"):
            logger.warning(f"[gateway] {label} response was TRUNCATED (finish_reason={response.finish_reason})")

        text = response.content or ""
        if not text.strip():
            return failure(GenerationErrorKind.MALFORMED_RESPONSE, "empty response")

        data = None
        if params.wants_json:
            data = extract_json(text)
            if data is None:
                return failure(GenerationErrorKind.MALFORMED_RESPONSE, "response is not valid JSON")

        return GenerationResult(
            text=text,
            data=data,
            backend=role,
            provider=backend.provider.value,
            model=backend.model,
            usage=response.usage,
        )
