"""
Unit tests for the Model Gateway.

Tests cover:
- Transient retry on the same backend, then fallback to the backup
- No retry or fallback for content rejections
- Timeouts, empty and non-JSON responses
- Tolerant JSON extraction
- Provider exception classification
"""

import asyncio
import pytest

from showrunner.config import BackendRole
from showrunner.core.errors import GenerationErrorKind
from showrunner.services.llm_clients import ContentRejectedError, classify_exception
from showrunner.services.model_gateway import GenerationParams, extract_json
from showrunner.tests.fakes import StatusError, make_gateway


class TestGatewayRetryAndFallback:
    """Tests for bounded retry and primary/backup routing."""

    @pytest.mark.asyncio
    async def test_primary_success(self):
        """Test a healthy primary answers on the first attempt."""
        gateway, primary, _ = make_gateway(lambda s, u, j: "hello", lambda s, u, j: "backup")

        result = await gateway.generate("system", "user")

        assert result.ok
        assert result.text == "hello"
        assert result.backend == BackendRole.PRIMARY
        assert result.attempts == 1
        assert len(primary.calls) == 1

    @pytest.mark.asyncio
    async def test_transient_error_retried_once_on_same_backend(self):
        """Test a rate limit is retried once before giving up on the primary."""
        outcomes = [StatusError(429, "Too Many Requests"), "recovered"]
        gateway, primary, backup = make_gateway(
            lambda s, u, j: outcomes.pop(0), lambda s, u, j: "backup"
        )

        result = await gateway.generate("system", "user")

        assert result.ok
        assert result.text == "recovered"
        assert result.backend == BackendRole.PRIMARY
        assert result.attempts == 2
        assert len(backup.calls) == 0

    @pytest.mark.asyncio
    async def test_falls_back_after_retry_exhausted(self):
        """Test the backup serves the request when the primary keeps failing."""
        gateway, primary, backup = make_gateway(
            lambda s, u, j: StatusError(503, "overloaded"), lambda s, u, j: "from backup"
        )

        result = await gateway.generate("system", "user")

        assert result.ok
        assert result.text == "from backup"
        assert result.backend == BackendRole.BACKUP
        assert len(primary.calls) == 2
        assert result.attempts == 3

    @pytest.mark.asyncio
    async def test_auth_failure_falls_back_without_retry(self):
        """Test auth failures skip the retry but still try the backup."""
        gateway, primary, backup = make_gateway(
            lambda s, u, j: StatusError(401, "invalid api key"), lambda s, u, j: "from backup"
        )

        result = await gateway.generate("system", "user")

        assert result.ok
        assert len(primary.calls) == 1
        assert len(backup.calls) == 1

    @pytest.mark.asyncio
    async def test_content_rejection_neither_retried_nor_rerouted(self):
        """Test a policy rejection is returned straight away."""
        gateway, primary, backup = make_gateway(
            lambda s, u, j: ContentRejectedError("blocked"), lambda s, u, j: "from backup"
        )

        result = await gateway.generate("system", "user")

        assert not result.ok
        assert result.error.kind == GenerationErrorKind.CONTENT_REJECTED
        assert len(primary.calls) == 1
        assert len(backup.calls) == 0

    @pytest.mark.asyncio
    async def test_all_backends_failing_returns_typed_error(self):
        """Test total failure is a result, not an exception."""
        gateway, primary, backup = make_gateway(
            lambda s, u, j: StatusError(500, "internal server error"),
            lambda s, u, j: StatusError(502, "bad gateway"),
        )

        result = await gateway.generate("system", "user")

        assert not result.ok
        assert result.error.kind == GenerationErrorKind.UPSTREAM_ERROR
        assert result.backend == BackendRole.BACKUP
        assert result.attempts == 4

    @pytest.mark.asyncio
    async def test_model_hint_prefers_backup(self):
        """Test a model hint changes which backend is tried first."""
        gateway, primary, backup = make_gateway(lambda s, u, j: "primary", lambda s, u, j: "backup")

        result = await gateway.generate("system", "user", GenerationParams(model_hint=BackendRole.BACKUP))

        assert result.text == "backup"
        assert len(primary.calls) == 0

    @pytest.mark.asyncio
    async def test_timeout_is_classified(self):
        """Test a slow backend becomes a timeout error."""
        async def slow(system, user, json_mode):
            await asyncio.sleep(1)
            return "too late"

        gateway, _, _ = make_gateway(lambda s, u, j: slow(s, u, j), transient_retries=0)

        result = await gateway.generate("system", "user", GenerationParams(timeout_seconds=0.01))

        assert not result.ok
        assert result.error.kind == GenerationErrorKind.TIMEOUT


class TestGatewayResponses:
    """Tests for response validation."""

    @pytest.mark.asyncio
    async def test_json_mode_parses_fenced_json(self):
        """Test JSON responses are extracted from a markdown fence."""
        gateway, primary, _ = make_gateway(lambda s, u, j: 'Here:\n```json\n{"title": "Pilot"}\n```')

        result = await gateway.generate("system", "user", GenerationParams(response_format="json"))

        assert result.ok
        assert result.data == {"title": "Pilot"}
        assert primary.calls[0]["json_mode"] is True

    @pytest.mark.asyncio
    async def test_unparseable_json_is_malformed(self):
        """Test prose where JSON was requested is a malformed response."""
        gateway, _, _ = make_gateway(lambda s, u, j: "I would rather write a poem.")

        result = await gateway.generate("system", "user", GenerationParams(response_format="json"))

        assert not result.ok
        assert result.error.kind == GenerationErrorKind.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_empty_response_is_malformed(self):
        """Test whitespace-only output is a malformed response."""
        gateway, _, _ = make_gateway(lambda s, u, j: "   ")

        result = await gateway.generate("system", "user")

        assert result.error.kind == GenerationErrorKind.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_sampling_parameters_forwarded(self):
        """Test temperature and max tokens reach the client."""
        gateway, primary, _ = make_gateway(lambda s, u, j: "ok")

        await gateway.generate("system", "user", GenerationParams(temperature=0.95, max_tokens=16384))

        assert primary.calls[0]["temperature"] == 0.95
        assert primary.calls[0]["max_tokens"] == 16384


class TestExtractJson:
    """Tests for extract_json."""

    def test_direct(self):
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_trailing_prose(self):
        assert extract_json('{"a": [1, 2]} That is all.') == {"a": [1, 2]}

    def test_leading_prose(self):
        assert extract_json('Sure! {"a": {"b": 2}}') == {"a": {"b": 2}}

    def test_array(self):
        assert extract_json("Result: [1, 2, 3]") == [1, 2, 3]

    def test_nothing(self):
        assert extract_json("no json here") is None
        assert extract_json("") is None


class TestClassifyException:
    """Tests for provider exception classification."""

    def test_status_codes(self):
        assert classify_exception(StatusError(401)) == GenerationErrorKind.AUTH_FAILURE
        assert classify_exception(StatusError(403)) == GenerationErrorKind.AUTH_FAILURE
        assert classify_exception(StatusError(429)) == GenerationErrorKind.RATE_LIMITED
        assert classify_exception(StatusError(504)) == GenerationErrorKind.TIMEOUT
        assert classify_exception(StatusError(503)) == GenerationErrorKind.UPSTREAM_ERROR

    def test_message_patterns(self):
        assert classify_exception(Exception("Resource exhausted: quota")) == GenerationErrorKind.RATE_LIMITED
        assert classify_exception(Exception("API key not valid")) == GenerationErrorKind.AUTH_FAILURE
        assert classify_exception(Exception("request timed out")) == GenerationErrorKind.TIMEOUT

    def test_rejection_and_unknown(self):
        assert classify_exception(ContentRejectedError("no")) == GenerationErrorKind.CONTENT_REJECTED
        assert classify_exception(Exception("???")) == GenerationErrorKind.UPSTREAM_ERROR

    def test_status_codes_in_messages_match_whole_numbers(self):
        assert classify_exception(Exception("Error code: 401 - unknown key")) == GenerationErrorKind.AUTH_FAILURE
        assert classify_exception(Exception("HTTP 429 from provider")) == GenerationErrorKind.RATE_LIMITED
        assert classify_exception(
            Exception("maximum context of 4010 tokens exceeded")
        ) == GenerationErrorKind.UPSTREAM_ERROR
        assert classify_exception(
            Exception("prompt uses 14290 tokens, reduce the length")
        ) == GenerationErrorKind.UPSTREAM_ERROR
