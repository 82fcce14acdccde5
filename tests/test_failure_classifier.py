"""Tests for translation failure classification."""

import asyncio

import httpx
import pytest

from chat_translation.core.failure_classifier import classify
from chat_translation.messages.models import TranslationFailureCategory as Category
from chat_translation.messages.models import TranslationFailureCode as Code
from chat_translation.providers.base import (
    AuthenticationError,
    InvalidTargetsError,
    ProviderNetworkError,
    ProviderTimeoutError,
    RateLimitError,
    TranslationConfigurationError,
    TranslationProviderError,
    TranslationServiceError,
)


def http_status_error(status_code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://translator.example/translator/text/translate")
    response = httpx.Response(status_code, request=request)
    return httpx.HTTPStatusError(f"HTTP {status_code}", request=request, response=response)


class TestConfigurationFailures:
    """Tests for errors caused by configuration or request validation."""

    def test_invalid_targets(self):
        info = classify(InvalidTargetsError("English (en) must always be included"))

        assert info.category == Category.CONFIGURATION
        assert info.code == Code.INVALID_TARGETS
        assert info.is_retryable is False

    def test_plain_value_error_is_invalid_targets(self):
        assert classify(ValueError("bad")).code == Code.INVALID_TARGETS

    def test_disabled(self):
        info = classify(TranslationServiceError("Translation service is disabled"))

        assert info.category == Category.CONFIGURATION
        assert info.code == Code.DISABLED
        assert info.is_retryable is False

    def test_missing_endpoint(self):
        info = classify(TranslationConfigurationError("Translation endpoint is not configured"))

        assert info.code == Code.MISSING_ENDPOINT
        assert info.is_retryable is False

    def test_missing_subscription_key(self):
        info = classify(TranslationConfigurationError("Translation subscription key is not configured"))

        assert info.code == Code.MISSING_SUBSCRIPTION_KEY
        assert info.is_retryable is False


class TestStatusCodeFailures:
    """Tests for failures carrying an HTTP status code."""

    @pytest.mark.parametrize(
        "status_code,category,code,retryable",
        [
            (401, Category.API, Code.UNAUTHORIZED, False),
            (403, Category.API, Code.FORBIDDEN, False),
            (404, Category.API, Code.NOT_FOUND, False),
            (429, Category.API, Code.RATE_LIMITED, True),
            (408, Category.API, Code.TIMEOUT, True),
            (504, Category.API, Code.TIMEOUT, True),
            (400, Category.CONTENT, Code.BAD_REQUEST, False),
            (500, Category.API, Code.SERVICE_UNAVAILABLE, True),
            (502, Category.API, Code.SERVICE_UNAVAILABLE, True),
            (503, Category.API, Code.SERVICE_UNAVAILABLE, True),
            (409, Category.API, Code.HTTP_ERROR, False),
            (507, Category.API, Code.HTTP_ERROR, True),
        ],
    )
    def test_provider_status_codes(self, status_code, category, code, retryable):
        """Test provider errors are classified by their status code."""
        info = classify(TranslationProviderError("failed", provider="test", status_code=status_code))

        assert info.category == category
        assert info.code == code
        assert info.is_retryable is retryable

    def test_rate_limit_error(self):
        info = classify(RateLimitError("slow down", retry_after=2.0))

        assert info.code == Code.RATE_LIMITED
        assert info.is_retryable is True

    def test_authentication_error(self):
        info = classify(AuthenticationError("bad key"))

        assert info.code == Code.UNAUTHORIZED
        assert info.is_retryable is False

    def test_httpx_status_error(self):
        info = classify(http_status_error(503))

        assert info.code == Code.SERVICE_UNAVAILABLE
        assert info.is_retryable is True

    def test_status_error_found_in_cause_chain(self):
        """Test a wrapped HTTP error is still recognised."""
        try:
            try:
                raise http_status_error(403)
            except httpx.HTTPStatusError as e:
                raise RuntimeError("translation pipeline failed") from e
        except RuntimeError as wrapped:
            info = classify(wrapped)

        assert info.code == Code.FORBIDDEN
        assert info.is_retryable is False


class TestTransportFailures:
    """Tests for timeouts and network errors."""

    def test_asyncio_timeout(self):
        info = classify(asyncio.TimeoutError())

        assert info.category == Category.API
        assert info.code == Code.TIMEOUT
        assert info.is_retryable is True

    def test_provider_timeout(self):
        assert classify(ProviderTimeoutError("timed out")).code == Code.TIMEOUT

    def test_timeout_found_in_context_chain(self):
        """Test a timeout raised while handling another error is recognised."""
        try:
            try:
                raise httpx.ReadTimeout("read timed out")
            except httpx.ReadTimeout:
                raise RuntimeError("wrapped")
        except RuntimeError as wrapped:
            info = classify(wrapped)

        assert info.code == Code.TIMEOUT
        assert info.is_retryable is True

    def test_network_error(self):
        info = classify(ProviderNetworkError("Network error: ConnectError"))

        assert info.code == Code.NETWORK_ERROR
        assert info.is_retryable is True

    def test_httpx_connect_error(self):
        assert classify(httpx.ConnectError("connection refused")).code == Code.NETWORK_ERROR

    def test_empty_response(self):
        info = classify(TranslationServiceError("Translation API returned empty response"))

        assert info.category == Category.API
        assert info.code == Code.EMPTY_RESPONSE
        assert info.is_retryable is True


class TestUnknownFailures:
    """Tests for errors nothing else matches."""

    def test_unknown_error_is_not_retryable(self):
        info = classify(RuntimeError("something odd"))

        assert info.category == Category.UNKNOWN
        assert info.code == Code.UNKNOWN
        assert info.is_retryable is False

    def test_decode_error_is_not_invalid_targets(self):
        """Test a stray decoding error is not mistaken for a target validation failure."""
        info = classify(UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte"))

        assert info.code == Code.UNKNOWN

    def test_safe_message_never_contains_raw_text(self):
        """Test the user-facing message is fixed text, not the exception message."""
        info = classify(RuntimeError("secret-key=abc123"))

        assert "abc123" not in info.safe_message
        assert info.safe_message == "Translation failed."
