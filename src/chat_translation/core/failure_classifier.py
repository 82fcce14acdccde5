"""Classifies translation failures into stable categories and codes."""

import asyncio
from dataclasses import dataclass
from typing import Iterator, Optional

import httpx

from chat_translation.messages.models import TranslationFailureCategory, TranslationFailureCode
from chat_translation.providers.base import (
    ProviderNetworkError,
    ProviderTimeoutError,
    TranslationProviderError,
    TranslationServiceError,
)

Category = TranslationFailureCategory
Code = TranslationFailureCode


@dataclass(frozen=True)
class TranslationFailureInfo:
    """Classified failure. ``safe_message`` is the only text shown to users."""

    category: TranslationFailureCategory
    code: TranslationFailureCode
    safe_message: str
    is_retryable: bool


# (category, code, safe message, retryable) by provider HTTP status
_STATUS_FAILURES: dict[int, TranslationFailureInfo] = {
    401: TranslationFailureInfo(Category.API, Code.UNAUTHORIZED, "Translation failed (unauthorized).", False),
    403: TranslationFailureInfo(Category.API, Code.FORBIDDEN, "Translation failed (forbidden).", False),
    404: TranslationFailureInfo(Category.API, Code.NOT_FOUND, "Translation failed (service endpoint not found).", False),
    429: TranslationFailureInfo(Category.API, Code.RATE_LIMITED, "Translation failed (rate limited).", True),
    408: TranslationFailureInfo(Category.API, Code.TIMEOUT, "Translation failed (request timeout).", True),
    504: TranslationFailureInfo(Category.API, Code.TIMEOUT, "Translation failed (gateway timeout).", True),
    400: TranslationFailureInfo(Category.CONTENT, Code.BAD_REQUEST, "Translation failed (invalid content/request).", False),
    503: TranslationFailureInfo(Category.API, Code.SERVICE_UNAVAILABLE, "Translation failed (service unavailable).", True),
    502: TranslationFailureInfo(Category.API, Code.SERVICE_UNAVAILABLE, "Translation failed (bad gateway).", True),
    500: TranslationFailureInfo(Category.API, Code.SERVICE_UNAVAILABLE, "Translation failed (service error).", True),
}

_INVALID_TARGETS = TranslationFailureInfo(
    Category.CONFIGURATION, Code.INVALID_TARGETS, "Translation failed due to invalid translation request.", False
)
_TIMEOUT = TranslationFailureInfo(Category.API, Code.TIMEOUT, "Translation failed (request timeout).", True)
_NETWORK_ERROR = TranslationFailureInfo(Category.API, Code.NETWORK_ERROR, "Translation failed (network error).", True)
_UNKNOWN = TranslationFailureInfo(Category.UNKNOWN, Code.UNKNOWN, "Translation failed.", False)

# Matched case-insensitively against TranslationServiceError messages, in order
_SERVICE_MESSAGE_FAILURES: list[tuple[str, TranslationFailureInfo]] = [
    ("disabled", TranslationFailureInfo(Category.CONFIGURATION, Code.DISABLED, "Translation is disabled.", False)),
    (
        "endpoint is not configured",
        TranslationFailureInfo(
            Category.CONFIGURATION, Code.MISSING_ENDPOINT, "Translation is not configured (missing endpoint).", False
        ),
    ),
    (
        "subscription key is not configured",
        TranslationFailureInfo(
            Category.CONFIGURATION,
            Code.MISSING_SUBSCRIPTION_KEY,
            "Translation is not configured (missing subscription key).",
            False,
        ),
    ),
    (
        "returned empty response",
        TranslationFailureInfo(
            Category.API, Code.EMPTY_RESPONSE, "Translation failed (empty response from service).", True
        ),
    ),
    ("timeout", _TIMEOUT),
]

_TIMEOUT_TYPES = (TimeoutError, asyncio.TimeoutError, httpx.TimeoutException, ProviderTimeoutError)


def classify(error: BaseException) -> TranslationFailureInfo:
    """
    Map a raised error to a failure category, code and retry verdict.

    The error's cause/context chain is searched so wrapped timeouts and HTTP
    errors are still recognised. Unrecognised errors are not retryable.

    Args:
        error: The exception raised while translating

    Returns:
        TranslationFailureInfo for the error
    """
    # Decoding errors are ValueErrors too but say nothing about the targets
    if isinstance(error, ValueError) and not isinstance(error, UnicodeError):
        return _INVALID_TARGETS

    if isinstance(error, TranslationServiceError):
        text = str(error).lower()
        for needle, info in _SERVICE_MESSAGE_FAILURES:
            if needle in text:
                return info

    chain = list(_walk_chain(error))

    if any(isinstance(e, _TIMEOUT_TYPES) for e in chain):
        return _TIMEOUT

    status_code = _find_status_code(chain)
    if status_code is not None:
        known = _STATUS_FAILURES.get(status_code)
        if known is not None:
            return known
        return TranslationFailureInfo(
            Category.API,
            Code.HTTP_ERROR,
            f"Translation failed (HTTP {status_code}).",
            status_code >= 500,
        )

    if any(isinstance(e, (httpx.TransportError, ProviderNetworkError)) for e in chain):
        return _NETWORK_ERROR

    return _UNKNOWN


def _walk_chain(error: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def _find_status_code(chain: list[BaseException]) -> Optional[int]:
    for error in chain:
        if isinstance(error, TranslationProviderError) and error.status_code is not None:
            return error.status_code
        if isinstance(error, httpx.HTTPStatusError):
            return error.response.status_code
    return None
