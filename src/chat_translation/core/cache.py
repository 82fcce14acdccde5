"""Redis-backed cache of translation responses."""

import hashlib
import logging
from typing import Any, Optional

from pydantic import ValidationError
from redis.exceptions import RedisError

from chat_translation.providers.base import AUTO_DETECT, TranslateRequest, TranslateResponse

logger = logging.getLogger(__name__)

CACHE_PREFIX = "translation:"


def build_cache_key(request: TranslateRequest) -> str:
    """
    Build a deterministic cache key for a request.

    The key is a SHA-256 over text, normalized source language, targets
    sorted by language then deployment, and tone. Target order does not
    change the key. The text itself never appears in the key.

    Args:
        request: The translation request

    Returns:
        Cache key with the ``translation:`` prefix
    """
    source = (request.source_language or AUTO_DETECT).strip().lower()
    parts = [request.text, "|", source, "|"]

    sorted_targets = sorted(
        request.targets,
        key=lambda t: (t.language.lower(), t.deployment_name or ""),
    )
    for target in sorted_targets:
        parts.append(f"{target.language.lower()}:{target.deployment_name or 'default'};")

    if request.tone:
        parts.append(f"|{request.tone}")

    digest = hashlib.sha256("".join(parts).encode("utf-8")).hexdigest()
    return f"{CACHE_PREFIX}{digest}"


class TranslationCache:
    """
    Best-effort response cache.

    Any Redis or decoding problem is logged and treated as a miss; the
    cache never fails a translation.
    """

    def __init__(self, redis: Optional[Any], ttl_seconds: int):
        """
        Initialize the cache.

        Args:
            redis: redis.asyncio client (None disables caching)
            ttl_seconds: Entry lifetime; 0 disables caching
        """
        self._redis = redis
        self.ttl_seconds = ttl_seconds

    @property
    def enabled(self) -> bool:
        return self._redis is not None and self.ttl_seconds > 0

    async def get(self, request: TranslateRequest) -> Optional[TranslateResponse]:
        """Return the cached response tagged ``from_cache=True``, or None."""
        if not self.enabled:
            return None

        try:
            cached = await self._redis.get(build_cache_key(request))
        except RedisError as e:
            logger.warning(f"Failed to read translation cache (non-fatal): {type(e).__name__}")
            return None

        if not cached:
            return None

        try:
            response = TranslateResponse.model_validate_json(cached)
        except ValidationError:
            logger.warning("Discarding unreadable translation cache entry")
            return None

        return response.model_copy(update={"from_cache": True})

    async def set(self, request: TranslateRequest, response: TranslateResponse) -> None:
        """Store a provider response for ``ttl_seconds``."""
        if not self.enabled:
            return

        payload = response.model_copy(update={"from_cache": False}).model_dump_json(by_alias=True)
        try:
            await self._redis.set(build_cache_key(request), payload, ex=self.ttl_seconds)
            logger.debug(f"Cached translation result for {self.ttl_seconds}s")
        except RedisError as e:
            logger.warning(f"Failed to cache translation result (non-fatal): {type(e).__name__}")
