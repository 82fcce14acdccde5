"""Translation client: request validation, response cache and provider call."""

import logging
from typing import Optional

from chat_translation.config import Settings, get_settings
from chat_translation.core.cache import TranslationCache
from chat_translation.providers.azure_translator import AzureTranslatorProvider
from chat_translation.providers.base import (
    AUTO_DETECT,
    REQUIRED_TARGET_LANGUAGE,
    InvalidTargetsError,
    TranslateRequest,
    TranslateResponse,
    TranslationProvider,
    TranslationServiceError,
)

logger = logging.getLogger(__name__)


def validate_targets(request: TranslateRequest) -> None:
    """
    Check a request's targets before anything is sent to the provider.

    Raises:
        InvalidTargetsError: If there are no targets, a target is the
            auto-detect sentinel, or English is missing
    """
    if not request.targets:
        raise InvalidTargetsError("At least one target language is required")

    languages = [t.language.strip().lower() for t in request.targets]

    if AUTO_DETECT in languages:
        raise InvalidTargetsError(f"'{AUTO_DETECT}' is not a valid target language")

    if REQUIRED_TARGET_LANGUAGE not in languages:
        raise InvalidTargetsError(
            f"English ({REQUIRED_TARGET_LANGUAGE}) must always be included in translation targets"
        )


class TranslationClient:
    """Validates requests, serves cached responses and calls the provider."""

    def __init__(
        self,
        provider: Optional[TranslationProvider] = None,
        cache: Optional[TranslationCache] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the translation client.

        Args:
            provider: Optional translation provider. Creates the Azure provider by default.
            cache: Optional response cache. No caching when omitted.
            settings: Optional settings instance.
        """
        self.settings = settings or get_settings()
        self._provider = provider
        self.cache = cache or TranslationCache(None, 0)

    @property
    def provider(self) -> TranslationProvider:
        """Get or create the translation provider."""
        if self._provider is None:
            self._provider = AzureTranslatorProvider(self.settings)
        return self._provider

    async def close(self) -> None:
        """Clean up resources."""
        if self._provider is not None:
            await self._provider.close()

    async def translate(self, request: TranslateRequest) -> TranslateResponse:
        """
        Translate a request, using the cache when possible.

        Provider errors are propagated unchanged; callers decide whether to
        retry.

        Args:
            request: The translation request

        Returns:
            TranslateResponse, with ``from_cache`` set when served from cache

        Raises:
            TranslationServiceError: If translation is disabled
            InvalidTargetsError: If the targets are invalid
        """
        if not self.settings.translation_enabled:
            logger.debug("Translation service is disabled")
            raise TranslationServiceError("Translation service is disabled")

        validate_targets(request)

        if not request.force_refresh:
            cached = await self.cache.get(request)
            if cached is not None:
                logger.debug(
                    f"Translation cache hit for {len(request.targets)} languages "
                    f"(source: {request.source_language or AUTO_DETECT})"
                )
                return cached

        logger.debug(
            f"Translating to {len(request.targets)} languages "
            f"(source: {request.source_language or AUTO_DETECT}, force_refresh: {request.force_refresh})"
        )

        response = await self.provider.translate(request)
        response = response.model_copy(update={"from_cache": False})

        await self.cache.set(request, response)

        return response

    async def health_check(self) -> bool:
        """Check if the translator is ready to process requests."""
        return await self.provider.health_check()
