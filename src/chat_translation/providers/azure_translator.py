"""Azure AI Translator (text translation REST API) provider."""

import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError, model_serializer

from chat_translation.config import Settings, get_settings
from chat_translation.providers.base import (
    AUTO_DETECT,
    AuthenticationError,
    ProviderNetworkError,
    ProviderTimeoutError,
    RateLimitError,
    TranslateRequest,
    TranslateResponse,
    Translation,
    TranslationConfigurationError,
    TranslationProvider,
    TranslationProviderError,
    TranslationServiceError,
)

logger = logging.getLogger(__name__)

TRANSLATE_PATH = "/translator/text/translate"
LANGUAGES_PATH = "/translator/text/languages"


# API payloads (match the 2025-10-01-preview request/response shapes)


class TranslateApiTarget(BaseModel):
    language: str
    deployment_name: Optional[str] = Field(default=None, serialization_alias="deploymentName")
    tone: Optional[str] = None


class TranslateApiInput(BaseModel):
    text: str
    language: Optional[str] = None
    targets: list[TranslateApiTarget]

    @model_serializer(mode="wrap")
    def _omit_auto_detect(self, handler: Any) -> dict[str, Any]:
        # The API auto-detects when "language" is absent; it rejects the sentinel.
        data = handler(self)
        language = data.get("language")
        if language is None or str(language).lower() == AUTO_DETECT:
            data.pop("language", None)
        return data


class TranslateApiRequest(BaseModel):
    inputs: list[TranslateApiInput]


class DetectedLanguage(BaseModel):
    language: str = ""
    score: float = 0.0


class TranslateApiValue(BaseModel):
    detected_language: Optional[DetectedLanguage] = Field(default=None, alias="detectedLanguage")
    translations: list[Translation] = Field(default_factory=list)


class TranslateApiResponse(BaseModel):
    value: list[TranslateApiValue] = Field(default_factory=list)


class AzureTranslatorProvider(TranslationProvider):
    """Translation provider using the Azure AI Translator REST API."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the Azure translator provider.

        Args:
            settings: Optional settings instance. Uses global settings if not provided.
            client: Optional preconfigured HTTP client (tests inject a mock transport)
        """
        self.settings = settings or get_settings()
        self._client = client

    @property
    def provider_name(self) -> str:
        """Return the name of this provider."""
        return "azure-translator"

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.settings.translator_endpoint.rstrip("/"),
                headers=self.settings.get_translator_headers(),
                timeout=httpx.Timeout(self.settings.translator_request_timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def health_check(self) -> bool:
        """Check that the translator is configured and reachable."""
        if not self.settings.translator_configured:
            return False

        try:
            response = await self.client.get(
                LANGUAGES_PATH,
                params={"api-version": self.settings.translator_api_version},
                timeout=5.0,
            )
            return response.status_code < 500
        except httpx.HTTPError as e:
            logger.warning(f"Translator health check failed: {type(e).__name__}")
            return False

    def build_payload(self, request: TranslateRequest) -> dict[str, Any]:
        """
        Build the JSON body for a translate call.

        The source language is left out entirely when it is the auto-detect
        sentinel.

        Args:
            request: The translation request

        Returns:
            Request body as a dictionary
        """
        api_request = TranslateApiRequest(
            inputs=[
                TranslateApiInput(
                    text=request.text,
                    language=request.source_language,
                    targets=[
                        TranslateApiTarget(
                            language=target.language,
                            deployment_name=target.deployment_name or self.settings.translator_deployment_name,
                            tone=request.tone,
                        )
                        for target in request.targets
                    ],
                )
            ]
        )
        return api_request.model_dump(by_alias=True, exclude_none=True)

    async def translate(self, request: TranslateRequest) -> TranslateResponse:
        """
        Translate text using Azure AI Translator.

        Args:
            request: The translation request

        Returns:
            TranslateResponse with translations for each target

        Raises:
            TranslationConfigurationError: If endpoint or key is missing
            TranslationProviderError: On translation failure
        """
        if not self.settings.translator_endpoint:
            logger.error("Translation endpoint is not configured")
            raise TranslationConfigurationError("Translation endpoint is not configured")

        if not self.settings.translator_subscription_key:
            logger.error("Translation subscription key is not configured")
            raise TranslationConfigurationError("Translation subscription key is not configured")

        payload = self.build_payload(request)

        # Never log request text
        logger.debug(
            f"Translating to {len(request.targets)} languages "
            f"(source: {request.source_language or AUTO_DETECT})"
        )

        try:
            response = await self.client.post(
                TRANSLATE_PATH,
                params={"api-version": self.settings.translator_api_version},
                json=payload,
            )
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(
                f"Request timed out after {self.settings.translator_request_timeout}s",
                provider=self.provider_name,
            ) from e
        except httpx.RequestError as e:
            raise ProviderNetworkError(
                f"Network error: {type(e).__name__}",
                provider=self.provider_name,
            ) from e

        return self._process_response(response)

    def _process_response(self, response: httpx.Response) -> TranslateResponse:
        """
        Process the translator API response.

        Args:
            response: HTTP response from the translator

        Returns:
            TranslateResponse with parsed translations

        Raises:
            Various TranslationProviderError subclasses on failure
        """
        status_code = response.status_code

        if status_code == 401:
            raise AuthenticationError(
                "Invalid translator subscription key",
                provider=self.provider_name,
            )
        elif status_code == 429:
            retry_after = response.headers.get("retry-after")
            try:
                retry_seconds = float(retry_after) if retry_after else None
            except ValueError:
                retry_seconds = None
            raise RateLimitError(
                "Translator rate limit exceeded",
                provider=self.provider_name,
                retry_after=retry_seconds,
            )
        elif status_code >= 500:
            logger.error(f"Translator API returned server error {status_code}")
            raise TranslationProviderError(
                f"Translator server error: {status_code}",
                provider=self.provider_name,
                retryable=True,
                status_code=status_code,
            )
        elif status_code >= 400:
            error_msg = _extract_error_message(response)
            logger.error(f"Translator API returned error status {status_code}: {error_msg}")
            raise TranslationProviderError(
                f"Translator API error: {error_msg}",
                provider=self.provider_name,
                retryable=False,
                status_code=status_code,
            )

        try:
            api_response = TranslateApiResponse.model_validate_json(response.content)
        except ValidationError as e:
            logger.error(f"Translator API returned an unparseable body ({e.error_count()} errors)")
            raise TranslationServiceError("Translation API returned empty response") from e

        if not api_response.value:
            logger.error("Translator API returned empty response")
            raise TranslationServiceError("Translation API returned empty response")

        result = api_response.value[0]
        detected = result.detected_language

        logger.info(
            f"Translation completed: {len(result.translations)} translations, "
            f"detected language: {detected.language if detected else 'none'} "
            f"(score: {detected.score if detected else 0.0:.2f})"
        )

        return TranslateResponse(
            translations=result.translations,
            detected_language=detected.language if detected else None,
            detected_language_score=detected.score if detected else 0.0,
            from_cache=False,
        )


def _extract_error_message(response: httpx.Response) -> str:
    # Error bodies are not guaranteed to be JSON, UTF-8 or the documented shape
    try:
        error_data = response.json()
    except ValueError:
        return "unknown error"

    error = error_data.get("error") if isinstance(error_data, dict) else None
    if isinstance(error, dict):
        return str(error.get("message") or error.get("code") or "unknown error")[:200]
    if isinstance(error, str) and error:
        return error[:200]
    return "unknown error"
