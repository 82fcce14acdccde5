"""Abstract base class, request/response types and errors for translation providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, Field

# Source language sentinel meaning "let the provider detect it"
AUTO_DETECT = "auto"

# Every translation must include this target
REQUIRED_TARGET_LANGUAGE = "en"


@dataclass
class TranslationTarget:
    """A target language with an optional model deployment."""

    language: str
    deployment_name: Optional[str] = None


@dataclass
class TranslateRequest:
    """Text to translate into one or more target languages."""

    text: str
    targets: list[TranslationTarget]
    source_language: Optional[str] = AUTO_DETECT
    tone: Optional[str] = None  # "formal", "informal" or "neutral" (LLM deployments only)
    force_refresh: bool = False  # bypass the cache


class Translation(BaseModel):
    """A single translated text."""

    text: str
    language: str
    source_characters: Optional[int] = Field(default=None, alias="sourceCharacters")
    instruction_tokens: Optional[int] = Field(default=None, alias="instructionTokens")
    source_tokens: Optional[int] = Field(default=None, alias="sourceTokens")
    target_tokens: Optional[int] = Field(default=None, alias="targetTokens")

    model_config = {"populate_by_name": True}


class TranslateResponse(BaseModel):
    """Result of a translation request."""

    translations: list[Translation]
    detected_language: Optional[str] = Field(default=None, alias="detectedLanguage")
    detected_language_score: float = Field(default=0.0, alias="detectedLanguageScore")
    from_cache: bool = Field(default=False, alias="fromCache")

    model_config = {"populate_by_name": True}

    def as_language_map(self) -> dict[str, str]:
        """Translations keyed by language code."""
        return {t.language: t.text for t in self.translations}


class TranslationServiceError(Exception):
    """Raised for translation service state problems (disabled, empty result, ...)."""


class TranslationConfigurationError(TranslationServiceError):
    """Raised when the provider is missing required configuration."""


class InvalidTargetsError(ValueError):
    """Raised when a request's target languages cannot be translated."""


class TranslationProviderError(Exception):
    """Base exception for translation provider errors."""

    def __init__(
        self,
        message: str,
        provider: str = "unknown",
        retryable: bool = False,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.retryable = retryable
        self.status_code = status_code


class RateLimitError(TranslationProviderError):
    """Raised when rate limit is exceeded."""

    def __init__(self, message: str, provider: str = "unknown", retry_after: Optional[float] = None):
        super().__init__(message, provider, retryable=True, status_code=429)
        self.retry_after = retry_after


class AuthenticationError(TranslationProviderError):
    """Raised when authentication fails."""

    def __init__(self, message: str, provider: str = "unknown"):
        super().__init__(message, provider, retryable=False, status_code=401)


class ProviderTimeoutError(TranslationProviderError):
    """Raised when the provider does not answer in time."""

    def __init__(self, message: str, provider: str = "unknown"):
        super().__init__(message, provider, retryable=True)


class ProviderNetworkError(TranslationProviderError):
    """Raised when the provider cannot be reached. Carries no status code."""

    def __init__(self, message: str, provider: str = "unknown"):
        super().__init__(message, provider, retryable=True)


class TranslationProvider(ABC):
    """Abstract base class for translation providers."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of this provider."""
        pass

    @abstractmethod
    async def translate(self, request: TranslateRequest) -> TranslateResponse:
        """
        Translate text into every requested target language.

        Args:
            request: The translation request

        Returns:
            TranslateResponse with one translation per target

        Raises:
            TranslationProviderError: On API or transport failure
            TranslationConfigurationError: When the provider is not configured
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the provider is available and configured correctly.

        Returns:
            True if healthy, False otherwise
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Clean up resources (close HTTP connections, etc.)."""
        pass
