"""Message entity and translation status/failure enums."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class TranslationStatus(str, Enum):
    """Translation state of a chat message."""

    NONE = "none"
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class TranslationFailureCategory(str, Enum):
    """Coarse classification of translation failures."""

    UNKNOWN = "unknown"
    CONFIGURATION = "configuration"  # setup defect, never retried
    API = "api"  # service or network problem
    CONTENT = "content"  # input rejected by the provider


class TranslationFailureCode(str, Enum):
    """Specific translation failure codes."""

    UNKNOWN = "unknown"

    # Configuration / validation
    DISABLED = "disabled"
    MISSING_ENDPOINT = "missing_endpoint"
    MISSING_SUBSCRIPTION_KEY = "missing_subscription_key"
    INVALID_TARGETS = "invalid_targets"

    # API / network
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    SERVICE_UNAVAILABLE = "service_unavailable"
    NETWORK_ERROR = "network_error"
    HTTP_ERROR = "http_error"

    # Content
    BAD_REQUEST = "bad_request"
    EMPTY_RESPONSE = "empty_response"


# Status changes the pipeline produces on its own. Anything else is still
# applied (last write wins) but logged.
ALLOWED_TRANSITIONS: dict[TranslationStatus, set[TranslationStatus]] = {
    TranslationStatus.NONE: {TranslationStatus.PENDING},
    TranslationStatus.PENDING: {TranslationStatus.IN_PROGRESS},
    TranslationStatus.IN_PROGRESS: {
        TranslationStatus.IN_PROGRESS,
        TranslationStatus.COMPLETED,
        TranslationStatus.FAILED,
    },
    TranslationStatus.COMPLETED: set(),
    TranslationStatus.FAILED: {TranslationStatus.PENDING},
}


def is_allowed_transition(current: TranslationStatus, new: TranslationStatus) -> bool:
    """Check whether a status change is part of the normal job lifecycle."""
    return new in ALLOWED_TRANSITIONS.get(current, set())


class Message(BaseModel):
    """A chat message as seen by the translation pipeline."""

    id: int
    room_name: str
    content: str
    source_language: Optional[str] = None
    translation_status: TranslationStatus = TranslationStatus.NONE
    translations: dict[str, str] = Field(default_factory=dict)
    translation_targets: list[str] = Field(default_factory=list)
    translation_job_id: Optional[str] = None
    translation_deployment_name: Optional[str] = None
    translation_completed_at: Optional[datetime] = None
    translation_failed_at: Optional[datetime] = None
    translation_failure_category: TranslationFailureCategory = TranslationFailureCategory.UNKNOWN
    translation_failure_code: TranslationFailureCode = TranslationFailureCode.UNKNOWN
    translation_failure_message: Optional[str] = None
