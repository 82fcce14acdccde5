"""Redis-backed queue of message translation jobs."""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from redis.exceptions import RedisError

from chat_translation.config import Settings, get_settings
from chat_translation.providers.base import AUTO_DETECT, REQUIRED_TARGET_LANGUAGE

logger = logging.getLogger(__name__)


class MessageTranslationJob(BaseModel):
    """
    A unit of translation work for one chat message.

    Jobs are immutable; a retry is a new job produced by ``next_retry``.
    Serialized with camelCase keys.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    job_id: str = Field(alias="jobId")
    message_id: int = Field(alias="messageId")
    room_name: str = Field(alias="roomName")
    content: str
    source_language: str = Field(default=AUTO_DETECT, alias="sourceLanguage")
    target_languages: list[str] = Field(alias="targetLanguages", min_length=1)
    deployment_name: Optional[str] = Field(default=None, alias="deploymentName")
    created_at: datetime = Field(alias="createdAt")
    priority: int = 0
    retry_count: int = Field(default=0, alias="retryCount", ge=0)
    not_before: Optional[datetime] = Field(default=None, alias="notBefore")

    def next_retry(self, delay_seconds: float = 0) -> "MessageTranslationJob":
        """
        Build the job for the next attempt.

        Args:
            delay_seconds: Base delay; the attempt becomes due after
                ``delay_seconds * new retry count``

        Returns:
            Copy with ``retry_count`` incremented
        """
        retry_count = self.retry_count + 1
        not_before = None
        if delay_seconds > 0:
            not_before = _utcnow() + timedelta(seconds=delay_seconds * retry_count)
        return self.model_copy(update={"retry_count": retry_count, "not_before": not_before})

    def is_due(self, now: Optional[datetime] = None) -> bool:
        """Whether the job may be processed at ``now``."""
        if self.not_before is None:
            return True
        return (now or _utcnow()) >= self.not_before

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, data: str) -> "MessageTranslationJob":
        return cls.model_validate_json(data)


def normalize_language_code(value: Optional[str], allow_auto: bool = False) -> Optional[str]:
    """
    Reduce a language or culture code to a lower-case language code.

    ``pl``, ``PL``, ``pl-PL`` and ``pl_PL`` all become ``pl``.

    Args:
        value: Code to normalize
        allow_auto: Keep the auto-detect sentinel instead of dropping it

    Returns:
        Language code, ``"auto"`` when allowed, or None for blank/auto input
    """
    if value is None or not value.strip():
        return None

    code = value.strip().lower()
    if code == AUTO_DETECT:
        return AUTO_DETECT if allow_auto else None

    language = code.replace("_", "-").split("-", 1)[0].strip()
    return language or None


def normalize_target_languages(
    languages: Iterable[str],
    source_language: Optional[str] = None,
) -> list[str]:
    """
    Normalize and de-duplicate target languages, English first.

    English is always present. ``auto`` is dropped, and so is an explicit
    source language, since translating into it would be a no-op.

    Args:
        languages: Requested language or culture codes
        source_language: Source language of the text, if known

    Returns:
        Target language codes
    """
    source = normalize_language_code(source_language)
    normalized: list[str] = []
    for language in languages or []:
        code = normalize_language_code(language)
        if code and code != source and code not in normalized:
            normalized.append(code)

    if REQUIRED_TARGET_LANGUAGE in normalized:
        normalized.remove(REQUIRED_TARGET_LANGUAGE)
    return [REQUIRED_TARGET_LANGUAGE] + normalized


def create_job(
    message_id: int,
    room_name: str,
    content: str,
    target_languages: Iterable[str],
    source_language: Optional[str] = None,
    deployment_name: Optional[str] = None,
    priority: int = 0,
) -> MessageTranslationJob:
    """
    Build a new job with a fresh id and normalized languages.

    Returns:
        Job with ``retry_count`` 0
    """
    created_at = _utcnow()
    millis = int(created_at.timestamp() * 1000)
    source = normalize_language_code(source_language, allow_auto=True) or AUTO_DETECT
    return MessageTranslationJob(
        job_id=f"transjob:{message_id}:{millis}:{secrets.token_hex(4)}",
        message_id=message_id,
        room_name=room_name,
        content=content,
        source_language=source,
        target_languages=normalize_target_languages(target_languages, source),
        deployment_name=deployment_name,
        created_at=created_at,
        priority=priority,
    )


class QueueUnavailableError(RuntimeError):
    """Raised when the queue is disabled or has no store connection."""


class JobQueueError(Exception):
    """Raised when the queue store rejects an operation."""


class TranslationJobQueue:
    """
    FIFO job queue on a Redis list.

    Normal jobs go to the tail, high-priority jobs to the head, and workers
    pop from the head. LPOP is atomic, so any number of worker processes can
    share the list without receiving the same job twice.
    """

    def __init__(self, redis: Optional[Any], settings: Optional[Settings] = None):
        """
        Initialize the queue.

        Args:
            redis: redis.asyncio client (``decode_responses=True``), or None
            settings: Optional settings instance
        """
        self.settings = settings or get_settings()
        self._redis = redis
        self.queue_name = self.settings.translation_queue_name

    @property
    def enabled(self) -> bool:
        return self.settings.translation_enabled and self._redis is not None

    def _require_enabled(self) -> None:
        if not self.settings.translation_enabled:
            raise QueueUnavailableError("Translation is disabled")
        if self._redis is None:
            raise QueueUnavailableError("Translation queue has no Redis connection")

    async def enqueue(self, job: MessageTranslationJob) -> str:
        """
        Append a job to the tail of the queue.

        Returns:
            The job id

        Raises:
            QueueUnavailableError: If the queue is disabled
            JobQueueError: If Redis rejects the push
        """
        self._require_enabled()

        try:
            length = await self._redis.rpush(self.queue_name, job.to_json())
        except RedisError as e:
            logger.error(f"Failed to enqueue job {job.job_id}: {type(e).__name__}")
            raise JobQueueError(f"Failed to enqueue job {job.job_id}") from e

        logger.info(
            f"Enqueued job {job.job_id} for message {job.message_id} "
            f"({len(job.target_languages)} languages, queue length {length})"
        )
        return job.job_id

    async def dequeue(self) -> Optional[MessageTranslationJob]:
        """
        Pop the job at the head of the queue.

        Returns:
            The job, or None when the queue is empty, disabled, or the
            payload cannot be decoded (the payload is dropped)

        Raises:
            JobQueueError: If Redis rejects the pop
        """
        if not self.enabled:
            return None

        try:
            payload = await self._redis.lpop(self.queue_name)
        except RedisError as e:
            raise JobQueueError("Failed to dequeue translation job") from e

        if payload is None:
            return None

        try:
            return MessageTranslationJob.from_json(payload)
        except ValidationError as e:
            logger.error(f"Dropping undecodable translation job payload ({e.error_count()} errors)")
            return None

    async def requeue(self, job: MessageTranslationJob, high_priority: bool = False) -> None:
        """
        Put a job back on the queue.

        Args:
            job: The job to requeue
            high_priority: Push to the head so it is the next job dequeued

        Raises:
            QueueUnavailableError: If the queue is disabled
            JobQueueError: If Redis rejects the push
        """
        self._require_enabled()

        try:
            if high_priority:
                await self._redis.lpush(self.queue_name, job.to_json())
            else:
                await self._redis.rpush(self.queue_name, job.to_json())
        except RedisError as e:
            logger.error(f"Failed to requeue job {job.job_id}: {type(e).__name__}")
            raise JobQueueError(f"Failed to requeue job {job.job_id}") from e

        logger.info(
            f"Requeued job {job.job_id} (retry {job.retry_count}, "
            f"{'head' if high_priority else 'tail'} of queue)"
        )

    async def queue_length(self) -> int:
        """Number of jobs waiting. Returns 0 when disabled or on error."""
        if not self.enabled:
            return 0

        try:
            return await self._redis.llen(self.queue_name)
        except RedisError as e:
            logger.warning(f"Failed to read translation queue length: {type(e).__name__}")
            return 0

    async def remove_job(self, job_id: str) -> bool:
        """
        Remove a waiting job by id.

        Returns:
            True if a job was removed, False otherwise
        """
        if not self.enabled:
            return False

        try:
            payloads = await self._redis.lrange(self.queue_name, 0, -1)
            for payload in payloads:
                try:
                    job = MessageTranslationJob.from_json(payload)
                except ValidationError:
                    continue
                if job.job_id == job_id:
                    removed = await self._redis.lrem(self.queue_name, 1, payload)
                    if removed:
                        logger.info(f"Removed job {job_id} from translation queue")
                    return removed > 0
        except RedisError as e:
            logger.warning(f"Failed to remove job from translation queue: {type(e).__name__}")
            return False

        return False


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)
