"""User-initiated retry of failed translations, and initial job submission."""

import logging
from typing import Iterable, Optional

from chat_translation.config import Settings, get_settings
from chat_translation.core.log_sanitizer import sanitize_for_log
from chat_translation.messages.models import TranslationStatus
from chat_translation.messages.rooms import RoomDirectory
from chat_translation.messages.store import MessageNotFoundError, MessageStore
from chat_translation.queue.job_queue import (
    JobQueueError,
    MessageTranslationJob,
    QueueUnavailableError,
    TranslationJobQueue,
    create_job,
)

logger = logging.getLogger(__name__)


class ManualRetryError(Exception):
    """Base class for manual retry rejections. Carries the HTTP status to return."""

    status_code = 400
    code = "retry_rejected"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TranslationDisabledError(ManualRetryError):
    status_code = 400
    code = "translation_disabled"

    def __init__(self):
        super().__init__("Translation is disabled")


class MessageNotFoundForRetryError(ManualRetryError):
    status_code = 404
    code = "message_not_found"

    def __init__(self, message_id: int):
        super().__init__(f"Message {message_id} not found")
        self.message_id = message_id


class NotRoomMemberError(ManualRetryError):
    status_code = 403
    code = "not_room_member"

    def __init__(self):
        super().__init__("You must be a member of the room to retry this translation")


class InvalidTranslationStateError(ManualRetryError):
    status_code = 400
    code = "invalid_translation_state"

    def __init__(self, status: TranslationStatus):
        super().__init__(f"Only failed translations can be retried (current status: {status.value})")
        self.status = status


class ManualRetryHandler:
    """Re-queues a failed message translation at the head of the queue."""

    def __init__(
        self,
        queue: TranslationJobQueue,
        store: MessageStore,
        rooms: RoomDirectory,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.queue = queue
        self.store = store
        self.rooms = rooms

    async def retry(self, message_id: int, user_name: str) -> MessageTranslationJob:
        """
        Retry a failed translation on behalf of a room member.

        The message goes back to pending with a new job id and the job is
        pushed to the head of the queue with a fresh retry budget. Does not
        wait for processing.

        Args:
            message_id: Id of the message to retry
            user_name: Caller identity

        Returns:
            The queued job

        Raises:
            TranslationDisabledError: If translation is disabled
            MessageNotFoundForRetryError: If the message does not exist
            NotRoomMemberError: If the caller is not in the message's room
            InvalidTranslationStateError: If the translation has not failed
            QueueUnavailableError: If the queue cannot accept the job
            JobQueueError: If Redis rejects the job; the message is left as it was
        """
        if not self.settings.translation_enabled:
            raise TranslationDisabledError()
        if not self.queue.enabled:
            raise QueueUnavailableError("Translation queue is not available")

        message = await self.store.get_message(message_id)
        if message is None:
            raise MessageNotFoundForRetryError(message_id)

        if not await self.rooms.is_member(user_name, message.room_name):
            logger.warning(
                f"User {sanitize_for_log(user_name)} tried to retry message {message_id} "
                f"outside room {sanitize_for_log(message.room_name)}"
            )
            raise NotRoomMemberError()

        if message.translation_status != TranslationStatus.FAILED:
            raise InvalidTranslationStateError(message.translation_status)

        job = create_job(
            message_id=message.id,
            room_name=message.room_name,
            content=message.content,
            target_languages=message.translation_targets,
            source_language=message.source_language,
            deployment_name=message.translation_deployment_name or self.settings.translator_deployment_name,
            priority=self.settings.translation_manual_retry_priority,
        )

        await self.store.update_translation_status(
            message.id,
            TranslationStatus.PENDING,
            job_id=job.job_id,
        )
        try:
            await self.queue.requeue(job, high_priority=True)
        except (QueueUnavailableError, JobQueueError):
            await self.store.restore_translation_state(message)
            logger.error(f"Manual retry of message {message_id} could not be queued; message left failed")
            raise

        logger.info(
            f"Manual retry of message {message_id} by {sanitize_for_log(user_name)} queued as {job.job_id}"
        )
        return job


class TranslationSubmitter:
    """Creates and enqueues the first translation job of a message."""

    def __init__(
        self,
        queue: TranslationJobQueue,
        store: MessageStore,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.queue = queue
        self.store = store

    async def submit(
        self,
        message_id: int,
        target_languages: Iterable[str],
        source_language: Optional[str] = None,
        deployment_name: Optional[str] = None,
    ) -> MessageTranslationJob:
        """
        Mark a message pending and enqueue its translation.

        Args:
            message_id: Id of a stored message
            target_languages: Requested language or culture codes; English is always
                added, auto and the source language are dropped
            source_language: Source language, auto-detected when omitted
            deployment_name: Optional model deployment

        Returns:
            The queued job

        Raises:
            MessageNotFoundError: If the message does not exist
            QueueUnavailableError: If the queue cannot accept the job
            JobQueueError: If Redis rejects the job; the message is left as it was
        """
        if not self.queue.enabled:
            raise QueueUnavailableError("Translation queue is not available")

        message = await self.store.get_message(message_id)
        if message is None:
            raise MessageNotFoundError(message_id)

        source = source_language or message.source_language
        deployment = deployment_name or self.settings.translator_deployment_name

        job = create_job(
            message_id=message.id,
            room_name=message.room_name,
            content=message.content,
            target_languages=target_languages,
            source_language=source,
            deployment_name=deployment,
        )

        await self.store.update_translation_status(
            message.id,
            TranslationStatus.PENDING,
            job_id=job.job_id,
            translation_targets=job.target_languages,
            deployment_name=deployment,
        )
        try:
            await self.queue.enqueue(job)
        except (QueueUnavailableError, JobQueueError):
            await self.store.restore_translation_state(message)
            raise
        return job
