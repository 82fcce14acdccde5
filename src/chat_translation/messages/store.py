"""Message store used by the worker and the manual retry path."""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from chat_translation.messages.models import (
    Message,
    TranslationFailureCategory,
    TranslationFailureCode,
    TranslationStatus,
    is_allowed_transition,
)

logger = logging.getLogger(__name__)


class MessageNotFoundError(LookupError):
    """Raised when a message id does not resolve to a stored message."""

    def __init__(self, message_id: int):
        super().__init__(f"Message {message_id} not found")
        self.message_id = message_id


class MessageStore(ABC):
    """Persistence of the translation fields of chat messages."""

    @abstractmethod
    async def get_message(self, message_id: int) -> Optional[Message]:
        """
        Load a message by id.

        Returns:
            The message, or None if it does not exist
        """
        pass

    @abstractmethod
    async def update_translation_status(
        self,
        message_id: int,
        status: TranslationStatus,
        translations: Optional[dict[str, str]] = None,
        job_id: Optional[str] = None,
        completed_at: Optional[datetime] = None,
        failed_at: Optional[datetime] = None,
        failure_category: Optional[TranslationFailureCategory] = None,
        failure_code: Optional[TranslationFailureCode] = None,
        failure_message: Optional[str] = None,
        translation_targets: Optional[list[str]] = None,
        deployment_name: Optional[str] = None,
    ) -> Message:
        """
        Write a translation status change.

        Targets and deployment are only written when given.
        Failure fields are only kept for FAILED; every other status clears
        them. Writes are last-write-wins.

        Returns:
            The updated message

        Raises:
            MessageNotFoundError: If the message does not exist
        """
        pass

    @abstractmethod
    async def restore_translation_state(self, snapshot: Message) -> Message:
        """
        Put a message's translation fields back to an earlier snapshot.

        Used to undo a status write whose follow-up enqueue failed.

        Raises:
            MessageNotFoundError: If the message does not exist
        """
        pass


class InMemoryMessageStore(MessageStore):
    """Dictionary-backed message store for development and tests."""

    def __init__(self, messages: Optional[list[Message]] = None):
        self.messages: dict[int, Message] = {m.id: m for m in messages or []}
        self._lock = asyncio.Lock()

    def add(self, message: Message) -> Message:
        """Register a message created elsewhere in the application."""
        self.messages[message.id] = message
        return message

    async def get_message(self, message_id: int) -> Optional[Message]:
        return self.messages.get(message_id)

    async def update_translation_status(
        self,
        message_id: int,
        status: TranslationStatus,
        translations: Optional[dict[str, str]] = None,
        job_id: Optional[str] = None,
        completed_at: Optional[datetime] = None,
        failed_at: Optional[datetime] = None,
        failure_category: Optional[TranslationFailureCategory] = None,
        failure_code: Optional[TranslationFailureCode] = None,
        failure_message: Optional[str] = None,
        translation_targets: Optional[list[str]] = None,
        deployment_name: Optional[str] = None,
    ) -> Message:
        async with self._lock:
            message = self.messages.get(message_id)
            if message is None:
                raise MessageNotFoundError(message_id)

            if not is_allowed_transition(message.translation_status, status):
                logger.warning(
                    f"Message {message_id}: unexpected translation status change "
                    f"{message.translation_status.value} -> {status.value}, applying anyway"
                )

            update = {
                "translation_status": status,
                "translations": dict(translations or {}),
                "translation_job_id": job_id,
                "translation_completed_at": completed_at,
                "translation_failed_at": failed_at,
            }
            if translation_targets is not None:
                update["translation_targets"] = list(translation_targets)
            if deployment_name is not None:
                update["translation_deployment_name"] = deployment_name

            if status == TranslationStatus.FAILED:
                update["translation_failure_category"] = failure_category or TranslationFailureCategory.UNKNOWN
                update["translation_failure_code"] = failure_code or TranslationFailureCode.UNKNOWN
                update["translation_failure_message"] = failure_message
            else:
                update["translation_failure_category"] = TranslationFailureCategory.UNKNOWN
                update["translation_failure_code"] = TranslationFailureCode.UNKNOWN
                update["translation_failure_message"] = None

            updated = message.model_copy(update=update)
            self.messages[message_id] = updated
            return updated

    async def restore_translation_state(self, snapshot: Message) -> Message:
        async with self._lock:
            message = self.messages.get(snapshot.id)
            if message is None:
                raise MessageNotFoundError(snapshot.id)

            update = {
                name: getattr(snapshot, name)
                for name in Message.model_fields
                if name.startswith("translation")
            }
            restored = message.model_copy(update=update)
            self.messages[snapshot.id] = restored
            return restored
