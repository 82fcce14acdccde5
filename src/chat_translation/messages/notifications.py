"""Room-scoped broadcast of translation outcomes."""

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional

from redis.exceptions import RedisError

from chat_translation.core.failure_classifier import TranslationFailureInfo
from chat_translation.core.log_sanitizer import sanitize_for_log

logger = logging.getLogger(__name__)

TRANSLATION_COMPLETED_EVENT = "translationCompleted"
TRANSLATION_FAILED_EVENT = "translationFailed"


class RoomNotifier(ABC):
    """Delivers events to every client connected to a room."""

    @abstractmethod
    async def broadcast(self, room_name: str, event: str, payload: dict[str, Any]) -> None:
        pass

    async def translation_completed(
        self,
        room_name: str,
        message_id: int,
        translations: dict[str, str],
        detected_language: Optional[str] = None,
    ) -> None:
        """Broadcast the translation map of a completed message."""
        await self.broadcast(
            room_name,
            TRANSLATION_COMPLETED_EVENT,
            {
                "messageId": message_id,
                "translations": translations,
                "detectedLanguage": detected_language,
                "timestamp": _utc_timestamp(),
            },
        )

    async def translation_failed(
        self,
        room_name: str,
        message_id: int,
        failure: TranslationFailureInfo,
    ) -> None:
        """Broadcast a terminal failure. Only safe, classified fields are sent."""
        await self.broadcast(
            room_name,
            TRANSLATION_FAILED_EVENT,
            {
                "messageId": message_id,
                "failureCategory": failure.category.value,
                "failureCode": failure.code.value,
                "safeMessage": failure.safe_message,
                "timestamp": _utc_timestamp(),
            },
        )


class RedisRoomNotifier(RoomNotifier):
    """
    Publishes room events on Redis pub/sub.

    The real-time transport subscribes to ``{prefix}{room}`` channels and
    forwards the events to connected clients.
    """

    def __init__(self, redis: Optional[Any], channel_prefix: str = "chat:room:"):
        self._redis = redis
        self._channel_prefix = channel_prefix

    async def broadcast(self, room_name: str, event: str, payload: dict[str, Any]) -> None:
        if self._redis is None:
            logger.debug(f"No Redis connection, dropping {event} for room {sanitize_for_log(room_name)}")
            return

        channel = f"{self._channel_prefix}{room_name}"
        data = json.dumps({"event": event, "room": room_name, "payload": payload}, ensure_ascii=False)
        try:
            receivers = await self._redis.publish(channel, data)
        except RedisError as e:
            # The stored message status is already final; clients pick it up on reload
            logger.warning(f"Failed to publish {event} to room {sanitize_for_log(room_name)}: {type(e).__name__}")
            return
        logger.debug(f"Published {event} to room {sanitize_for_log(room_name)} ({receivers} receivers)")


class InMemoryRoomNotifier(RoomNotifier):
    """Keeps broadcast events in a list. Useful for local runs and tests."""

    def __init__(self):
        self.events: list[dict[str, Any]] = []

    async def broadcast(self, room_name: str, event: str, payload: dict[str, Any]) -> None:
        self.events.append({"room": room_name, "event": event, "payload": payload})

    def events_named(self, event: str) -> list[dict[str, Any]]:
        return [e for e in self.events if e["event"] == event]


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()
