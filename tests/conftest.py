"""Shared fixtures and an in-memory Redis stand-in."""

from typing import Optional

import pytest

from chat_translation.config import Settings
from chat_translation.messages.models import Message, TranslationStatus
from chat_translation.messages.notifications import InMemoryRoomNotifier
from chat_translation.messages.rooms import InMemoryRoomDirectory
from chat_translation.messages.store import InMemoryMessageStore
from chat_translation.providers.base import TranslateResponse, Translation


class FakeRedis:
    """
    Implements the handful of redis.asyncio commands the service uses.

    Every command is recorded in ``calls`` so tests can assert that nothing
    touched Redis.
    """

    def __init__(self):
        self.lists: dict[str, list[str]] = {}
        self.values: dict[str, str] = {}
        self.expiry: dict[str, Optional[int]] = {}
        self.published: list[tuple[str, str]] = []
        self.calls: list[str] = []

    async def rpush(self, name: str, *values: str) -> int:
        self.calls.append("rpush")
        self.lists.setdefault(name, []).extend(values)
        return len(self.lists[name])

    async def lpush(self, name: str, *values: str) -> int:
        self.calls.append("lpush")
        items = self.lists.setdefault(name, [])
        for value in values:
            items.insert(0, value)
        return len(items)

    async def lpop(self, name: str) -> Optional[str]:
        self.calls.append("lpop")
        items = self.lists.get(name)
        if not items:
            return None
        return items.pop(0)

    async def llen(self, name: str) -> int:
        self.calls.append("llen")
        return len(self.lists.get(name, []))

    async def lrange(self, name: str, start: int, end: int) -> list[str]:
        self.calls.append("lrange")
        items = self.lists.get(name, [])
        return list(items[start:] if end == -1 else items[start : end + 1])

    async def lrem(self, name: str, count: int, value: str) -> int:
        self.calls.append("lrem")
        items = self.lists.get(name, [])
        if value in items:
            items.remove(value)
            return 1
        return 0

    async def get(self, key: str) -> Optional[str]:
        self.calls.append("get")
        return self.values.get(key)

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        self.calls.append("set")
        self.values[key] = value
        self.expiry[key] = ex
        return True

    async def publish(self, channel: str, message: str) -> int:
        self.calls.append("publish")
        self.published.append((channel, message))
        return 1

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        pass


@pytest.fixture
def settings():
    """Settings tuned for fast tests."""
    return Settings(
        _env_file=None,
        redis_url="redis://localhost:6379/15",
        translation_enabled=True,
        translation_max_concurrent_jobs=5,
        translation_max_retries=3,
        translation_retry_delay_seconds=0,
        translation_dequeue_poll_seconds=0.01,
        translation_cache_ttl_seconds=3600,
        translation_shutdown_timeout_seconds=2.0,
        translator_endpoint="https://test-translator.cognitiveservices.azure.com",
        translator_subscription_key="test-key",
        translator_region="westeurope",
    )


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def message():
    """A message whose translation is already queued."""
    return Message(
        id=42,
        room_name="general",
        content="Hallo zusammen",
        translation_status=TranslationStatus.PENDING,
        translation_targets=["en", "fr"],
    )


@pytest.fixture
def new_message():
    """A freshly posted message that has not been submitted for translation."""
    return Message(id=43, room_name="general", content="Guten Morgen")


@pytest.fixture
def store(message, new_message):
    return InMemoryMessageStore([message, new_message])



@pytest.fixture
def rooms():
    return InMemoryRoomDirectory({"general": ["alice", "bob"]})


@pytest.fixture
def notifier():
    return InMemoryRoomNotifier()


@pytest.fixture
def translate_response():
    return TranslateResponse(
        translations=[
            Translation(text="Hello everyone", language="en"),
            Translation(text="Bonjour à tous", language="fr"),
        ],
        detected_language="de",
        detected_language_score=0.98,
    )

