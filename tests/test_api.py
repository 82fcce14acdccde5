"""Tests for API endpoints."""

import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock

from chat_translation.api.routes import get_translation_client
from chat_translation.main import create_app
from chat_translation.messages.models import Message, TranslationFailureCode, TranslationStatus
from chat_translation.messages.store import InMemoryMessageStore
from chat_translation.queue.job_queue import MessageTranslationJob, create_job


@pytest.fixture
def failed_message():
    return Message(
        id=7,
        room_name="general",
        content="Wie geht's?",
        translation_status=TranslationStatus.FAILED,
        translation_targets=["en", "es"],
        translation_failure_code=TranslationFailureCode.TIMEOUT,
        translation_failure_message="Translation failed (request timeout).",
    )


@pytest.fixture
def store(message, new_message, failed_message):
    return InMemoryMessageStore([message, new_message, failed_message])


@pytest.fixture
def app(settings, fake_redis, store, rooms, notifier):
    return create_app(
        settings=settings,
        redis_client=fake_redis,
        message_store=store,
        room_directory=rooms,
        notifier=notifier,
        start_worker=False,
    )


@pytest.fixture
def client(app):
    """Create a test client with the application lifespan running."""
    with TestClient(app) as test_client:
        yield test_client


def queued_jobs(fake_redis, settings) -> list[MessageTranslationJob]:
    return [
        MessageTranslationJob.from_json(payload)
        for payload in fake_redis.lists.get(settings.translation_queue_name, [])
    ]


class TestHealthEndpoint:
    """Tests for the health check endpoint."""

    def test_health_check_healthy(self, app, client):
        """Test health check when the translator answers."""
        translation_client = AsyncMock()
        translation_client.health_check = AsyncMock(return_value=True)
        app.dependency_overrides[get_translation_client] = lambda: translation_client

        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == "1.0.0"
        assert data["translator_configured"] is True
        assert data["redis_configured"] is True
        assert data["translation_enabled"] is True

    def test_health_check_translator_down(self, app, client):
        translation_client = AsyncMock()
        translation_client.health_check = AsyncMock(side_effect=RuntimeError("unreachable"))
        app.dependency_overrides[get_translation_client] = lambda: translation_client

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "unhealthy"

    def test_health_check_not_configured(self, settings, fake_redis, store, rooms, notifier):
        """Test the translator is not contacted when it is not configured."""
        settings.translator_endpoint = ""
        app = create_app(settings, fake_redis, store, rooms, notifier, start_worker=False)

        with TestClient(app) as client:
            response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["translator_configured"] is False


class TestSubmitTranslationEndpoint:
    """Tests for queuing a message translation."""

    def test_submit_translation(self, client, store, fake_redis, settings, new_message, caplog):
        response = client.post(
            f"/api/v1/messages/{new_message.id}/translation",
            json={"targetLanguages": ["fr", "DE"]},
        )

        assert response.status_code == 202
        data = response.json()
        assert data["status"] == "pending"
        assert data["messageId"] == new_message.id
        assert data["targetLanguages"] == ["en", "fr", "de"]

        jobs = queued_jobs(fake_redis, settings)
        assert [j.job_id for j in jobs] == [data["jobId"]]
        assert store.messages[new_message.id].translation_job_id == data["jobId"]
        assert store.messages[new_message.id].translation_status == TranslationStatus.PENDING
        assert "unexpected translation status change" not in caplog.text

    def test_submit_unknown_message(self, client):
        response = client.post("/api/v1/messages/999/translation", json={"targetLanguages": ["fr"]})

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "message_not_found"

    def test_submit_requires_targets(self, client, new_message):
        response = client.post(f"/api/v1/messages/{new_message.id}/translation", json={"targetLanguages": []})

        assert response.status_code == 422

    def test_submit_when_disabled(self, client, settings, new_message):
        settings.translation_enabled = False

        response = client.post(f"/api/v1/messages/{new_message.id}/translation", json={"targetLanguages": ["fr"]})

        assert response.status_code == 503
        assert response.json()["detail"]["error"] == "queue_unavailable"


class TestRetryEndpoint:
    """Tests for the manual retry endpoint."""

    def test_retry_success(self, client, store, fake_redis, settings, failed_message):
        """Test a room member can retry a failed translation."""
        backlog = create_job(42, "general", "earlier", ["fr"])
        fake_redis.lists[settings.translation_queue_name] = [backlog.to_json()]

        response = client.post(
            f"/api/v1/messages/{failed_message.id}/translation/retry",
            headers={"X-User-Name": "alice"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "pending"
        assert data["jobId"]

        jobs = queued_jobs(fake_redis, settings)
        assert jobs[0].job_id == data["jobId"]
        assert jobs[0].priority == 10
        assert jobs[0].retry_count == 0
        assert jobs[1].job_id == backlog.job_id

        stored = store.messages[failed_message.id]
        assert stored.translation_status == TranslationStatus.PENDING
        assert stored.translation_failed_at is None

    def test_retry_requires_identity(self, client, failed_message):
        response = client.post(f"/api/v1/messages/{failed_message.id}/translation/retry")

        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "unauthenticated"

    def test_retry_not_member(self, client, failed_message):
        response = client.post(
            f"/api/v1/messages/{failed_message.id}/translation/retry",
            headers={"X-User-Name": "mallory"},
        )

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "not_room_member"

    def test_retry_unknown_message(self, client):
        response = client.post("/api/v1/messages/999/translation/retry", headers={"X-User-Name": "alice"})

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "message_not_found"

    def test_retry_not_failed(self, client, message):
        response = client.post(
            f"/api/v1/messages/{message.id}/translation/retry",
            headers={"X-User-Name": "alice"},
        )

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "invalid_translation_state"

    def test_retry_disabled(self, client, settings, failed_message):
        settings.translation_enabled = False

        response = client.post(
            f"/api/v1/messages/{failed_message.id}/translation/retry",
            headers={"X-User-Name": "alice"},
        )

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "translation_disabled"


class TestQueueEndpoints:
    """Tests for queue status and job removal."""

    def test_queue_status(self, client, fake_redis, settings):
        fake_redis.lists[settings.translation_queue_name] = [
            create_job(42, "general", "one", ["fr"]).to_json(),
            create_job(42, "general", "two", ["fr"]).to_json(),
        ]

        response = client.get("/api/v1/translation/queue")

        assert response.status_code == 200
        data = response.json()
        assert data["enabled"] is True
        assert data["queueName"] == "translation:jobs"
        assert data["length"] == 2
        assert data["maxConcurrentJobs"] == 5
        assert data["worker"]["running"] is False
        assert data["worker"]["completed"] == 0

    def test_delete_job(self, client, fake_redis, settings):
        job = create_job(42, "general", "one", ["fr"])
        fake_redis.lists[settings.translation_queue_name] = [job.to_json()]

        response = client.delete(f"/api/v1/translation/jobs/{job.job_id}")

        assert response.status_code == 200
        assert response.json()["removed"] is True
        assert fake_redis.lists[settings.translation_queue_name] == []

    def test_delete_unknown_job(self, client):
        response = client.delete("/api/v1/translation/jobs/transjob:1:0:00000000")

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "job_not_found"
