"""Job queue module for async message translation."""

from chat_translation.queue.job_queue import (
    JobQueueError,
    MessageTranslationJob,
    QueueUnavailableError,
    TranslationJobQueue,
    create_job,
    normalize_language_code,
    normalize_target_languages,
)
from chat_translation.queue.worker import TranslationWorker

__all__ = [
    "JobQueueError",
    "MessageTranslationJob",
    "QueueUnavailableError",
    "TranslationJobQueue",
    "TranslationWorker",
    "create_job",
    "normalize_language_code",
    "normalize_target_languages",
]
